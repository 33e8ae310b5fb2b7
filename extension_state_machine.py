"""Keyboard-side dictation state machine.

The keyboard cannot record audio or call into the companion app.  It writes
commands into the shared store, wakes the companion through its URL scheme
and polls the store for the companion's replies.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from errors import ERROR_MESSAGES, HOST_UNREACHABLE, STALE_SESSION_IGNORED
from interfaces import Cancellable, Scheduler, SessionStore, TextInsertionSink, Waker
from liveness import CANCEL_RECORDING, START_RECORDING, STOP_RECORDING, LivenessMonitor
from models import CommandKind, DictationSession, UIState, UIStateKind, utc_now
from waker import DEFAULT_WAKE_URL

logger = logging.getLogger(__name__)

StateCallback = Callable[[UIState, UIState], None]

_WAITING_STATES = (UIStateKind.ARMING, UIStateKind.LISTENING)


class ExtensionStateMachine:
    def __init__(
        self,
        store: SessionStore,
        scheduler: Scheduler,
        waker: Waker,
        liveness: Optional[LivenessMonitor] = None,
        poll_interval_s: float = 0.3,
        error_reset_delay_s: float = 3.0,
        session_timeout_s: Optional[float] = None,
        wake_url: str = DEFAULT_WAKE_URL,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._waker = waker
        self._liveness = liveness
        self._poll_interval_s = poll_interval_s
        self._error_reset_delay_s = error_reset_delay_s
        self._session_timeout_s = session_timeout_s
        self._wake_url = wake_url
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = UIState.idle()
        self._session_id: Optional[str] = None
        self._sink: Optional[TextInsertionSink] = None
        self._poll_job: Optional[Cancellable] = None
        self._reset_job: Optional[Cancellable] = None
        self._timeout_job: Optional[Cancellable] = None

        if liveness is not None:
            liveness.on_hint(self.poll)

    @property
    def ui_state(self) -> UIState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    def configure(self, text_insertion_sink: TextInsertionSink) -> None:
        self._sink = text_insertion_sink

    def start_dictation(self) -> Optional[str]:
        with self._lock:
            if not self._state.is_idle:
                return None
            session = DictationSession.new(CommandKind.ARM_MIC)
            self._session_id = session.session_id
            self._store.set_session(session)
            logger.info("Dictation session %s armed", session.session_id)
            self._transition(UIState(UIStateKind.ARMING))
            self._start_polling()
            if self._session_timeout_s is not None:
                self._timeout_job = self._scheduler.call_later(
                    self._session_timeout_s, self._on_session_timeout
                )
            try:
                self._waker.wake(self._wake_url, self._on_wake_result)
            except Exception:
                logger.exception("Wake request failed; companion may still pick up the session")
            return session.session_id

    def stop_dictation(self) -> None:
        with self._lock:
            if self._session_id is None or self._state.kind == UIStateKind.ERROR:
                return
            self._write(CommandKind.STOP_RECORDING)
            self._transition(UIState(UIStateKind.PROCESSING))
        if self._liveness is not None:
            self._liveness.ensure_host_app_ready(self._on_host_ready)
        self._hint_host(STOP_RECORDING)

    def cancel_dictation(self) -> None:
        with self._lock:
            if self._session_id is None:
                return
            self._write(CommandKind.CANCEL_RECORDING)
            logger.info("Dictation session %s cancelled", self._session_id)
            self._reset(clear_store=False)
        self._hint_host(CANCEL_RECORDING)

    def poll(self) -> None:
        if self._poll_once():
            self._hint_host(START_RECORDING)

    def _poll_once(self) -> bool:
        """One store check; True when startRecording was just written."""
        with self._lock:
            if self._session_id is None:
                return False
            session = self._store.get_session()
            if session is None:
                return False
            if session.session_id != self._session_id:
                logger.debug("%s: %s", ERROR_MESSAGES[STALE_SESSION_IGNORED], session.session_id)
                return False

            command = session.command
            if command == CommandKind.MIC_READY:
                self._store.set_session(session.with_command(CommandKind.START_RECORDING))
                self._transition(UIState(UIStateKind.LISTENING))
                return True
            if command == CommandKind.PROCESSING:
                self._transition(UIState(UIStateKind.PROCESSING))
            elif command == CommandKind.TEXT_READY:
                self._consume_text()
            elif command == CommandKind.ERROR:
                self._fail(session.error or "Unknown error")
            return False

    def _hint_host(self, name: str) -> None:
        # Best-effort; the command itself is already in the store.
        if self._liveness is not None:
            self._liveness.post_command_hint(name)

    def _consume_text(self) -> None:
        text = self._store.get_cleaned_text()
        if text:
            self._insert(text)
        self._reset(clear_store=True)

    def _insert(self, text: str) -> None:
        if self._sink is None:
            logger.warning("No text insertion sink configured; dropping dictated text")
            return
        try:
            result = self._sink.insert_text(text)
        except Exception:
            logger.exception("Text insertion failed")
            return
        if not result.success:
            logger.warning("Text insertion failed: %s", result.reason)

    def _fail(self, message: str) -> None:
        if self._state.kind == UIStateKind.ERROR:
            return
        logger.info("Dictation session %s failed: %s", self._session_id, message)
        self._stop_polling()
        self._cancel_timeout()
        self._transition(UIState.error(message))
        failed_id = self._session_id
        self._reset_job = self._scheduler.call_later(
            self._error_reset_delay_s, lambda: self._recover(failed_id)
        )

    def _recover(self, failed_id: Optional[str]) -> None:
        with self._lock:
            if self._session_id != failed_id or self._state.kind != UIStateKind.ERROR:
                return
            session = self._store.get_session()
            self._reset(clear_store=session is not None and session.session_id == failed_id)

    def _on_session_timeout(self) -> None:
        with self._lock:
            self._timeout_job = None
            if self._session_id is None or self._state.kind not in _WAITING_STATES:
                return
            self._fail(ERROR_MESSAGES[HOST_UNREACHABLE])

    def _on_host_ready(self, ready: bool) -> None:
        if not ready:
            logger.info("Companion not confirmed; command left in shared store")

    def _on_wake_result(self, opened: bool) -> None:
        if not opened:
            logger.warning("Could not open companion app")

    def _write(self, command: CommandKind) -> None:
        if self._session_id is None:
            return
        self._store.set_session(
            DictationSession(session_id=self._session_id, command=command, timestamp=utc_now())
        )

    def _reset(self, clear_store: bool) -> None:
        self._stop_polling()
        self._cancel_timeout()
        if self._reset_job is not None:
            self._reset_job.cancel()
            self._reset_job = None
        self._session_id = None
        if clear_store:
            self._store.clear_session()
        self._transition(UIState.idle())

    def _start_polling(self) -> None:
        self._stop_polling()
        self._poll_job = self._scheduler.schedule(self._poll_interval_s, self.poll)

    def _stop_polling(self) -> None:
        if self._poll_job is not None:
            self._poll_job.cancel()
            self._poll_job = None

    def _cancel_timeout(self) -> None:
        if self._timeout_job is not None:
            self._timeout_job.cancel()
            self._timeout_job = None

    def _transition(self, to_state: UIState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)

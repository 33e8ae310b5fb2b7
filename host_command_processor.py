"""Companion-side command processor.

Polls the shared store, claims one dictation session at a time and drives the
capture and cleanup collaborators on its behalf.  The claim
(``current_session_id``) is the only ownership token: the store has no
compare-and-swap, so every record naming another session is ignored while a
claim is held.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from errors import (
    CAPTURE_START_FAILURE,
    CAPTURE_STOP_FAILURE,
    CLEANUP_PROCESSING_FAILED,
    ERROR_MESSAGES,
    STALE_SESSION_IGNORED,
    DictationError,
    PermissionDenied,
)
from interfaces import Cancellable, CaptureProvider, CleanupProvider, Scheduler, SessionStore
from models import CommandKind, DictationSession, HostActivity

logger = logging.getLogger(__name__)

ActivityCallback = Callable[[HostActivity], None]
BackgroundRunner = Callable[[Callable[[], None]], None]
HintCallback = Callable[[str], None]


def run_in_thread(job: Callable[[], None]) -> None:
    threading.Thread(target=job, daemon=True).start()


class HostCommandProcessor:
    def __init__(
        self,
        store: SessionStore,
        scheduler: Scheduler,
        capture: CaptureProvider,
        cleanup: CleanupProvider,
        poll_interval_s: float = 0.5,
        run_in_background: BackgroundRunner = run_in_thread,
        on_activity: Optional[ActivityCallback] = None,
        on_hint: Optional[HintCallback] = None,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._capture = capture
        self._cleanup = cleanup
        self._poll_interval_s = poll_interval_s
        self._run_in_background = run_in_background
        self._on_activity = on_activity
        self._on_hint = on_hint

        self._lock = threading.RLock()
        self._busy = False
        self._poll_job: Optional[Cancellable] = None
        self._current_session_id: Optional[str] = None
        self._armed_session_id: Optional[str] = None
        self._capturing = False
        self._activity = HostActivity.IDLE

    @property
    def current_session_id(self) -> Optional[str]:
        return self._current_session_id

    @property
    def activity(self) -> HostActivity:
        return self._activity

    @property
    def is_monitoring(self) -> bool:
        return self._poll_job is not None

    def start(self) -> None:
        with self._lock:
            if self._poll_job is not None:
                return
            self._poll_job = self._scheduler.schedule(self._poll_interval_s, self.poll)
            logger.info("Monitoring shared store every %.1fs", self._poll_interval_s)

    def stop(self) -> None:
        with self._lock:
            if self._poll_job is not None:
                self._poll_job.cancel()
                self._poll_job = None
            self._stop_capture_quietly()
            self._release_claim()

    def reset_shared_state(self) -> None:
        """Abandon any claimed session and wipe every shared key."""
        with self._lock:
            self._stop_capture_quietly()
            self._release_claim()
            self._store.clear_all()
        logger.info("Shared state cleared")

    def poll(self) -> None:
        with self._lock:
            if self._busy:
                return
            self._busy = True
            try:
                self._check_for_commands()
            finally:
                self._busy = False

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _check_for_commands(self) -> None:
        session = self._store.get_session()
        if session is None:
            return
        claim = self._current_session_id
        if claim is not None and session.session_id != claim:
            logger.debug(
                "%s: %s for %s", ERROR_MESSAGES[STALE_SESSION_IGNORED], session.command.value, session.session_id
            )
            return

        command = session.command
        if command == CommandKind.ARM_MIC:
            self._handle_arm_mic(session)
        elif command == CommandKind.START_RECORDING:
            self._handle_start_recording(session)
        elif command == CommandKind.STOP_RECORDING:
            self._handle_stop_recording(session)
        elif command == CommandKind.CANCEL_RECORDING:
            self._handle_cancel_recording(session)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _handle_arm_mic(self, session: DictationSession) -> None:
        if self._armed_session_id == session.session_id:
            return
        self._armed_session_id = session.session_id

        granted = self._ask(self._capture.request_permissions) and self._ask(
            self._capture.request_mic_permission
        )
        if not granted:
            logger.info("Permissions denied for session %s", session.session_id)
            self._write_error(session, str(PermissionDenied()))
            self._release_claim()
            return

        self._current_session_id = session.session_id
        self._store.set_session(session.with_command(CommandKind.MIC_READY))
        self._set_activity(HostActivity.ARMED)
        logger.info("Claimed session %s; microphone ready", session.session_id)

    def _handle_start_recording(self, session: DictationSession) -> None:
        if self._current_session_id != session.session_id or self._capturing:
            return
        try:
            self._capture.start_capture(on_partial=self._store.set_raw_transcript)
        except Exception as exc:
            logger.warning("Capture failed to start for %s: %s", session.session_id, exc)
            self._write_error(session, _describe(exc, CAPTURE_START_FAILURE))
            self._release_claim()
            return
        self._capturing = True
        self._set_activity(HostActivity.RECORDING)
        self._hint("recordingStarted")

    def _handle_stop_recording(self, session: DictationSession) -> None:
        if self._current_session_id != session.session_id:
            return
        transcript = ""
        if self._capturing:
            self._capturing = False
            try:
                transcript = self._capture.stop_capture().text
            except Exception as exc:
                logger.warning("Transcription failed for %s: %s", session.session_id, exc)
                self._write_error(session, _describe(exc, CAPTURE_STOP_FAILURE))
                self._release_claim()
                return
        self._store.set_raw_transcript(transcript)
        self._store.set_session(session.with_command(CommandKind.PROCESSING))
        self._set_activity(HostActivity.PROCESSING)
        self._run_in_background(lambda: self._finish_session(session, transcript))

    def _finish_session(self, session: DictationSession, transcript: str) -> None:
        try:
            cleaned: Optional[str] = self._cleanup.cleanup(transcript)
            failure = None
        except Exception as exc:
            cleaned = None
            failure = _describe(exc, CLEANUP_PROCESSING_FAILED)

        with self._lock:
            if self._current_session_id != session.session_id:
                logger.info("Discarding cleanup result for released session %s", session.session_id)
                return
            if failure is None:
                self._store.set_cleaned_text(cleaned or "")
                self._store.set_session(session.with_command(CommandKind.TEXT_READY))
                logger.info("Text ready for session %s", session.session_id)
                self._hint("textReady")
            else:
                logger.warning("Cleanup failed for session %s: %s", session.session_id, failure)
                self._write_error(session, failure)
            self._release_claim()

    def _handle_cancel_recording(self, session: DictationSession) -> None:
        if self._current_session_id != session.session_id:
            return
        self._stop_capture_quietly()
        self._release_claim()
        logger.info("Session %s cancelled", session.session_id)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ask(self, request: Callable[[], bool]) -> bool:
        try:
            return bool(request())
        except Exception as exc:
            logger.warning("Permission request failed: %s", exc)
            return False

    def _write_error(self, session: DictationSession, message: str) -> None:
        self._store.set_session(session.with_command(CommandKind.ERROR, error=message))

    def _stop_capture_quietly(self) -> None:
        if not self._capturing:
            return
        self._capturing = False
        try:
            self._capture.stop_capture()
        except Exception as exc:
            logger.debug("Ignoring capture stop failure: %s", exc)

    def _release_claim(self) -> None:
        self._current_session_id = None
        self._capturing = False
        self._set_activity(HostActivity.IDLE)

    def _hint(self, name: str) -> None:
        if self._on_hint is not None:
            self._on_hint(name)

    def _set_activity(self, activity: HostActivity) -> None:
        if self._activity == activity:
            return
        self._activity = activity
        if self._on_activity:
            self._on_activity(activity)


def _describe(exc: Exception, fallback_code: str) -> str:
    if isinstance(exc, DictationError):
        return str(exc)
    detail = str(exc)
    base = ERROR_MESSAGES[fallback_code]
    return f"{base}: {detail}" if detail else base

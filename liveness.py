"""Best-effort liveness and wake hints between the keyboard and the companion.

Signals carry only a name and may be dropped at any time, so they are used to
estimate whether the companion is running and to trigger an early poll.
Protocol commands always travel through the shared store.
"""

from __future__ import annotations

import json
import logging
import socket
import threading
from collections import defaultdict
from typing import Callable, Optional

from errors import ERROR_MESSAGES, HOST_UNREACHABLE
from interfaces import Cancellable, Scheduler, SessionStore, SignalChannel, Waker
from waker import DEFAULT_WAKE_URL

logger = logging.getLogger(__name__)

PING = "ping"
PONG = "pong"
HOST_APP_STATE_CHANGED = "hostAppStateChanged"

# Direct notifications from the pre-polling design; now only hints to poll.
RECORDING_STARTED = "recordingStarted"
TEXT_READY = "textReady"
START_RECORDING = "startRecording"
STOP_RECORDING = "stopRecording"
CANCEL_RECORDING = "cancelRecording"

HOST_HINT_SIGNALS = (RECORDING_STARTED, TEXT_READY)
EXTENSION_COMMAND_SIGNALS = (START_RECORDING, STOP_RECORDING, CANCEL_RECORDING)

DEFAULT_HOST_PORT = 47811
DEFAULT_EXTENSION_PORT = 47812

ReadyCallback = Callable[[bool], None]


class _Observation:
    def __init__(self, registry: "_ObserverRegistry", name: str, callback: Callable[[], None]) -> None:
        self._registry = registry
        self._name = name
        self._callback = callback

    def cancel(self) -> None:
        self._registry.remove(self._name, self._callback)


class _ObserverRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: dict[str, list[Callable[[], None]]] = defaultdict(list)

    def add(self, name: str, callback: Callable[[], None]) -> _Observation:
        with self._lock:
            self._observers[name].append(callback)
        return _Observation(self, name, callback)

    def remove(self, name: str, callback: Callable[[], None]) -> None:
        with self._lock:
            callbacks = self._observers.get(name, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def dispatch(self, name: str) -> None:
        with self._lock:
            callbacks = list(self._observers.get(name, []))
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Signal observer for %s failed", name)


class UdpSignalChannel:
    """Loopback datagrams; lost packets are simply lost."""

    def __init__(self, listen_port: int, peer_port: int, host: str = "127.0.0.1") -> None:
        self._peer = (host, peer_port)
        self._registry = _ObserverRegistry()
        self._closed = threading.Event()
        self._send_socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._recv_socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._recv_socket.bind((host, listen_port))
        self._recv_socket.settimeout(0.5)
        self._thread = threading.Thread(target=self._receive_loop, daemon=True)
        self._thread.start()

    def post(self, name: str) -> None:
        body = json.dumps({"name": name}, separators=(",", ":")).encode("utf-8")
        try:
            self._send_socket.sendto(body, self._peer)
        except OSError as exc:
            logger.debug("Signal %s dropped: %s", name, exc)

    def observe(self, name: str, callback: Callable[[], None]) -> Cancellable:
        return self._registry.add(name, callback)

    def close(self) -> None:
        self._closed.set()
        for sock in (self._send_socket, self._recv_socket):
            try:
                sock.close()
            except OSError:
                pass

    def _receive_loop(self) -> None:
        while not self._closed.is_set():
            try:
                data, _ = self._recv_socket.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError:
                return
            try:
                name = str(json.loads(data.decode("utf-8"))["name"])
            except (ValueError, KeyError, TypeError):
                logger.debug("Ignoring malformed signal datagram")
                continue
            self._registry.dispatch(name)


class InProcessSignalChannel:
    """Synchronous in-process channel pair; ``drop`` discards outgoing signals."""

    def __init__(self) -> None:
        self._registry = _ObserverRegistry()
        self._peer: Optional[InProcessSignalChannel] = None
        self.drop = False
        self.posted: list[str] = []

    @classmethod
    def pair(cls) -> tuple["InProcessSignalChannel", "InProcessSignalChannel"]:
        left, right = cls(), cls()
        left._peer, right._peer = right, left
        return left, right

    def post(self, name: str) -> None:
        self.posted.append(name)
        if self.drop or self._peer is None:
            return
        self._peer._registry.dispatch(name)

    def observe(self, name: str, callback: Callable[[], None]) -> Cancellable:
        return self._registry.add(name, callback)

    def close(self) -> None:
        self._peer = None


class LivenessMonitor:
    """Keyboard-side estimate of whether the companion is running."""

    def __init__(
        self,
        channel: SignalChannel,
        waker: Waker,
        scheduler: Scheduler,
        store: Optional[SessionStore] = None,
        wake_url: str = DEFAULT_WAKE_URL,
    ) -> None:
        self._channel = channel
        self._waker = waker
        self._scheduler = scheduler
        self._store = store
        self._wake_url = wake_url
        self._lock = threading.RLock()
        self._ready = bool(store.get_liveness_flag()) if store is not None else False
        self._waiters: list[ReadyCallback] = []
        self._timeout: Optional[Cancellable] = None
        self._hint_callbacks: list[Callable[[], None]] = []
        self._observations = [
            channel.observe(PONG, self._on_pong),
            channel.observe(HOST_APP_STATE_CHANGED, self._on_state_changed),
        ]
        for name in HOST_HINT_SIGNALS:
            self._observations.append(channel.observe(name, self._on_hint))

    @property
    def is_host_app_ready(self) -> bool:
        return self._ready

    def on_hint(self, callback: Callable[[], None]) -> None:
        self._hint_callbacks.append(callback)

    def ping(self) -> None:
        self._channel.post(PING)

    def post_command_hint(self, name: str) -> None:
        """Tell the companion a command was just written so it polls early."""
        if name not in EXTENSION_COMMAND_SIGNALS:
            raise ValueError(f"not a command signal: {name}")
        self._channel.post(name)

    def ensure_host_app_ready(self, on_done: ReadyCallback, timeout_s: float = 3.0) -> None:
        """Call ``on_done(ready)`` once the companion confirms or the wait times out.

        Callers send their command either way; a False result only means the
        companion may pick it up late.
        """
        with self._lock:
            if self._ready:
                resolved = True
            else:
                resolved = False
                self._waiters.append(on_done)
                start_wait = self._timeout is None
                if start_wait:
                    self._timeout = self._scheduler.call_later(timeout_s, self._on_timeout)
        if resolved:
            on_done(True)
            return
        if start_wait:
            self._waker.wake(self._wake_url, self._on_wake_result)
            self.ping()

    def close(self) -> None:
        for observation in self._observations:
            observation.cancel()
        with self._lock:
            if self._timeout is not None:
                self._timeout.cancel()
                self._timeout = None
            self._waiters.clear()

    def _on_wake_result(self, opened: bool) -> None:
        if not opened:
            logger.warning("Wake request for companion app failed")

    def _on_pong(self) -> None:
        self._set_ready(True)

    def _on_state_changed(self) -> None:
        ready = self._store.get_liveness_flag() if self._store is not None else True
        self._set_ready(ready)

    def _on_hint(self) -> None:
        self._set_ready(True)
        for callback in list(self._hint_callbacks):
            callback()

    def _set_ready(self, ready: bool) -> None:
        with self._lock:
            self._ready = ready
            if not ready:
                return
            waiters, self._waiters = self._waiters, []
            if self._timeout is not None:
                self._timeout.cancel()
                self._timeout = None
        for waiter in waiters:
            waiter(True)

    def _on_timeout(self) -> None:
        with self._lock:
            self._timeout = None
            waiters, self._waiters = self._waiters, []
        if waiters:
            logger.info("%s; proceeding optimistically", ERROR_MESSAGES[HOST_UNREACHABLE])
        for waiter in waiters:
            waiter(False)


class HostLivenessResponder:
    """Companion-side half: answers pings and announces foreground changes."""

    def __init__(
        self,
        channel: SignalChannel,
        store: SessionStore,
        on_command_hint: Optional[Callable[[], None]] = None,
    ) -> None:
        self._channel = channel
        self._store = store
        self._on_command_hint = on_command_hint
        self._observations = [channel.observe(PING, self._on_ping)]
        for name in EXTENSION_COMMAND_SIGNALS:
            self._observations.append(channel.observe(name, self._on_command))

    def set_foreground(self, foreground: bool) -> None:
        self._store.set_liveness_flag(foreground)
        self._channel.post(HOST_APP_STATE_CHANGED)

    def announce(self, name: str) -> None:
        self._channel.post(name)

    def close(self) -> None:
        for observation in self._observations:
            observation.cancel()

    def _on_ping(self) -> None:
        self._channel.post(PONG)

    def _on_command(self) -> None:
        if self._on_command_hint is not None:
            self._on_command_hint()

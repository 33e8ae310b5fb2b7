"""Global push-to-talk hotkey for the keyboard process, based on pynput."""

from __future__ import annotations

import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore


class GlobalHotkeyAdapter:
    """Hold the dictation key to talk; the cancel key abandons the session."""

    def __init__(self, hotkey_name: str = "Key.alt_r", cancel_key_name: str = "Key.esc") -> None:
        self._hotkey_name = hotkey_name
        self._cancel_key_name = cancel_key_name
        self._listener: Optional[object] = None
        self._pressed = False
        self._lock = threading.Lock()
        self._on_press: Optional[Callable[[], None]] = None
        self._on_release: Optional[Callable[[], None]] = None
        self._on_cancel: Optional[Callable[[], None]] = None

    def start(
        self,
        on_press: Callable[[], None],
        on_release: Callable[[], None],
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_press = on_press
        self._on_release = on_release
        self._on_cancel = on_cancel
        self._listener = keyboard.Listener(on_press=self.handle_press, on_release=self.handle_release)
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

    def handle_press(self, key: object) -> None:
        name = str(key)
        if name == self._cancel_key_name:
            with self._lock:
                self._pressed = False
            if self._on_cancel:
                self._on_cancel()
            return
        if name != self._hotkey_name:
            return
        with self._lock:
            if self._pressed:
                return
            self._pressed = True
        if self._on_press:
            self._on_press()

    def handle_release(self, key: object) -> None:
        if str(key) != self._hotkey_name:
            return
        with self._lock:
            if not self._pressed:
                return
            self._pressed = False
        if self._on_release:
            self._on_release()

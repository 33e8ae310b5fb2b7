"""Application entrypoint.

``python main.py host`` runs the companion app (microphone, transcription,
cleanup).  ``python main.py keyboard`` runs the keyboard side, which only
talks to the companion through the shared store and liveness signals.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from auto_paste import ClipboardPasteService
from capture import SoundDeviceCaptureProvider
from cleanup import DashscopeCleanupProvider
from config import JsonConfigStore
from extension_state_machine import ExtensionStateMachine
from host_command_processor import HostCommandProcessor
from hotkey import GlobalHotkeyAdapter
from liveness import HostLivenessResponder, LivenessMonitor, UdpSignalChannel
from logging_setup import default_logs_dir, setup_logging
from models import HostActivity, UIState
from overlay import OverlayWindow
from scheduler import ThreadingScheduler
from session_store import JsonFileSessionStore
from waker import QtUrlWaker, is_start_url

try:
    from PySide6.QtCore import QObject, QSize, Qt, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

ACTIVITY_COLORS = {
    HostActivity.IDLE: "#888888",  # grey
    HostActivity.ARMED: "#FFCC00",  # yellow
    HostActivity.RECORDING: "#FF4444",  # red
    HostActivity.PROCESSING: "#4488FF",  # blue
}


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


class HostBridge(QObject):
    activity_signal = Signal(str)


class KeyboardBridge(QObject):
    press_signal = Signal()
    release_signal = Signal()
    cancel_signal = Signal()
    state_signal = Signal(object)


class HostApp:
    def __init__(self, config_store: JsonConfigStore, activation_url: Optional[str] = None) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = config_store
        self.store = JsonFileSessionStore(config_store.get_group_dir())
        self.channel = UdpSignalChannel(
            listen_port=config_store.get_host_signal_port(),
            peer_port=config_store.get_extension_signal_port(),
        )
        self.ui = HostBridge()
        self.ui.activity_signal.connect(self._on_activity_ui)

        self.responder = HostLivenessResponder(self.channel, self.store, on_command_hint=self._on_command_hint)
        self.processor = self._create_processor(config_store.get_api_key())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ACTIVITY_COLORS[HostActivity.IDLE]))
        self.tray.setToolTip("Dictation: Ready")
        self._setup_menu()
        self.tray.show()

        self.app.applicationStateChanged.connect(self._on_app_state_changed)
        if activation_url is not None:
            self.handle_activation_url(activation_url)

    def _create_processor(self, api_key: str) -> HostCommandProcessor:
        return HostCommandProcessor(
            store=self.store,
            scheduler=ThreadingScheduler(),
            capture=SoundDeviceCaptureProvider(api_key=api_key),
            cleanup=DashscopeCleanupProvider(api_key=api_key),
            on_activity=lambda activity: self.ui.activity_signal.emit(activity.value),
            on_hint=self.responder.announce,
        )

    def _setup_menu(self) -> None:
        menu = QMenu()

        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        reset_action = QAction("Reset Shared State", menu)
        reset_action.triggered.connect(self._reset_shared_state)
        menu.addAction(reset_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        self.processor.stop()
        self.processor = self._create_processor(value)
        self.processor.start()
        QMessageBox.information(None, "Saved", "API Key saved and applied.")

    def _reset_shared_state(self) -> None:
        self.processor.reset_shared_state()

    def handle_activation_url(self, url: str) -> None:
        if not is_start_url(url):
            logger.warning("Ignoring activation URL %s", url)
            return
        self.responder.set_foreground(True)
        self.processor.poll()

    def _on_command_hint(self) -> None:
        self.processor.poll()

    def _on_app_state_changed(self, state: Qt.ApplicationState) -> None:
        self.responder.set_foreground(state != Qt.ApplicationSuspended)

    def _on_activity_ui(self, value: str) -> None:
        activity = HostActivity(value)
        self.tray.setIcon(_create_icon(ACTIVITY_COLORS[activity]))
        self.tray.setToolTip(f"Dictation: {activity.value.title()}")

    def run(self) -> int:
        self.processor.start()
        self.responder.set_foreground(True)
        return self.app.exec()

    def quit(self) -> None:
        self.processor.stop()
        self.responder.set_foreground(False)
        self.responder.close()
        self.channel.close()
        self.app.quit()


class KeyboardApp:
    def __init__(self, config_store: JsonConfigStore) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.overlay = OverlayWindow()
        self.store = JsonFileSessionStore(config_store.get_group_dir())
        self.channel = UdpSignalChannel(
            listen_port=config_store.get_extension_signal_port(),
            peer_port=config_store.get_host_signal_port(),
        )
        scheduler = ThreadingScheduler()
        waker = QtUrlWaker()
        wake_url = config_store.get_wake_url()

        self.ui = KeyboardBridge()
        self.ui.press_signal.connect(self._on_press_ui)
        self.ui.release_signal.connect(self._on_release_ui)
        self.ui.cancel_signal.connect(self._on_cancel_ui)
        self.ui.state_signal.connect(self.overlay.show_state)

        self.liveness = LivenessMonitor(self.channel, waker, scheduler, store=self.store, wake_url=wake_url)
        self.machine = ExtensionStateMachine(
            store=self.store,
            scheduler=scheduler,
            waker=waker,
            liveness=self.liveness,
            session_timeout_s=config_store.get_session_timeout_s(),
            wake_url=wake_url,
            on_state_change=self._on_state_change,
        )
        self.machine.configure(ClipboardPasteService())
        self.hotkey = GlobalHotkeyAdapter(
            hotkey_name=config_store.get_hotkey(),
            cancel_key_name=config_store.get_cancel_hotkey(),
        )

    # Called from worker threads; re-emitted onto the Qt thread.

    def _on_state_change(self, from_state: UIState, to_state: UIState) -> None:
        self.ui.state_signal.emit(to_state)

    def _on_press_ui(self) -> None:
        self.machine.start_dictation()

    def _on_release_ui(self) -> None:
        self.machine.stop_dictation()

    def _on_cancel_ui(self) -> None:
        self.machine.cancel_dictation()

    def run(self) -> int:
        try:
            self.hotkey.start(
                on_press=self.ui.press_signal.emit,
                on_release=self.ui.release_signal.emit,
                on_cancel=self.ui.cancel_signal.emit,
            )
        except Exception as exc:
            self.overlay.show_state(UIState.error(f"Hotkey disabled: {exc}"))
        self.liveness.ping()
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.machine.cancel_dictation()
        self.liveness.close()
        self.channel.close()
        self.app.quit()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cross-process voice dictation")
    parser.add_argument("role", choices=("host", "keyboard"))
    parser.add_argument("--activate", metavar="URL", help="activation URL passed by the URL scheme handler")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(default_logs_dir(), args.role, verbose=args.verbose)
    config_store = JsonConfigStore()
    if args.role == "host":
        try:
            host = HostApp(config_store, activation_url=args.activate)
        except OSError as exc:
            logger.info("Companion already running (%s); it will pick up the session from the store", exc)
            return 0
        return host.run()
    return KeyboardApp(config_store).run()


if __name__ == "__main__":
    raise SystemExit(main())

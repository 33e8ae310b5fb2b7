"""Floating dictation status panel for the keyboard process."""

from __future__ import annotations

from models import UIState, UIStateKind

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

_NORMAL_STYLE = (
    "color: white; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)
_ERROR_STYLE = (
    "color: #FF6B6B; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,210); border-radius: 12px;"
)

STATE_LABELS = {
    UIStateKind.ARMING: "Opening dictation app...",
    UIStateKind.LISTENING: "🎙️ Listening...",
    UIStateKind.PROCESSING: "Processing...",
}


def state_label(state: UIState) -> str:
    if state.kind == UIStateKind.ERROR:
        return f"⚠️ {state.message}"
    return STATE_LABELS.get(state.kind, "")


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(600)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setStyleSheet(_NORMAL_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def show_state(self, state: UIState) -> None:
        if state.is_idle:
            self.hide_with_delay(400)
            return
        self._label.setStyleSheet(_ERROR_STYLE if state.kind == UIStateKind.ERROR else _NORMAL_STYLE)
        self.set_text(state_label(state))

    def set_text(self, text: str) -> None:
        self._cancel_hide_timer()
        self._label.setText(text)
        self._center_top()
        self.show()

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        self._hide_timer = QTimer()
        self._hide_timer.setSingleShot(True)
        self._hide_timer.timeout.connect(self.hide)
        self._hide_timer.start(delay_ms)

    def _center_top(self) -> None:
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 40  # below the menu bar
        self.move(x, y)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None

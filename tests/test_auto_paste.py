from __future__ import annotations

from unittest.mock import MagicMock

import auto_paste
from auto_paste import ClipboardPasteService


def test_insert_returns_failure_when_dependencies_missing(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(auto_paste, "pyperclip", None)
    monkeypatch.setattr(auto_paste, "Controller", None)
    monkeypatch.setattr(auto_paste, "Key", None)

    result = ClipboardPasteService().insert_text("hello")

    assert result.success is False
    assert result.clipboard_restored is False


def test_insert_returns_failure_on_empty_text() -> None:
    result = ClipboardPasteService().insert_text("   ")

    assert result.success is False
    assert result.clipboard_restored is True


def test_insert_pastes_and_restores_clipboard(monkeypatch) -> None:  # noqa: ANN001
    clip = MagicMock()
    clip.paste.return_value = "previous"
    keyboard = MagicMock()
    monkeypatch.setattr(auto_paste, "pyperclip", clip)
    monkeypatch.setattr(auto_paste, "Controller", MagicMock(return_value=keyboard))
    monkeypatch.setattr(auto_paste, "Key", MagicMock())

    result = ClipboardPasteService(restore_delay_s=0).insert_text("Hello there.")

    assert result.success is True
    assert [c.args[0] for c in clip.copy.call_args_list] == ["Hello there.", "previous"]
    keyboard.press.assert_any_call("v")


def test_paste_failure_restores_old_clipboard(monkeypatch) -> None:  # noqa: ANN001
    clip = MagicMock()
    clip.paste.return_value = "previous"
    monkeypatch.setattr(auto_paste, "pyperclip", clip)
    monkeypatch.setattr(auto_paste, "Controller", MagicMock(side_effect=RuntimeError("no display")))
    monkeypatch.setattr(auto_paste, "Key", MagicMock())

    result = ClipboardPasteService(restore_delay_s=0).insert_text("Hello")

    assert result.success is False
    assert result.reason.startswith("NO_ACTIVE_TARGET")
    assert result.clipboard_restored is True
    assert clip.copy.call_args_list[-1].args[0] == "previous"

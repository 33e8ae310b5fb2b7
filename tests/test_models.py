from __future__ import annotations

import pytest

from errors import ERROR_MESSAGES, PERMISSION_DENIED, CaptureStartFailure, PermissionDenied
from models import CommandKind, DictationSession, UIState, UIStateKind


def test_with_command_keeps_identity_and_refreshes_timestamp() -> None:
    session = DictationSession.new()
    replied = session.with_command(CommandKind.ERROR, error="boom")

    assert replied.session_id == session.session_id
    assert replied.command == CommandKind.ERROR
    assert replied.error == "boom"
    assert replied.timestamp >= session.timestamp
    assert session.command == CommandKind.ARM_MIC


def test_wire_form_uses_camel_case() -> None:
    data = DictationSession.new(CommandKind.MIC_READY).to_dict()

    assert data["command"] == "micReady"
    assert set(data) == {"sessionId", "command", "timestamp", "error"}
    assert DictationSession.from_dict(data).command == CommandKind.MIC_READY


@pytest.mark.parametrize(
    "data",
    [
        None,
        [],
        {"command": "armMic", "timestamp": "2024-01-01T00:00:00+00:00"},
        {"sessionId": "a", "command": "launch", "timestamp": "2024-01-01T00:00:00+00:00"},
        {"sessionId": "a", "command": "armMic", "timestamp": "yesterday"},
    ],
)
def test_from_dict_rejects_malformed_records(data) -> None:  # noqa: ANN001
    with pytest.raises(ValueError):
        DictationSession.from_dict(data)


def test_new_sessions_have_distinct_ids() -> None:
    assert DictationSession.new().session_id != DictationSession.new().session_id


def test_ui_state_helpers() -> None:
    assert UIState.idle().is_idle
    state = UIState.error("nope")
    assert state.kind == UIStateKind.ERROR
    assert state.message == "nope"


def test_error_messages() -> None:
    assert str(PermissionDenied()) == ERROR_MESSAGES[PERMISSION_DENIED]
    assert str(CaptureStartFailure("no mic")) == "Failed to start recording: no mic"

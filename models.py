"""Core data models shared by the keyboard extension and the companion app."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class CommandKind(str, Enum):
    ARM_MIC = "armMic"
    MIC_READY = "micReady"
    START_RECORDING = "startRecording"
    STOP_RECORDING = "stopRecording"
    PROCESSING = "processing"
    TEXT_READY = "textReady"
    CANCEL_RECORDING = "cancelRecording"
    ERROR = "error"


class UIStateKind(str, Enum):
    IDLE = "IDLE"
    ARMING = "ARMING"
    LISTENING = "LISTENING"
    PROCESSING = "PROCESSING"
    ERROR = "ERROR"


class HostActivity(str, Enum):
    IDLE = "IDLE"
    ARMED = "ARMED"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"


class RecognitionKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DictationSession:
    """One dictation attempt as written to the shared store."""

    session_id: str
    command: CommandKind
    timestamp: datetime
    error: Optional[str] = None

    @classmethod
    def new(cls, command: CommandKind = CommandKind.ARM_MIC) -> "DictationSession":
        return cls(session_id=uuid.uuid4().hex, command=command, timestamp=utc_now())

    def with_command(self, command: CommandKind, error: Optional[str] = None) -> "DictationSession":
        """Same session, next protocol step, fresh timestamp."""
        return replace(self, command=command, timestamp=utc_now(), error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "command": self.command.value,
            "timestamp": self.timestamp.isoformat(),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "DictationSession":
        if not isinstance(data, dict):
            raise ValueError("session record must be an object")
        try:
            session_id = str(data["sessionId"])
            command = CommandKind(data["command"])
            timestamp = datetime.fromisoformat(str(data["timestamp"]))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed session record: {exc}") from exc
        error = data.get("error")
        return cls(
            session_id=session_id,
            command=command,
            timestamp=timestamp,
            error=None if error is None else str(error),
        )


@dataclass(frozen=True)
class UIState:
    kind: UIStateKind
    message: str = ""

    @classmethod
    def idle(cls) -> "UIState":
        return cls(UIStateKind.IDLE)

    @classmethod
    def error(cls, message: str) -> "UIState":
        return cls(UIStateKind.ERROR, message)

    @property
    def is_idle(self) -> bool:
        return self.kind == UIStateKind.IDLE


@dataclass
class FinalTranscript:
    text: str


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionEvent:
    kind: str
    text: str = ""
    code: str = ""
    message: str = ""
    retryable: bool = False


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool

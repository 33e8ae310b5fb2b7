"""Shared error codes, user-facing messages and exception types.

HOST_UNREACHABLE, STALE_SESSION_IGNORED and STORE_UNAVAILABLE are only logged;
they never cross a process boundary or reach the caller.
"""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
CAPTURE_START_FAILURE = "CAPTURE_START_FAILURE"
CAPTURE_STOP_FAILURE = "CAPTURE_STOP_FAILURE"
CLEANUP_UNAVAILABLE = "CLEANUP_UNAVAILABLE"
CLEANUP_PROCESSING_FAILED = "CLEANUP_PROCESSING_FAILED"
HOST_UNREACHABLE = "HOST_UNREACHABLE"
STALE_SESSION_IGNORED = "STALE_SESSION_IGNORED"
STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone or speech recognition permission denied",
    CAPTURE_START_FAILURE: "Failed to start recording",
    CAPTURE_STOP_FAILURE: "Failed to transcribe recording",
    CLEANUP_UNAVAILABLE: "Text cleanup model is not available",
    CLEANUP_PROCESSING_FAILED: "Text cleanup failed",
    HOST_UNREACHABLE: "Dictation app is not responding",
    STALE_SESSION_IGNORED: "Ignored record from another session",
    STORE_UNAVAILABLE: "Shared storage is not available",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    NO_ACTIVE_TARGET: "No active input target, result kept in clipboard.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
}


class DictationError(Exception):
    code = ASR_PROTOCOL_ERROR

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        base = ERROR_MESSAGES[self.code]
        super().__init__(f"{base}: {detail}" if detail else base)


class PermissionDenied(DictationError):
    code = PERMISSION_DENIED


class CaptureStartFailure(DictationError):
    code = CAPTURE_START_FAILURE


class CleanupUnavailable(DictationError):
    code = CLEANUP_UNAVAILABLE


class CleanupProcessingFailed(DictationError):
    code = CLEANUP_PROCESSING_FAILED

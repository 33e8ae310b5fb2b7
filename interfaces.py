"""Protocol interfaces used by the extension and companion state machines."""

from __future__ import annotations

from queue import Queue
from typing import Callable, Optional, Protocol

from models import AudioFrame, DictationSession, FinalTranscript, PasteResult, RecognitionEvent


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule(self, period_s: float, callback: Callable[[], None]) -> Cancellable: ...

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> Cancellable: ...

    def now(self) -> float: ...


class SessionStore(Protocol):
    def set_session(self, session: DictationSession) -> None: ...

    def get_session(self) -> Optional[DictationSession]: ...

    def clear_session(self) -> None: ...

    def set_raw_transcript(self, text: str) -> None: ...

    def get_raw_transcript(self) -> Optional[str]: ...

    def set_cleaned_text(self, text: str) -> None: ...

    def get_cleaned_text(self) -> Optional[str]: ...

    def set_liveness_flag(self, ready: bool) -> None: ...

    def get_liveness_flag(self) -> bool: ...

    def clear_all(self) -> None: ...


class Waker(Protocol):
    def wake(self, url: str, completion: Optional[Callable[[bool], None]] = None) -> None: ...


class SignalChannel(Protocol):
    def post(self, name: str) -> None: ...

    def observe(self, name: str, callback: Callable[[], None]) -> Cancellable: ...

    def close(self) -> None: ...


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class Transcriber(Protocol):
    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
    ) -> None: ...

    def stop(self) -> None: ...


class CaptureProvider(Protocol):
    def request_permissions(self) -> bool: ...

    def request_mic_permission(self) -> bool: ...

    def start_capture(self, on_partial: Optional[Callable[[str], None]] = None) -> None: ...

    def stop_capture(self) -> FinalTranscript: ...


class CleanupProvider(Protocol):
    def cleanup(self, raw: str) -> str: ...


class TextInsertionSink(Protocol):
    def insert_text(self, text: str) -> PasteResult: ...

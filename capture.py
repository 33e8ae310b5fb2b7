"""Capture provider: microphone recording plus speech decoding."""

from __future__ import annotations

import logging
import threading
from queue import Queue
from typing import Callable, Optional

from errors import CaptureStartFailure
from interfaces import Recorder, Transcriber
from models import AudioFrame, FinalTranscript, RecognitionEvent, RecognitionKind
from recorder import MicrophoneRecorder
from transcriber import DashscopeTranscriber

logger = logging.getLogger(__name__)

PartialCallback = Callable[[str], None]


class SoundDeviceCaptureProvider:
    def __init__(
        self,
        api_key: str = "",
        recorder: Optional[Recorder] = None,
        transcriber: Optional[Transcriber] = None,
        finalize_timeout_s: float = 10.0,
        queue_maxsize: int = 600,
    ) -> None:
        self._recorder = recorder or MicrophoneRecorder()
        self._transcriber = transcriber or DashscopeTranscriber(api_key=api_key)
        self._finalize_timeout_s = finalize_timeout_s
        self._queue_maxsize = queue_maxsize

        self._lock = threading.Lock()
        self._capturing = False
        self._on_partial: Optional[PartialCallback] = None
        self._final_event = threading.Event()
        self._final_text = ""
        self._latest_partial = ""
        self._error: Optional[RecognitionEvent] = None

    def request_permissions(self) -> bool:
        """Speech recognition is usable when the ASR backend is configured."""
        available = getattr(self._transcriber, "is_available", True)
        if not available:
            logger.info("Speech recognition unavailable: dashscope missing or no API key")
        return bool(available)

    def request_mic_permission(self) -> bool:
        probe = getattr(self._recorder, "has_input_device", None)
        if probe is None:
            return True
        return bool(probe())

    def start_capture(self, on_partial: Optional[PartialCallback] = None) -> None:
        with self._lock:
            if self._capturing:
                return
            self._on_partial = on_partial
            self._final_event.clear()
            self._final_text = ""
            self._latest_partial = ""
            self._error = None
            audio_queue: Queue[AudioFrame | None] = Queue(maxsize=self._queue_maxsize)
            try:
                self._transcriber.start(audio_queue, self._handle_event)
                self._recorder.start(audio_queue)
            except CaptureStartFailure:
                self._transcriber.stop()
                raise
            except Exception as exc:
                self._transcriber.stop()
                raise CaptureStartFailure(str(exc)) from exc
            self._capturing = True

    def stop_capture(self) -> FinalTranscript:
        with self._lock:
            if not self._capturing:
                return FinalTranscript(text="")
            self._capturing = False
            self._recorder.stop()

        got_final = self._final_event.wait(timeout=self._finalize_timeout_s)
        self._transcriber.stop()
        if self._error is not None:
            raise RuntimeError(f"{self._error.code}: {self._error.message}")
        if not got_final:
            logger.warning("Final transcript timed out; using latest partial")
            return FinalTranscript(text=self._latest_partial.strip())
        return FinalTranscript(text=self._final_text.strip())

    def _handle_event(self, event: RecognitionEvent) -> None:
        if event.kind == RecognitionKind.PARTIAL.value:
            self._latest_partial = event.text
            if self._on_partial is not None:
                try:
                    self._on_partial(event.text)
                except Exception:
                    logger.exception("Partial transcript callback failed")
            return
        if event.kind == RecognitionKind.FINAL.value:
            self._final_text = event.text
        elif event.kind == RecognitionKind.ERROR.value:
            self._error = event
        self._final_event.set()

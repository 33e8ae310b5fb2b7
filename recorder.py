"""Microphone recorder used by the companion app."""

from __future__ import annotations

import logging
import threading
import time
from queue import Full, Queue
from typing import Any

from errors import CaptureStartFailure
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class MicrophoneRecorder:
    """Pushes 16-bit PCM chunks into a queue; ``None`` marks end of audio."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.dropped_chunks = 0
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._audio_queue: Queue[AudioFrame | None] | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    def has_input_device(self) -> bool:
        """True when the default input device accepts our capture settings."""
        if sd is None:
            return False
        try:
            sd.check_input_settings(
                channels=self.channels, dtype="int16", samplerate=self.sample_rate
            )
        except Exception as exc:
            logger.info("No usable microphone: %s", exc)
            return False
        return True

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise CaptureStartFailure("sounddevice is not installed")
            self._audio_queue = audio_queue
            self.dropped_chunks = 0
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    callback=self._on_audio,
                )
                self._stream.start()
            except Exception as exc:
                self._stream = None
                raise CaptureStartFailure(str(exc)) from exc
            self._running = True

    def stop(self) -> None:
        with self._lock:
            if self._running:
                self._running = False
                if self._stream is not None:
                    self._stream.stop()
                    self._stream.close()
                    self._stream = None
                if self.dropped_chunks:
                    logger.warning("Dropped %d audio chunks", self.dropped_chunks)
            self._put_end_marker()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._audio_queue is None or np is None:
            return
        frame = AudioFrame(
            pcm16_bytes=np.asarray(indata, dtype=np.int16).tobytes(),
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            self._audio_queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1

    def _put_end_marker(self) -> None:
        if self._audio_queue is None:
            return
        try:
            self._audio_queue.put_nowait(None)
        except Full:
            pass

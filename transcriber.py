"""Speech decoding for captured audio via DashScope ``qwen3-asr-flash``.

Frames are buffered until the recorder's end marker arrives, then sent as one
base64 WAV payload.  The streaming response yields growing partial
transcripts, reported through ``on_event`` before the final one.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import wave
from queue import Empty, Queue
from typing import Callable, Optional

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, NETWORK_ERROR
from models import AudioFrame, RecognitionEvent, RecognitionKind

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def resolve_api_key(api_key: str) -> str:
    return api_key or os.getenv("DASHSCOPE_API_KEY", "")


class DashscopeTranscriber:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._audio_queue: Optional[Queue[AudioFrame | None]] = None
        self._on_event: Optional[Callable[[RecognitionEvent], None]] = None

    @property
    def is_available(self) -> bool:
        return dashscope is not None and bool(resolve_api_key(self._api_key))

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
    ) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._audio_queue = audio_queue
        self._on_event = on_event
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=0.5)

    def _worker(self) -> None:
        if self._audio_queue is None or self._on_event is None:
            return

        pcm = bytearray()
        sample_rate = 16000
        channels = 1
        while not self._stop_event.is_set():
            try:
                frame = self._audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:
                break
            pcm.extend(frame.pcm16_bytes)
            sample_rate = frame.sample_rate
            channels = frame.channels

        if self._stop_event.is_set():
            return
        if not pcm:
            self._emit(RecognitionKind.FINAL, text="")
            return
        self._transcribe(pcm_to_wav_base64(bytes(pcm), sample_rate, channels))

    def _transcribe(self, wav_base64: str) -> None:
        if dashscope is None:
            self._emit(RecognitionKind.ERROR, code=ASR_PROTOCOL_ERROR, message="dashscope is not installed")
            return
        api_key = resolve_api_key(self._api_key)
        if not api_key:
            self._emit(RecognitionKind.ERROR, code=AUTH_FAILED, message="No API key configured")
            return

        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_base64}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False},
                stream=True,
                timeout=self._request_timeout_s,
            )
            latest = ""
            for chunk in response:
                if self._stop_event.is_set():
                    return
                text = _chunk_text(chunk)
                if text:
                    latest = text
                    self._emit(RecognitionKind.PARTIAL, text=text)
        except Exception as exc:
            logger.warning("Transcription request failed: %s", exc)
            self._emit_failure(exc)
            return
        self._emit(RecognitionKind.FINAL, text=latest)

    def _emit(self, kind: RecognitionKind, text: str = "", code: str = "", message: str = "", retryable: bool = False) -> None:
        if self._on_event is None:
            return
        self._on_event(
            RecognitionEvent(kind=kind.value, text=text, code=code, message=message, retryable=retryable)
        )

    def _emit_failure(self, exc: Exception) -> None:
        message = str(exc)
        low = message.lower()
        if "401" in low or "auth" in low or "api key" in low:
            self._emit(RecognitionKind.ERROR, code=AUTH_FAILED, message=message)
        elif "timeout" in low or "network" in low or "connection" in low:
            self._emit(RecognitionKind.ERROR, code=NETWORK_ERROR, message=message, retryable=True)
        else:
            self._emit(RecognitionKind.ERROR, code=ASR_PROTOCOL_ERROR, message=message, retryable=True)


def _chunk_text(chunk: object) -> str:
    if not isinstance(chunk, dict):
        return ""
    choices = chunk.get("output", {}).get("choices", [])
    if not choices:
        return ""
    content = choices[0].get("message", {}).get("content", [])
    if not content or not isinstance(content[0], dict):
        return ""
    return str(content[0].get("text", ""))

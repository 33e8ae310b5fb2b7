"""Transcript cleanup through a DashScope chat model."""

from __future__ import annotations

import logging
from typing import Any

from errors import CleanupProcessingFailed, CleanupUnavailable
from transcriber import resolve_api_key

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

CLEANUP_INSTRUCTIONS = (
    "You are a text cleanup assistant. Your job is to fix punctuation, "
    "capitalization, and remove filler words (um, uh, like, you know) as well as "
    "false starts and repetitions. Preserve the original meaning exactly.\n\n"
    "Output only the cleaned text with no extra commentary or explanations. "
    "Do not add content that wasn't spoken."
)


class DashscopeCleanupProvider:
    def __init__(
        self,
        api_key: str = "",
        model: str = "qwen-turbo",
        request_timeout_s: float = 20.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s

    def cleanup(self, raw: str) -> str:
        if not raw.strip():
            return raw
        if dashscope is None:
            raise CleanupUnavailable("dashscope is not installed")
        api_key = resolve_api_key(self._api_key)
        if not api_key:
            raise CleanupUnavailable("no API key configured")

        try:
            response = dashscope.Generation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": CLEANUP_INSTRUCTIONS},
                    {"role": "user", "content": raw},
                ],
                result_format="message",
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            raise CleanupProcessingFailed(str(exc)) from exc

        status = _field(response, "status_code")
        if status is not None and status != 200:
            raise CleanupProcessingFailed(f"{status} {_field(response, 'message') or ''}".strip())

        cleaned = _message_text(response).strip()
        if not cleaned:
            logger.info("Cleanup returned no text; keeping raw transcript")
            return raw
        return cleaned


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _message_text(response: Any) -> str:
    output = _field(response, "output") or {}
    choices = _field(output, "choices") or []
    if not choices:
        return str(_field(output, "text") or "")
    message = _field(choices[0], "message") or {}
    return str(_field(message, "content") or "")

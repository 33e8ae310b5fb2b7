"""Shared key-value store visible to both the keyboard and the companion app.

Every key lives in its own JSON file inside the shared group directory so that
transcript updates never rewrite the session record.  There is no locking:
the last write wins and the other process only sees it on its next poll.
Storage failures are logged and swallowed; reads report "absent" and writes
are dropped.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from errors import ERROR_MESSAGES, STORE_UNAVAILABLE
from models import DictationSession

logger = logging.getLogger(__name__)

CURRENT_SESSION_KEY = "currentSession"
RAW_TRANSCRIPT_KEY = "rawTranscript"
CLEANED_TEXT_KEY = "cleanedText"
HOST_LIVENESS_KEY = "hostLiveness"

ALL_KEYS = (CURRENT_SESSION_KEY, RAW_TRANSCRIPT_KEY, CLEANED_TEXT_KEY, HOST_LIVENESS_KEY)

_MISSING = object()


def default_group_dir() -> Path:
    return Path.home() / ".config" / "appgroup_dictation" / "group"


class _KeyValueSessionStore:
    """Typed accessors on top of a raw ``_read``/``_write``/``_remove`` backend."""

    def set_session(self, session: DictationSession) -> None:
        self._write(CURRENT_SESSION_KEY, session.to_dict())

    def get_session(self) -> Optional[DictationSession]:
        data = self._read(CURRENT_SESSION_KEY)
        if data is _MISSING:
            return None
        try:
            return DictationSession.from_dict(data)
        except ValueError as exc:
            logger.warning("Discarding unreadable session record: %s", exc)
            return None

    def clear_session(self) -> None:
        self._remove(CURRENT_SESSION_KEY)

    def set_raw_transcript(self, text: str) -> None:
        self._write(RAW_TRANSCRIPT_KEY, text)

    def get_raw_transcript(self) -> Optional[str]:
        return self._read_text(RAW_TRANSCRIPT_KEY)

    def set_cleaned_text(self, text: str) -> None:
        self._write(CLEANED_TEXT_KEY, text)

    def get_cleaned_text(self) -> Optional[str]:
        return self._read_text(CLEANED_TEXT_KEY)

    def set_liveness_flag(self, ready: bool) -> None:
        self._write(HOST_LIVENESS_KEY, bool(ready))

    def get_liveness_flag(self) -> bool:
        value = self._read(HOST_LIVENESS_KEY)
        return value is True

    def clear_all(self) -> None:
        for key in ALL_KEYS:
            self._remove(key)

    def _read_text(self, key: str) -> Optional[str]:
        value = self._read(key)
        if value is _MISSING or value is None:
            return None
        return str(value)

    def _read(self, key: str) -> Any:
        raise NotImplementedError

    def _write(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def _remove(self, key: str) -> None:
        raise NotImplementedError


class JsonFileSessionStore(_KeyValueSessionStore):
    def __init__(self, directory: Path | None = None) -> None:
        self._dir = directory or default_group_dir()
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("%s (%s): %s", ERROR_MESSAGES[STORE_UNAVAILABLE], self._dir, exc)

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def _read(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return _MISSING
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to read %s: %s", key, exc)
            return _MISSING

    def _write(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self._path(key))
        except OSError as exc:
            logger.warning("Dropped write to %s: %s", key, exc)

    def _remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove %s: %s", key, exc)


class InMemorySessionStore(_KeyValueSessionStore):
    """Dict-backed store for tests and single-process runs.

    Setting ``available`` to False makes every read report absent and every
    write a no-op, the same as an unreachable group container.
    """

    def __init__(self) -> None:
        self.available = True
        self._data: dict[str, Any] = {}

    def _read(self, key: str) -> Any:
        if not self.available:
            logger.warning("%s: read %s", ERROR_MESSAGES[STORE_UNAVAILABLE], key)
            return _MISSING
        return self._data.get(key, _MISSING)

    def _write(self, key: str, value: Any) -> None:
        if not self.available:
            logger.warning("%s: dropped write to %s", ERROR_MESSAGES[STORE_UNAVAILABLE], key)
            return
        self._data[key] = json.loads(json.dumps(value))

    def _remove(self, key: str) -> None:
        if not self.available:
            return
        self._data.pop(key, None)

"""Simple JSON-based config store shared by both entry points."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from liveness import DEFAULT_EXTENSION_PORT, DEFAULT_HOST_PORT
from session_store import default_group_dir
from waker import DEFAULT_WAKE_URL


def default_config_path() -> Path:
    return Path.home() / ".config" / "appgroup_dictation" / "config.json"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or default_config_path()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        return str(self._get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_hotkey(self) -> str:
        return str(self._get("hotkey", "Key.alt_r"))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_cancel_hotkey(self) -> str:
        return str(self._get("cancel_hotkey", "Key.esc"))

    def get_group_dir(self) -> Path:
        value = self._get("group_dir", "")
        return Path(value).expanduser() if value else default_group_dir()

    def set_group_dir(self, path: Path) -> None:
        self._set("group_dir", str(path))

    def get_wake_url(self) -> str:
        return str(self._get("wake_url", DEFAULT_WAKE_URL))

    def get_host_signal_port(self) -> int:
        return self._get_int("host_signal_port", DEFAULT_HOST_PORT)

    def get_extension_signal_port(self) -> int:
        return self._get_int("extension_signal_port", DEFAULT_EXTENSION_PORT)

    def get_session_timeout_s(self) -> Optional[float]:
        value = self._get("session_timeout_s", None)
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def set_session_timeout_s(self, seconds: Optional[float]) -> None:
        self._set("session_timeout_s", seconds)

    def _get(self, key: str, default: Any) -> Any:
        return self._read_all().get(key, default)

    def _get_int(self, key: str, default: int) -> int:
        try:
            return int(self._get(key, default))
        except (TypeError, ValueError):
            return default

    def _set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

from __future__ import annotations

from pathlib import Path

from config import JsonConfigStore
from liveness import DEFAULT_EXTENSION_PORT, DEFAULT_HOST_PORT
from waker import DEFAULT_WAKE_URL


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_api_key() == ""
    assert store.get_hotkey() == "Key.alt_r"

    store.set_api_key("abc")
    store.set_hotkey("Key.f9")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_api_key() == "abc"
    assert reloaded.get_hotkey() == "Key.f9"


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_api_key() == ""
    assert store.get_hotkey() == "Key.alt_r"


def test_non_object_json_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[1, 2]", encoding="utf-8")

    assert JsonConfigStore(path=path).get_cancel_hotkey() == "Key.esc"


def test_defaults(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")

    assert store.get_wake_url() == DEFAULT_WAKE_URL
    assert store.get_host_signal_port() == DEFAULT_HOST_PORT
    assert store.get_extension_signal_port() == DEFAULT_EXTENSION_PORT
    assert store.get_session_timeout_s() is None
    assert store.get_group_dir().name == "group"


def test_group_dir_and_timeout_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    store.set_group_dir(tmp_path / "shared")
    store.set_session_timeout_s(12.5)

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_group_dir() == tmp_path / "shared"
    assert reloaded.get_session_timeout_s() == 12.5

    reloaded.set_session_timeout_s(None)
    assert reloaded.get_session_timeout_s() is None


def test_bad_port_falls_back_to_default(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"host_signal_port": "abc"}', encoding="utf-8")

    assert JsonConfigStore(path=path).get_host_signal_port() == DEFAULT_HOST_PORT

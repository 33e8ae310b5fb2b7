from __future__ import annotations

import pytest

pytest.importorskip("PySide6.QtWidgets")

import main  # noqa: E402


def test_parse_args_roles() -> None:
    args = main.parse_args(["host", "--activate", "voicedictation://start"])
    assert args.role == "host"
    assert args.activate == "voicedictation://start"
    assert main.parse_args(["keyboard", "--verbose"]).verbose is True


def test_second_host_instance_exits_cleanly(monkeypatch) -> None:  # noqa: ANN001
    def port_in_use(config_store, activation_url=None):  # noqa: ANN001, ANN202
        raise OSError(98, "Address already in use")

    monkeypatch.setattr(main, "setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(main, "JsonConfigStore", lambda: object())
    monkeypatch.setattr(main, "HostApp", port_in_use)

    assert main.main(["host", "--activate", "voicedictation://start"]) == 0

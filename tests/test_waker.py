from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

import waker
from waker import DEFAULT_WAKE_URL, QtUrlWaker, is_start_url, parse_activation_url


def test_parse_activation_url() -> None:
    assert DEFAULT_WAKE_URL == "voicedictation://start"
    assert parse_activation_url("voicedictation://start") == "start"
    assert parse_activation_url("voicedictation://") is None
    assert parse_activation_url("https://start") is None
    assert is_start_url("voicedictation://start")
    assert not is_start_url("voicedictation://settings")


@patch("waker.QUrl")
@patch("waker.QDesktopServices")
def test_wake_opens_url_and_reports(mock_services: MagicMock, mock_url: MagicMock) -> None:
    mock_services.openUrl.return_value = True
    results: list[bool] = []

    QtUrlWaker().wake(DEFAULT_WAKE_URL, results.append)

    mock_url.assert_called_once_with(DEFAULT_WAKE_URL)
    assert results == [True]


@patch("waker.QUrl", MagicMock())
@patch("waker.QDesktopServices")
def test_unhandled_wake_reports_false(mock_services: MagicMock) -> None:
    mock_services.openUrl.return_value = False
    results: list[bool] = []

    QtUrlWaker().wake(DEFAULT_WAKE_URL, results.append)

    assert results == [False]


def test_wake_without_qt_raises(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(waker, "QDesktopServices", None)
    with pytest.raises(RuntimeError, match="PySide6"):
        QtUrlWaker().wake(DEFAULT_WAKE_URL)

"""Tests for MicrophoneRecorder."""

from __future__ import annotations

from queue import Queue
from unittest.mock import MagicMock, patch

import pytest

import recorder as rec_mod
from errors import CaptureStartFailure
from models import AudioFrame
from recorder import MicrophoneRecorder


class _FakeNp:
    """Just enough numpy for ``_on_audio``."""

    int16 = "int16"

    @staticmethod
    def asarray(data, dtype=None):  # noqa: ANN001, ANN205
        return data


class _FakeBlock:
    def __init__(self, n_samples: int = 1600) -> None:
        self._data = b"\x00\x00" * n_samples

    def tobytes(self) -> bytes:
        return self._data


@patch("recorder.sd")
def test_start_opens_stream_and_stop_closes_it(mock_sd: MagicMock) -> None:
    stream = MagicMock()
    mock_sd.InputStream.return_value = stream
    recorder = MicrophoneRecorder(chunk_ms=100)
    q: Queue[AudioFrame | None] = Queue()

    recorder.start(q)
    assert recorder.is_running
    assert mock_sd.InputStream.call_args.kwargs["blocksize"] == 1600
    stream.start.assert_called_once()

    recorder.stop()
    stream.stop.assert_called_once()
    stream.close.assert_called_once()
    assert not recorder.is_running
    assert q.get_nowait() is None


@patch("recorder.sd")
def test_second_start_is_ignored(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    recorder = MicrophoneRecorder()
    q: Queue[AudioFrame | None] = Queue()

    recorder.start(q)
    recorder.start(q)

    assert mock_sd.InputStream.call_count == 1
    recorder.stop()


@patch("recorder.sd")
def test_stream_open_failure_raises_capture_start_failure(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.side_effect = OSError("device busy")
    recorder = MicrophoneRecorder()

    with pytest.raises(CaptureStartFailure, match="device busy"):
        recorder.start(Queue())
    assert not recorder.is_running


def test_start_without_sounddevice_raises(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(rec_mod, "sd", None)
    with pytest.raises(CaptureStartFailure, match="sounddevice is not installed"):
        MicrophoneRecorder().start(Queue())


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_audio_callback_queues_frames(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    recorder = MicrophoneRecorder(sample_rate=16000, channels=1)
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)

    recorder._on_audio(_FakeBlock(1600), frames=1600, time_info=None, status=None)

    frame = q.get_nowait()
    assert isinstance(frame, AudioFrame)
    assert len(frame.pcm16_bytes) == 3200
    assert frame.sample_rate == 16000
    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_full_queue_counts_dropped_chunks(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    recorder = MicrophoneRecorder()
    q: Queue[AudioFrame | None] = Queue(maxsize=1)
    recorder.start(q)

    recorder._on_audio(_FakeBlock(), frames=1600, time_info=None, status=None)
    recorder._on_audio(_FakeBlock(), frames=1600, time_info=None, status=None)

    assert recorder.dropped_chunks == 1
    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_after_stop_is_ignored(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    recorder = MicrophoneRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)
    recorder.stop()
    q.get_nowait()

    recorder._on_audio(_FakeBlock(), frames=1600, time_info=None, status=None)

    assert q.empty()


@patch("recorder.sd")
def test_has_input_device_checks_settings(mock_sd: MagicMock) -> None:
    recorder = MicrophoneRecorder()
    assert recorder.has_input_device() is True
    mock_sd.check_input_settings.assert_called_once_with(channels=1, dtype="int16", samplerate=16000)

    mock_sd.check_input_settings.side_effect = Exception("no default input device")
    assert recorder.has_input_device() is False


def test_has_input_device_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(rec_mod, "sd", None)
    assert MicrophoneRecorder().has_input_device() is False

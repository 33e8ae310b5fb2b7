from __future__ import annotations

import socket
import threading
from typing import Callable, Optional

import pytest

from liveness import (
    CANCEL_RECORDING,
    HOST_APP_STATE_CHANGED,
    PING,
    PONG,
    RECORDING_STARTED,
    STOP_RECORDING,
    TEXT_READY,
    HostLivenessResponder,
    InProcessSignalChannel,
    LivenessMonitor,
    UdpSignalChannel,
)
from scheduler import VirtualScheduler
from session_store import InMemorySessionStore


class FakeWaker:
    def __init__(self) -> None:
        self.urls: list[str] = []

    def wake(self, url: str, completion: Optional[Callable[[bool], None]] = None) -> None:
        self.urls.append(url)
        if completion is not None:
            completion(True)


def _setup(with_host: bool = True):  # noqa: ANN202
    keyboard_side, host_side = InProcessSignalChannel.pair()
    store = InMemorySessionStore()
    scheduler = VirtualScheduler()
    waker = FakeWaker()
    monitor = LivenessMonitor(keyboard_side, waker, scheduler, store=store)
    responder = HostLivenessResponder(host_side, store) if with_host else None
    return monitor, responder, keyboard_side, host_side, store, scheduler, waker


def test_pong_marks_host_ready() -> None:
    monitor, _, keyboard_side, _, _, _, _ = _setup()
    assert monitor.is_host_app_ready is False

    monitor.ping()

    assert keyboard_side.posted == [PING]
    assert monitor.is_host_app_ready is True


def test_no_companion_means_not_confirmed() -> None:
    monitor, _, _, _, _, _, _ = _setup(with_host=False)
    monitor.ping()
    assert monitor.is_host_app_ready is False


def test_ensure_ready_resolves_immediately_when_cached() -> None:
    monitor, _, _, _, _, _, waker = _setup()
    monitor.ping()
    results: list[bool] = []

    monitor.ensure_host_app_ready(results.append)

    assert results == [True]
    assert waker.urls == []


def test_ensure_ready_wakes_and_resolves_on_pong() -> None:
    monitor, _, _, _, _, scheduler, waker = _setup()
    results: list[bool] = []

    monitor.ensure_host_app_ready(results.append)

    assert waker.urls == ["voicedictation://start"]
    assert results == [True]
    assert scheduler.pending == 0


def test_ensure_ready_times_out_but_still_wakes() -> None:
    monitor, _, keyboard_side, _, _, scheduler, waker = _setup()
    keyboard_side.drop = True
    results: list[bool] = []

    monitor.ensure_host_app_ready(results.append)
    scheduler.advance(2.9)
    assert results == []

    scheduler.advance(0.2)

    assert results == [False]
    assert waker.urls == ["voicedictation://start"]
    assert monitor.is_host_app_ready is False


def test_concurrent_waiters_share_one_wake() -> None:
    monitor, _, keyboard_side, _, _, scheduler, waker = _setup()
    keyboard_side.drop = True
    results: list[bool] = []

    monitor.ensure_host_app_ready(results.append)
    monitor.ensure_host_app_ready(results.append)
    scheduler.advance(3.0)

    assert results == [False, False]
    assert len(waker.urls) == 1


def test_late_announcement_resolves_pending_waiter() -> None:
    monitor, responder, keyboard_side, _, store, scheduler, _ = _setup()
    keyboard_side.drop = True
    results: list[bool] = []
    monitor.ensure_host_app_ready(results.append)

    scheduler.advance(1.0)
    responder.set_foreground(True)

    assert results == [True]
    assert store.get_liveness_flag() is True
    scheduler.advance(5.0)
    assert results == [True]


def test_background_announcement_clears_readiness() -> None:
    monitor, responder, _, _, store, _, _ = _setup()
    responder.set_foreground(True)
    assert monitor.is_host_app_ready is True

    responder.set_foreground(False)

    assert store.get_liveness_flag() is False
    assert monitor.is_host_app_ready is False


def test_monitor_starts_from_persisted_flag() -> None:
    keyboard_side, _ = InProcessSignalChannel.pair()
    store = InMemorySessionStore()
    store.set_liveness_flag(True)

    monitor = LivenessMonitor(keyboard_side, FakeWaker(), VirtualScheduler(), store=store)

    assert monitor.is_host_app_ready is True


def test_host_hints_trigger_callbacks() -> None:
    monitor, responder, _, _, _, _, _ = _setup()
    hints: list[str] = []
    monitor.on_hint(lambda: hints.append("poll"))

    responder.announce(RECORDING_STARTED)
    responder.announce(TEXT_READY)

    assert hints == ["poll", "poll"]
    assert monitor.is_host_app_ready is True


def test_legacy_command_signal_triggers_host_hint() -> None:
    keyboard_side, host_side = InProcessSignalChannel.pair()
    polls: list[int] = []
    HostLivenessResponder(host_side, InMemorySessionStore(), on_command_hint=lambda: polls.append(1))

    keyboard_side.post(CANCEL_RECORDING)

    assert polls == [1]


def test_closed_monitor_stops_observing() -> None:
    monitor, responder, _, _, _, _, _ = _setup()
    monitor.close()

    responder.announce(PONG)

    assert monitor.is_host_app_ready is False


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_udp_channel_delivers_signals() -> None:
    port_a, port_b = _free_port(), _free_port()
    left = UdpSignalChannel(listen_port=port_a, peer_port=port_b)
    right = UdpSignalChannel(listen_port=port_b, peer_port=port_a)
    received = threading.Event()
    right.observe(HOST_APP_STATE_CHANGED, received.set)
    try:
        left.post(HOST_APP_STATE_CHANGED)
        assert received.wait(timeout=2.0)
    finally:
        left.close()
        right.close()


def test_udp_post_without_listener_is_dropped_silently() -> None:
    channel = UdpSignalChannel(listen_port=_free_port(), peer_port=_free_port())
    try:
        channel.post(PING)
    finally:
        channel.close()


def test_command_hint_is_posted_to_the_host() -> None:
    monitor, _, keyboard_side, _, _, _, _ = _setup()

    monitor.post_command_hint(STOP_RECORDING)

    assert keyboard_side.posted == [STOP_RECORDING]


def test_only_command_signals_can_be_hinted() -> None:
    monitor, _, _, _, _, _, _ = _setup()
    with pytest.raises(ValueError):
        monitor.post_command_hint(PONG)

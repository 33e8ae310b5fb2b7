"""Timer abstractions driving the two polling loops."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class _ThreadJob:
    def __init__(self, period_s: float, callback: Callable[[], None]) -> None:
        self._period_s = period_s
        self._callback = callback
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> "_ThreadJob":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._stop_event.set()

    def _run(self) -> None:
        while not self._stop_event.wait(self._period_s):
            try:
                self._callback()
            except Exception:
                logger.exception("Scheduled job failed")


class _TimerHandle:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler:
    """Wall-clock scheduler: one daemon thread per repeating job."""

    def schedule(self, period_s: float, callback: Callable[[], None]) -> _ThreadJob:
        return _ThreadJob(max(0.01, period_s), callback).start()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _TimerHandle:
        def _fire() -> None:
            try:
                callback()
            except Exception:
                logger.exception("Delayed job failed")

        timer = threading.Timer(max(0.0, delay_s), _fire)
        timer.daemon = True
        timer.start()
        return _TimerHandle(timer)

    def now(self) -> float:
        return time.monotonic()


class _VirtualJob:
    def __init__(self, due: float, period_s: Optional[float], callback: Callable[[], None]) -> None:
        self.due = due
        self.period_s = period_s
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """Simulated clock; nothing runs until ``advance`` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._heap: list[tuple[float, int, _VirtualJob]] = []
        self._seq = itertools.count()

    def schedule(self, period_s: float, callback: Callable[[], None]) -> _VirtualJob:
        job = _VirtualJob(self._now + period_s, period_s, callback)
        self._push(job)
        return job

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _VirtualJob:
        job = _VirtualJob(self._now + max(0.0, delay_s), None, callback)
        self._push(job)
        return job

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for _, _, job in self._heap if not job.cancelled)

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while self._heap and self._heap[0][0] <= target + 1e-9:
            due, _, job = heapq.heappop(self._heap)
            if job.cancelled:
                continue
            self._now = max(self._now, due)
            if job.period_s is not None:
                job.due = due + job.period_s
                self._push(job)
            job.callback()
        self._now = target

    def _push(self, job: _VirtualJob) -> None:
        heapq.heappush(self._heap, (job.due, next(self._seq), job))

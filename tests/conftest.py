"""
Pytest fixtures: a hand-driven monotonic clock and a scheduler on top of it.
"""

import heapq

import pytest


class FakeClock:
    def __init__(self, start: float = 10_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class _Handle:
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """asyncio-like call_later; callbacks run only inside advance()."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self._queue = []
        self._seq = 0

    def call_later(self, delay, callback, *args):
        handle = _Handle()
        self._seq += 1
        due = round(self.clock.now + delay * 1000.0, 6)
        heapq.heappush(self._queue, (due, self._seq, handle, callback, args))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for item in self._queue if not item[2].cancelled)

    def advance(self, ms: float) -> None:
        target = self.clock.now + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback, args = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.clock.now = max(self.clock.now, due)
            callback(*args)
        self.clock.now = target


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return FakeScheduler(clock)

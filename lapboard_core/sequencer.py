"""Scheduled drivers around the pure core: start lights and the refresh loop.

Both only ever schedule callbacks; nothing here sleeps. Any object with an
asyncio-style ``call_later(delay_seconds, callback)`` works as the scheduler,
an ``asyncio`` event loop included.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Protocol

from .config import DEFAULT_CONFIG, EngineConfig

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        ...


Dispatch = Callable[[Dict[str, Any]], Any]


class StartSequencer:
    """Start lights: one light immediately, one per interval, then lights out.

    With the defaults (5 lights, 700 ms) the lights come on at 0, 700, ...,
    2800 ms and go out at 3500 ms. The sequence cannot be cancelled.
    """

    def __init__(
        self,
        dispatch: Dispatch,
        scheduler: Scheduler,
        config: EngineConfig = DEFAULT_CONFIG,
    ) -> None:
        self._dispatch = dispatch
        self._scheduler = scheduler
        self._config = config
        self._stage = 0
        self._handle: TimerHandle | None = None

    @property
    def in_progress(self) -> bool:
        return self._handle is not None

    def start(self) -> bool:
        """Begin the sequence. False if the core refused (already starting/running)."""
        outcome = self._dispatch({"type": "START_SEQUENCE"})
        if outcome is None or outcome.cmd_payload.get("ignored"):
            return False
        self._stage = 0
        self._step()
        return True

    def _step(self) -> None:
        interval = self._config.light_interval_ms / 1000.0
        if self._stage < self._config.light_count:
            self._stage += 1
            logger.debug(f"Start light {self._stage}/{self._config.light_count} on")
            self._dispatch({"type": "LIGHT_ON"})
            self._handle = self._scheduler.call_later(interval, self._step)
            return
        self._handle = None
        self._dispatch({"type": "LIGHTS_OUT"})


class RefreshTicker:
    """Presentation refresh loop, alive only while the session runs.

    ``sync()`` must be called after every state change; it schedules the
    first frame when the session is running and cancels the pending frame
    synchronously when it is not.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        is_running: Callable[[], bool],
        render: Callable[[], Any],
        interval_ms: int = DEFAULT_CONFIG.frame_interval_ms,
    ) -> None:
        self._scheduler = scheduler
        self._is_running = is_running
        self._render = render
        self._interval = interval_ms / 1000.0
        self._handle: TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def sync(self) -> None:
        running = self._is_running()
        if running and self._handle is None:
            self._handle = self._scheduler.call_later(self._interval, self._tick)
        elif not running and self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        self._handle = None
        self._render()
        if self._is_running():
            self._handle = self._scheduler.call_later(self._interval, self._tick)

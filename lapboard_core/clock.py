"""Session clock: elapsed session time over a monotonic source.

The clock never reads wall time. Every function takes ``now`` (monotonic
milliseconds) so callers decide the time source and tests stay deterministic.
"""
from __future__ import annotations

import time
from typing import Any, Dict


def monotonic_ms() -> float:
    """Default time source for the engine."""
    return time.monotonic() * 1000.0


def session_time(session: Dict[str, Any], now: float) -> float:
    """Elapsed session time in ms, accounting for pauses."""
    elapsed = session.get("elapsed") or 0
    if session.get("running") and session.get("startedAt") is not None:
        return elapsed + (now - session["startedAt"])
    return elapsed


def pause_session(session: Dict[str, Any], now: float) -> bool:
    """Fold the running stretch into ``elapsed`` and stop the clock.

    Returns False (and changes nothing) when already paused.
    """
    if not session.get("running"):
        return False
    session["elapsed"] = session_time(session, now)
    session["running"] = False
    session["startedAt"] = None
    return True


def resume_session(session: Dict[str, Any], now: float) -> bool:
    """Restart the clock on top of the accumulated ``elapsed``.

    Returns False (and changes nothing) when already running.
    """
    if session.get("running"):
        return False
    session["startedAt"] = now
    session["running"] = True
    return True

"""Session ranking engine.

Single source of truth for driver order across view/export:
- Comparator: more laps first; then lower total time; then drivers with a
  best lap ahead of those without; then lower best lap.
- Full ties keep input (slot) order; positions are never shared.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Sequence

from .session import active_driver_ids


@dataclass(frozen=True)
class DriverStats:
    driver_id: int
    name: str
    lap_count: int
    best: int | None
    last: int | None
    total: int


@dataclass(frozen=True)
class RankingRow:
    position: int
    driver_id: int
    name: str
    lap_count: int
    best: int | None
    last: int | None
    total: int
    is_fastest: bool


def _sort_key(stats: DriverStats) -> tuple[int, int, int, float]:
    return (
        -stats.lap_count,
        stats.total,
        1 if stats.best is None else 0,
        math.inf if stats.best is None else stats.best,
    )


def stats_from_driver(driver: Dict[str, Any]) -> DriverStats:
    laps = driver.get("laps") or []
    return DriverStats(
        driver_id=int(driver.get("id") or 0),
        name=str(driver.get("name") or ""),
        lap_count=len(laps),
        best=driver.get("best"),
        last=driver.get("lastLap"),
        total=int(driver.get("sum") or 0),
    )


def compute_ranking(drivers: Sequence[DriverStats]) -> tuple[RankingRow, ...]:
    """
    Order drivers by performance and assign 1-based positions.

    Args:
      drivers: stats in slot order; the order decides full ties.
    """
    # sorted() is stable: equal keys keep slot order.
    ordered = sorted(drivers, key=_sort_key)
    bests = [d.best for d in ordered if d.best is not None]
    overall_best = min(bests) if bests else None
    return tuple(
        RankingRow(
            position=pos,
            driver_id=d.driver_id,
            name=d.name,
            lap_count=d.lap_count,
            best=d.best,
            last=d.last,
            total=d.total,
            is_fastest=overall_best is not None and d.best == overall_best,
        )
        for pos, d in enumerate(ordered, start=1)
    )


def ranking_for_state(state: Dict[str, Any]) -> tuple[RankingRow, ...]:
    drivers = state.get("drivers") or {}
    return compute_ranking([stats_from_driver(drivers[i]) for i in active_driver_ids(state)])

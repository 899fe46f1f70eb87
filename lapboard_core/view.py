"""Read-only rendering feed built from the session state."""
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from .clock import session_time
from .ranking import ranking_for_state
from .session import active_driver_ids, session_status


def format_ms(ms: float) -> str:
    """Format milliseconds as MM:SS.mmm (minutes are not wrapped at 60)."""
    ms = max(0, int(ms))
    minutes = ms // 60000
    seconds = (ms % 60000) // 1000
    millis = ms % 1000
    return f"{minutes:02d}:{seconds:02d}.{millis:03d}"


def _format_optional(ms: int | None) -> str | None:
    return format_ms(ms) if ms is not None else None


def build_view(state: Dict[str, Any], now: float) -> Dict[str, Any]:
    """Snapshot for the presentation layer.

    Everything returned is freshly built; mutating it never touches ``state``.
    """
    sess = state.get("session") or {}
    starting = bool((state.get("locks") or {}).get("starting"))
    running = bool(sess.get("running"))
    t = session_time(sess, now)
    active = state.get("activeDriver")

    drivers = []
    for i in active_driver_ids(state):
        d = state["drivers"][i]
        drivers.append(
            {
                "id": i,
                "name": d.get("name"),
                "active": i == active,
                "lapCount": len(d.get("laps") or []),
                "laps": list(d.get("laps") or []),
                "best": d.get("best"),
                "bestFmt": _format_optional(d.get("best")),
                "lastLap": d.get("lastLap"),
                "lastLapFmt": _format_optional(d.get("lastLap")),
                "sum": d.get("sum") or 0,
                "sumFmt": format_ms(d.get("sum") or 0),
            }
        )

    return {
        "sessionTimeMs": t,
        "sessionTime": format_ms(t),
        "status": session_status(state),
        "lightsOn": state.get("lightsOn") or 0,
        "drivers": drivers,
        "activeDriver": active,
        "driversCount": state.get("driversCount"),
        "flags": dict(state.get("flags") or {}),
        "ranking": [asdict(row) for row in ranking_for_state(state)],
        "controls": {
            "canStart": not starting and not running,
            "canPause": not starting and running,
            "canResume": not starting and not running,
        },
        "version": state.get("version") or 0,
    }

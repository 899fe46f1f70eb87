"""Keyboard shortcuts for a single-operator console.

Enter starts, space pauses/resumes, Tab cycles the active driver, s/v toggle
the safety car flags, r resets, e exports, 1-4 register a lap.
"""
from __future__ import annotations

from typing import Any, Dict

from .config import MAX_DRIVERS

# Keys that map to actions outside apply_command.
START = "start"
EXPORT = "export"


def command_for_key(key: str, state: Dict[str, Any], *, repeat: bool = False) -> Dict[str, Any] | str | None:
    """Translate a key press into a command dict, an engine action name, or None.

    Auto-repeat events and digits above the current driver count are ignored.
    """
    if repeat or not key:
        return None
    k = key.lower()
    if k == "enter":
        return START
    if k in (" ", "space"):
        return {"type": "TOGGLE_PAUSE"}
    if k == "tab":
        return {"type": "NEXT_ACTIVE_DRIVER"}
    if k == "s":
        return {"type": "TOGGLE_FLAG", "flag": "sc"}
    if k == "v":
        return {"type": "TOGGLE_FLAG", "flag": "vsc"}
    if k == "r":
        return {"type": "HARD_RESET"}
    if k == "e":
        return EXPORT
    if len(k) == 1 and k.isdigit():
        n = int(k)
        if 1 <= n <= MAX_DRIVERS and n <= (state.get("driversCount") or 1):
            return {"type": "REGISTER_LAP", "driverId": n}
    return None


def handle_key(engine, key: str, *, repeat: bool = False) -> Any:
    """Run the action bound to ``key`` on ``engine`` (a TimingEngine)."""
    action = command_for_key(key, engine.state, repeat=repeat)
    if action is None:
        return None
    if action == START:
        return engine.start()
    if action == EXPORT:
        return engine.export_csv()
    return engine.dispatch(action)

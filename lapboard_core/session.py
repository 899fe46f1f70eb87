"""Core session state transitions (pure, no UI/storage).

This module implements the timing rules for a lap-counting practice session.
Functions are deterministic for a given ``now`` (monotonic milliseconds) and
do no I/O.

Architecture:
- State is a plain dict (see types.SessionState): session clock, start lock,
  flags, roster and four fixed driver slots
- Commands are plain dicts with a 'type' field (START_SEQUENCE, REGISTER_LAP, ...)
- apply_command() takes (state, cmd, now) and returns CommandOutcome with updated state
- Mutations are performed on a deepcopy; the caller's dict is refreshed afterwards
- The engine receives CommandOutcome and persists/broadcasts as needed

Key concepts:
- Session time: elapsed ms since the session started, excluding pauses (clock.py)
- lastLapAt: session time at which a driver's current lap began
- _lastRegisterTs: monotonic ms of the last accepted lap, used for debouncing;
  transient, never persisted
- locks.starting: held for the whole start-light sequence

State transitions:
- START_SEQUENCE: idle/paused -> starting (no-op while starting or running)
- LIGHT_ON: one more start light (starting only)
- LIGHTS_OUT: starting -> running; seeds lap zero for every active driver
- PAUSE / RESUME / TOGGLE_PAUSE: session clock control
- REGISTER_LAP: close the driver's current lap (debounced)
- TOGGLE_FLAG: safety car / virtual safety car, mutually exclusive
- SET_DRIVERS_COUNT / SET_ACTIVE_DRIVER / NEXT_ACTIVE_DRIVER: roster
- HARD_RESET: full reset to default_state(), storage must be cleared
"""
from __future__ import annotations

import math
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Dict, List

from .clock import monotonic_ms, pause_session, resume_session, session_time
from .config import DEFAULT_CONFIG, MAX_DRIVERS, EngineConfig

# Commands that make no sense until the start lights have gone out.
LOCKED_WHILE_STARTING = frozenset(
    {"PAUSE", "RESUME", "TOGGLE_PAUSE", "REGISTER_LAP", "HARD_RESET"}
)

# Issued only by the timed start sequence, never by operators.
SEQUENCER_COMMANDS = frozenset({"START_SEQUENCE", "LIGHT_ON", "LIGHTS_OUT"})


@dataclass
class CommandOutcome:
    """Result of applying a core command."""

    state: Dict[str, Any]
    cmd_payload: Dict[str, Any]
    snapshot_required: bool
    storage_reset: bool = False


@dataclass
class ValidationError:
    """Represents a command rejected for the current state (pure core)."""

    kind: str
    message: str | None = None


def default_driver(driver_id: int) -> Dict[str, Any]:
    return {
        "id": driver_id,
        "name": f"Driver {driver_id}",
        "laps": [],
        "lastLapAt": None,
        "sum": 0,
        "best": None,
        "lastLap": None,
        "_lastRegisterTs": 0,
    }


def default_state(drivers_count: int | None = None) -> Dict[str, Any]:
    """Create a fresh session state with default values.

    Args:
        drivers_count: Drivers taking part; defaults to the configured 2

    Returns:
        Dict with keys:
        - session: {running, startedAt, elapsed}, clock stopped at zero
        - locks: {starting: False}
        - lightsOn: 0
        - flags: {sc: False, vsc: False}
        - driversCount / activeDriver: 2 / 1
        - drivers: slots 1..4 with empty lap history
        - version: 0
    """
    return {
        "session": {"running": False, "startedAt": None, "elapsed": 0},
        "locks": {"starting": False},
        "lightsOn": 0,
        "flags": {"sc": False, "vsc": False},
        "driversCount": drivers_count or DEFAULT_CONFIG.default_drivers_count,
        "activeDriver": 1,
        "drivers": {i: default_driver(i) for i in range(1, MAX_DRIVERS + 1)},
        "version": 0,
    }


def active_driver_ids(state: Dict[str, Any]) -> List[int]:
    """Ids of the drivers taking part, in slot order."""
    count = state.get("driversCount") or 1
    return list(range(1, min(count, MAX_DRIVERS) + 1))


def session_status(state: Dict[str, Any]) -> str:
    """'STARTING' | 'RUNNING' | 'PAUSED' (PAUSED also covers not-yet-started)."""
    if (state.get("locks") or {}).get("starting"):
        return "STARTING"
    if (state.get("session") or {}).get("running"):
        return "RUNNING"
    return "PAUSED"


def _coerce_driver_id(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return int(stripped, 10)
        except ValueError:
            return None
    return None


def _require_driver_id(state: Dict[str, Any], raw: Any, ctype: str) -> int:
    driver_id = _coerce_driver_id(raw)
    if driver_id is None:
        raise ValueError(f"{ctype} driverId must be an int or numeric string")
    if driver_id < 1 or driver_id > MAX_DRIVERS:
        raise ValueError(f"{ctype} driverId out of range (1-{MAX_DRIVERS})")
    if driver_id > (state.get("driversCount") or 1):
        raise ValueError(f"{ctype} driverId {driver_id} is not taking part")
    return driver_id


def _register_lap(
    state: Dict[str, Any], driver_id: int, now: float, debounce_ms: float, payload: Dict[str, Any]
) -> bool:
    """Close the current lap of ``driver_id``. Returns False when debounced."""
    driver = state["drivers"][driver_id]
    if now - (driver.get("_lastRegisterTs") or 0) < debounce_ms:
        return False
    driver["_lastRegisterTs"] = now

    sess_ms = session_time(state["session"], now)
    if driver.get("lastLapAt") is None:
        driver["lastLapAt"] = sess_ms
    lap_ms = max(0, math.floor(sess_ms - driver["lastLapAt"]))
    driver["lastLapAt"] = sess_ms
    driver["lastLap"] = lap_ms
    driver.setdefault("laps", []).append(lap_ms)
    driver["sum"] = (driver.get("sum") or 0) + lap_ms
    if driver.get("best") is None or lap_ms < driver["best"]:
        driver["best"] = lap_ms

    payload["lapMs"] = lap_ms
    payload["lapIndex"] = len(driver["laps"])
    return True


def _apply_transition(
    state: Dict[str, Any], cmd: Dict[str, Any], now: float, config: EngineConfig
) -> CommandOutcome:
    """Apply pure state transition without side effects.

    Works on a deepcopy of the provided state and returns new state + payload.
    The engine is responsible for persistence and notifying the view.

    Args:
        state: Current session state dict (not mutated)
        cmd: Command dict with 'type' field and command-specific params
        now: Monotonic reading in ms
        config: Timing constants (light count, debounce window)

    Returns:
        CommandOutcome with:
        - state: Updated state dict
        - cmd_payload: Command enriched with resolved fields (lapMs, sessionStarted, ...)
        - snapshot_required: True if the state changed and should be persisted
        - storage_reset: True if persisted storage must be wiped (HARD_RESET)
    """
    new_state: Dict[str, Any] = deepcopy(state)
    ctype = cmd.get("type")
    snapshot_required = False
    storage_reset = False
    payload = dict(cmd)
    starting = bool(new_state["locks"].get("starting"))
    session = new_state["session"]

    if ctype == "START_SEQUENCE":
        if starting or session.get("running"):
            payload["ignored"] = True
        else:
            new_state["locks"]["starting"] = True
            new_state["lightsOn"] = 0
            snapshot_required = True

    elif ctype == "LIGHT_ON":
        if not starting:
            payload["ignored"] = True
        else:
            new_state["lightsOn"] = min((new_state.get("lightsOn") or 0) + 1, config.light_count)
            payload["lightsOn"] = new_state["lightsOn"]
            snapshot_required = True

    elif ctype == "LIGHTS_OUT":
        if not starting:
            payload["ignored"] = True
        else:
            # Clock starts and lap zero is stamped for everyone in one step.
            resume_session(session, now)
            t = session_time(session, now)
            for i in active_driver_ids(new_state):
                new_state["drivers"][i]["lastLapAt"] = t
            new_state["locks"]["starting"] = False
            new_state["lightsOn"] = 0
            payload["sessionStarted"] = True
            payload["sessionTimeMs"] = t
            snapshot_required = True

    elif ctype in ("PAUSE", "RESUME", "TOGGLE_PAUSE"):
        if ctype == "TOGGLE_PAUSE":
            ctype = "PAUSE" if session.get("running") else "RESUME"
            payload["resolvedType"] = ctype
        if ctype == "PAUSE":
            changed = pause_session(session, now)
        else:
            changed = resume_session(session, now)
        if changed:
            snapshot_required = True
        else:
            payload["ignored"] = True

    elif ctype == "REGISTER_LAP":
        driver_id = _require_driver_id(new_state, cmd.get("driverId"), ctype)
        payload["driverId"] = driver_id
        if _register_lap(new_state, driver_id, now, config.debounce_ms, payload):
            snapshot_required = True
        else:
            payload["ignored"] = True

    elif ctype == "TOGGLE_FLAG":
        key = cmd.get("flag")
        if key not in ("sc", "vsc"):
            raise ValueError("TOGGLE_FLAG requires flag in {'sc','vsc'}")
        flags = new_state["flags"]
        flags[key] = not flags.get(key)
        # At most one neutralisation flag at a time.
        if flags[key]:
            flags["vsc" if key == "sc" else "sc"] = False
        snapshot_required = True

    elif ctype == "SET_DRIVERS_COUNT":
        count = _coerce_driver_id(cmd.get("count"))
        if count is None or count < 1 or count > MAX_DRIVERS:
            raise ValueError(f"SET_DRIVERS_COUNT count must be 1-{MAX_DRIVERS}")
        new_state["driversCount"] = count
        if (new_state.get("activeDriver") or 1) > count:
            new_state["activeDriver"] = count
        snapshot_required = True

    elif ctype == "SET_ACTIVE_DRIVER":
        new_state["activeDriver"] = _require_driver_id(new_state, cmd.get("driverId"), ctype)
        snapshot_required = True

    elif ctype == "NEXT_ACTIVE_DRIVER":
        count = new_state.get("driversCount") or 1
        new_state["activeDriver"] = ((new_state.get("activeDriver") or 1) % count) + 1
        snapshot_required = True

    elif ctype == "HARD_RESET":
        version = new_state.get("version") or 0
        new_state = default_state(config.default_drivers_count)
        new_state["version"] = version
        snapshot_required = True
        storage_reset = True

    else:
        raise ValueError(f"Unknown command type: {ctype}")

    if snapshot_required:
        new_state["version"] = (new_state.get("version") or 0) + 1

    return CommandOutcome(
        state=new_state,
        cmd_payload=payload,
        snapshot_required=snapshot_required,
        storage_reset=storage_reset,
    )


def apply_command(
    state: Dict[str, Any],
    cmd: Dict[str, Any],
    now: float | None = None,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CommandOutcome:
    """Apply a session command to in-memory state.

    Args:
        state: Current session state dict (mutated in place to the new state)
        cmd: Command dict with 'type' field and command-specific params
        now: Monotonic reading in ms; read from the monotonic clock when omitted
        config: Timing constants

    Returns:
        CommandOutcome with updated state, enriched command payload and flags

    Raises:
        ValueError: unknown command type or out-of-range driver id / count
    """
    if now is None:
        now = monotonic_ms()
    outcome = _apply_transition(state, cmd, now, config)

    # The engine holds a reference to ``state``; keep it pointing at current data.
    state.clear()
    state.update(outcome.state)

    return outcome


def validate_command(state: Dict[str, Any], cmd: Dict[str, Any]) -> ValidationError | None:
    """Check a command against the current state before applying it.

    Returns ValidationError(kind='starting_locked') for commands that must
    wait for the start lights to go out, otherwise None.
    """
    ctype = cmd.get("type")
    if (state.get("locks") or {}).get("starting") and ctype in LOCKED_WHILE_STARTING:
        return ValidationError(
            kind="starting_locked",
            message=f"{ctype} is not accepted during the start sequence",
        )
    return None

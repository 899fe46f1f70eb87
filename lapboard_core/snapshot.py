"""Snapshot persistence: JSON-ready dumps, per-field merge on load, stores.

Persistence is best-effort. A store never raises into the mutation path;
failures are logged and reported through the return value.
"""
from __future__ import annotations

import json
import logging
import math
import os
from pathlib import Path
from typing import Any, Dict, List, Protocol

from .clock import session_time
from .config import MAX_DRIVERS
from .session import default_state
from .validation import InputSanitizer

logger = logging.getLogger(__name__)

# Never written to storage: a restored state must not resume mid-debounce.
TRANSIENT_DRIVER_FIELDS = ("_lastRegisterTs",)


class SnapshotStore(Protocol):
    def save(self, snapshot: Dict[str, Any]) -> bool:
        ...

    def load(self) -> Dict[str, Any] | None:
        ...

    def clear(self) -> bool:
        ...


def dump_snapshot(state: Dict[str, Any], now: float) -> Dict[str, Any]:
    """JSON-ready copy of ``state``.

    The running stretch is folded into ``elapsed`` because a monotonic
    ``startedAt`` means nothing to another process. The start lock and light
    counter are not stored.
    """
    sess = state.get("session") or {}
    drivers: Dict[str, Any] = {}
    for key, d in (state.get("drivers") or {}).items():
        drivers[str(key)] = {
            k: (list(v) if isinstance(v, list) else v)
            for k, v in d.items()
            if k not in TRANSIENT_DRIVER_FIELDS
        }
    return {
        "session": {
            "running": bool(sess.get("running")),
            "elapsed": session_time(sess, now),
        },
        "flags": dict(state.get("flags") or {}),
        "driversCount": state.get("driversCount"),
        "activeDriver": state.get("activeDriver"),
        "drivers": drivers,
        "version": state.get("version") or 0,
    }


def _coerce_ms(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = float(value)
        if not math.isfinite(value) or value < 0:
            return None
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return _coerce_ms(float(stripped))
        except ValueError:
            return None
    return None


def _coerce_int_in_range(value: Any, low: int, high: int) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str):
        try:
            value = int(value.strip(), 10)
        except ValueError:
            return None
    if not isinstance(value, int) or value < low or value > high:
        return None
    return value


def _normalize_laps(raw: Any) -> List[int]:
    if not isinstance(raw, list):
        return []
    laps: List[int] = []
    for item in raw:
        ms = _coerce_ms(item)
        if ms is None:
            continue
        laps.append(int(ms))
    return laps


def _merge_driver(base: Dict[str, Any], raw: Any) -> Dict[str, Any]:
    """Overlay a persisted driver on a default slot, field by field.

    Statistics are recomputed from ``laps`` so they can never disagree with it.
    """
    if not isinstance(raw, dict):
        return base
    name = raw.get("name")
    if isinstance(name, str):
        safe_name = InputSanitizer.sanitize_driver_name(name)
        if safe_name:
            base["name"] = safe_name
    laps = _normalize_laps(raw.get("laps"))
    base["laps"] = laps
    base["sum"] = sum(laps)
    base["best"] = min(laps) if laps else None
    base["lastLap"] = laps[-1] if laps else None
    base["lastLapAt"] = _coerce_ms(raw.get("lastLapAt"))
    base["_lastRegisterTs"] = 0
    return base


def load_snapshot(raw: Any) -> Dict[str, Any]:
    """Rebuild a full state from persisted data, falling back to defaults per field.

    Behavior:
        - Anything that is not a dict yields default_state()
        - Malformed fields keep their default; valid siblings still load
        - A session saved while running comes back paused at its elapsed time
        - Both flags set (hand-edited file) keeps the safety car only
        - activeDriver is clamped to driversCount
    """
    state = default_state()
    if not isinstance(raw, dict):
        return state

    sess = raw.get("session")
    if isinstance(sess, dict):
        elapsed = _coerce_ms(sess.get("elapsed"))
        if elapsed is not None:
            state["session"]["elapsed"] = elapsed

    flags = raw.get("flags")
    if isinstance(flags, dict):
        for key in ("sc", "vsc"):
            if isinstance(flags.get(key), bool):
                state["flags"][key] = flags[key]
        if state["flags"]["sc"] and state["flags"]["vsc"]:
            state["flags"]["vsc"] = False

    count = _coerce_int_in_range(raw.get("driversCount"), 1, MAX_DRIVERS)
    if count is not None:
        state["driversCount"] = count
    active = _coerce_int_in_range(raw.get("activeDriver"), 1, MAX_DRIVERS)
    if active is not None:
        state["activeDriver"] = min(active, state["driversCount"])

    drivers = raw.get("drivers")
    if isinstance(drivers, list):
        drivers = {str(i + 1): d for i, d in enumerate(drivers)}
    if isinstance(drivers, dict):
        for i in range(1, MAX_DRIVERS + 1):
            candidate = drivers.get(str(i), drivers.get(i))
            state["drivers"][i] = _merge_driver(state["drivers"][i], candidate)

    version = _coerce_int_in_range(raw.get("version"), 0, 2**31)
    if version is not None:
        state["version"] = version

    return state


class MemoryStore:
    """In-process store; keeps a JSON round-tripped copy like the file store."""

    def __init__(self) -> None:
        self._data: str | None = None

    def save(self, snapshot: Dict[str, Any]) -> bool:
        try:
            self._data = json.dumps(snapshot)
        except (TypeError, ValueError) as e:
            logger.warning(f"Snapshot not serializable: {e}")
            return False
        return True

    def load(self) -> Dict[str, Any] | None:
        if self._data is None:
            return None
        return json.loads(self._data)

    def clear(self) -> bool:
        self._data = None
        return True


class JsonFileStore:
    """Single JSON file; writes go through a temp file and os.replace."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def save(self, snapshot: Dict[str, Any]) -> bool:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            raw = json.dumps(snapshot, ensure_ascii=False, separators=(",", ":"))
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(raw, encoding="utf-8")
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Saving snapshot to {self.path} failed: {e}")
            return False
        return True

    def load(self) -> Dict[str, Any] | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Reading snapshot {self.path} failed: {e}")
            return None
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Snapshot {self.path} is not valid JSON, using defaults: {e}")
            return None
        return data if isinstance(data, dict) else None

    def clear(self) -> bool:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Removing snapshot {self.path} failed: {e}")
            return False
        return True

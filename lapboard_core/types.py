"""Type definitions for session state and commands."""
from __future__ import annotations

from typing import Dict, List, Optional, TypedDict


class Driver(TypedDict, total=False):
    """Per-driver lap statistics (one slot per driver id 1..4)."""
    id: int
    name: str
    laps: List[int]  # Lap durations in ms, chronological
    lastLapAt: Optional[float]  # Session time (ms) at which the current lap began
    sum: int  # Total of laps
    best: Optional[int]
    lastLap: Optional[int]
    _lastRegisterTs: float  # Monotonic ms of last accepted registration (transient)


class SessionClock(TypedDict, total=False):
    running: bool
    startedAt: Optional[float]  # Monotonic ms when running
    elapsed: float  # Accumulated ms while paused


class Flags(TypedDict, total=False):
    sc: bool
    vsc: bool


class Locks(TypedDict, total=False):
    starting: bool


class SessionState(TypedDict, total=False):
    """
    TypedDict representing the whole timing session.

    All fields are optional (total=False) so partially restored snapshots
    type-check, but default_state() always fills every key.
    """
    session: SessionClock
    locks: Locks
    lightsOn: int
    flags: Flags

    # Roster
    driversCount: int  # Drivers taking part (1..4)
    activeDriver: int  # Driver selected for single-key lap registration
    drivers: Dict[int, Driver]

    # Incremented on every state-changing command
    version: int


class CommandPayload(TypedDict, total=False):
    """
    TypedDict for command payloads sent to apply_command().

    Fields vary by command type.
    """
    type: str

    # REGISTER_LAP / SET_ACTIVE_DRIVER
    driverId: Optional[int]

    # SET_DRIVERS_COUNT
    count: Optional[int]

    # TOGGLE_FLAG
    flag: Optional[str]


StateDict = SessionState
CmdDict = CommandPayload

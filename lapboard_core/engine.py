"""Timing engine: owns the session state and is its only mutation entry point.

Every operator command goes through ``dispatch`` (the start lights alone use
``_dispatch_sequencer``, driven by the StartSequencer):
    schema validation (ValidatedCmd) -> start-lock check -> apply_command
    -> best-effort persistence -> listeners receive the fresh view

Collaborators never get a reference into the state; ``state`` and ``view()``
hand out copies.
"""
from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Callable, Dict, List

from .clock import monotonic_ms, session_time
from .config import DEFAULT_CONFIG, EngineConfig
from .export import LapExportRow, export_csv, export_rows
from .sequencer import Scheduler, StartSequencer
from .session import (
    SEQUENCER_COMMANDS,
    CommandOutcome,
    apply_command,
    default_state,
    validate_command,
)
from .snapshot import JsonFileStore, MemoryStore, SnapshotStore, dump_snapshot, load_snapshot
from .validation import InputSanitizer
from .view import build_view

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any], Dict[str, Any]], Any]


class TimingEngine:
    """Single owner of one session.

    Args:
        store: Snapshot store; an in-memory one when omitted
        clock: Monotonic time source in ms
        scheduler: asyncio-style scheduler for the start lights; needed by start()
        config: Timing constants
        restore: Load the last snapshot from ``store`` on construction
    """

    def __init__(
        self,
        store: SnapshotStore | None = None,
        *,
        clock: Callable[[], float] = monotonic_ms,
        scheduler: Scheduler | None = None,
        config: EngineConfig = DEFAULT_CONFIG,
        restore: bool = True,
    ) -> None:
        self.config = config
        self._clock = clock
        self._store: SnapshotStore = store if store is not None else MemoryStore()
        self._listeners: List[Listener] = []
        self._state: Dict[str, Any] = default_state(config.default_drivers_count)
        if restore:
            raw = self._store.load()
            if raw is not None:
                self._state = load_snapshot(raw)
                logger.info(f"Restored session snapshot (version {self._state['version']})")
        self._sequencer = (
            StartSequencer(self._dispatch_sequencer, scheduler, config) if scheduler is not None else None
        )

    @classmethod
    def from_config(
        cls,
        config: EngineConfig = DEFAULT_CONFIG,
        *,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> "TimingEngine":
        """Engine persisting to ``config.state_path``."""
        return cls(JsonFileStore(config.state_path), clock=clock, scheduler=scheduler, config=config)

    # ---- read side -------------------------------------------------------

    @property
    def state(self) -> Dict[str, Any]:
        return deepcopy(self._state)

    def session_time(self) -> float:
        return session_time(self._state["session"], self._clock())

    def is_running(self) -> bool:
        return bool(self._state["session"].get("running"))

    def view(self) -> Dict[str, Any]:
        return build_view(self._state, self._clock())

    def export_laps(self) -> List[LapExportRow]:
        return export_rows(self._state)

    def export_csv(self) -> str:
        return export_csv(self._state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(cmd_payload, view)`` after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- write side ------------------------------------------------------

    def dispatch(self, cmd: Dict[str, Any]) -> CommandOutcome | None:
        """Apply one command.

        Returns:
            CommandOutcome, or None if the command was refused for the
            current state (e.g. REGISTER_LAP during the start lights)

        Raises:
            ValueError: malformed command, unknown driver id or count, or a
                start-light command (those belong to start())
        """
        payload = InputSanitizer.validate_and_sanitize_cmd(cmd).to_payload()
        if payload["type"] in SEQUENCER_COMMANDS:
            raise ValueError(f"{payload['type']} is issued by the start sequence; use start()")
        return self._apply(payload)

    def _dispatch_sequencer(self, cmd: Dict[str, Any]) -> CommandOutcome | None:
        """Entry point reserved for the StartSequencer's light stages."""
        payload = InputSanitizer.validate_and_sanitize_cmd(cmd).to_payload()
        if payload["type"] not in SEQUENCER_COMMANDS:
            raise ValueError(f"{payload['type']} is not a start sequence command")
        return self._apply(payload)

    def _apply(self, payload: Dict[str, Any]) -> CommandOutcome | None:
        rejected = validate_command(self._state, payload)
        if rejected is not None:
            logger.warning(f"Command {payload['type']} refused: {rejected.kind}")
            return None

        now = self._clock()
        outcome = apply_command(self._state, payload, now, config=self.config)

        if outcome.cmd_payload.get("ignored"):
            logger.debug(f"Command {payload['type']} had no effect")
            return outcome
        if outcome.cmd_payload.get("sessionStarted"):
            logger.info("Lights out, session running")
        elif payload["type"] in ("PAUSE", "RESUME", "TOGGLE_PAUSE"):
            logger.info(f"Session {'resumed' if self.is_running() else 'paused'}")

        if outcome.storage_reset:
            logger.info("Hard reset, clearing stored snapshot")
            self._clear_storage()
        elif outcome.snapshot_required:
            self._persist(now)

        if outcome.snapshot_required:
            view = build_view(self._state, now)
            for listener in list(self._listeners):
                listener(outcome.cmd_payload, view)
        return outcome

    def _persist(self, now: float) -> None:
        # In-memory state is already updated; a failing store must not undo it.
        try:
            saved = self._store.save(dump_snapshot(self._state, now))
        except Exception as e:
            logger.warning(f"Snapshot store raised on save: {e}")
            return
        if saved is False:
            logger.warning("Snapshot not saved; continuing with in-memory state")

    def _clear_storage(self) -> None:
        try:
            self._store.clear()
        except Exception as e:
            logger.warning(f"Snapshot store raised on clear: {e}")

    # ---- commands --------------------------------------------------------

    def start(self) -> bool:
        """Run the start lights; False if already starting or running."""
        if self._sequencer is None:
            raise RuntimeError("start() needs a scheduler for the start lights")
        return self._sequencer.start()

    def pause(self) -> CommandOutcome | None:
        return self.dispatch({"type": "PAUSE"})

    def resume(self) -> CommandOutcome | None:
        return self.dispatch({"type": "RESUME"})

    def toggle_pause(self) -> CommandOutcome | None:
        return self.dispatch({"type": "TOGGLE_PAUSE"})

    def hard_reset(self) -> CommandOutcome | None:
        return self.dispatch({"type": "HARD_RESET"})

    def register_lap(self, driver_id: int) -> CommandOutcome | None:
        return self.dispatch({"type": "REGISTER_LAP", "driverId": driver_id})

    def toggle_flag(self, flag: str) -> CommandOutcome | None:
        return self.dispatch({"type": "TOGGLE_FLAG", "flag": flag})

    def set_drivers_count(self, count: int) -> CommandOutcome | None:
        return self.dispatch({"type": "SET_DRIVERS_COUNT", "count": count})

    def set_active_driver(self, driver_id: int) -> CommandOutcome | None:
        return self.dispatch({"type": "SET_ACTIVE_DRIVER", "driverId": driver_id})

    def next_active_driver(self) -> CommandOutcome | None:
        return self.dispatch({"type": "NEXT_ACTIVE_DRIVER"})

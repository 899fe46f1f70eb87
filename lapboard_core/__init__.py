from .clock import monotonic_ms, pause_session, resume_session, session_time
from .config import DEFAULT_CONFIG, MAX_DRIVERS, EngineConfig, load_config
from .engine import TimingEngine
from .export import CSV_HEADER, LapExportRow, export_csv, export_rows
from .keymap import command_for_key, handle_key
from .ranking import DriverStats, RankingRow, compute_ranking, ranking_for_state
from .sequencer import RefreshTicker, StartSequencer
from .session import (
    CommandOutcome,
    ValidationError,
    active_driver_ids,
    apply_command,
    default_driver,
    default_state,
    session_status,
    validate_command,
)
from .snapshot import JsonFileStore, MemoryStore, dump_snapshot, load_snapshot
from .types import CommandPayload, Driver, SessionState
from .validation import InputSanitizer, ValidatedCmd
from .view import build_view, format_ms

__all__ = [
    "CommandOutcome",
    "CommandPayload",
    "Driver",
    "SessionState",
    "ValidationError",
    "apply_command",
    "default_driver",
    "default_state",
    "active_driver_ids",
    "session_status",
    "validate_command",
    "monotonic_ms",
    "session_time",
    "pause_session",
    "resume_session",
    "EngineConfig",
    "DEFAULT_CONFIG",
    "MAX_DRIVERS",
    "load_config",
    "TimingEngine",
    "StartSequencer",
    "RefreshTicker",
    "DriverStats",
    "RankingRow",
    "compute_ranking",
    "ranking_for_state",
    "LapExportRow",
    "CSV_HEADER",
    "export_rows",
    "export_csv",
    "JsonFileStore",
    "MemoryStore",
    "dump_snapshot",
    "load_snapshot",
    "ValidatedCmd",
    "InputSanitizer",
    "build_view",
    "format_ms",
    "command_for_key",
    "handle_key",
]

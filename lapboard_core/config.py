"""Engine settings (Pydantic v2), overridable from the environment."""
from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

MAX_DRIVERS = 4


class EngineConfig(BaseModel):
    """Timing constants and storage location for one engine instance."""

    model_config = ConfigDict(frozen=True)

    light_count: int = Field(5, ge=1, le=10, description="Start lights in the sequence")
    light_interval_ms: int = Field(
        700, ge=0, le=10000, description="Delay between start lights (ms)"
    )
    debounce_ms: int = Field(
        300, ge=0, le=10000, description="Minimum gap between two laps of one driver (ms)"
    )
    frame_interval_ms: int = Field(
        16, ge=1, le=1000, description="Refresh period while the session runs (ms)"
    )
    default_drivers_count: int = Field(2, ge=1, le=MAX_DRIVERS)
    state_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("LAPBOARD_STATE_PATH", "lapboard_state.json")
        )
    )


def load_config(**overrides) -> EngineConfig:
    """Build the env-aware default config, with explicit overrides on top."""
    return EngineConfig(**overrides)


DEFAULT_CONFIG = EngineConfig()

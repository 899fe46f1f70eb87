"""
Input validation schemas using Pydantic v2
Validates all command types before they reach the session core
"""

import logging
import re
from typing import Optional, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import MAX_DRIVERS

logger = logging.getLogger(__name__)

COMMAND_TYPES = frozenset(
    {
        "START_SEQUENCE",
        "LIGHT_ON",
        "LIGHTS_OUT",
        "PAUSE",
        "RESUME",
        "TOGGLE_PAUSE",
        "HARD_RESET",
        "REGISTER_LAP",
        "TOGGLE_FLAG",
        "SET_DRIVERS_COUNT",
        "SET_ACTIVE_DRIVER",
        "NEXT_ACTIVE_DRIVER",
    }
)

FLAG_NAMES = ("sc", "vsc")


class ValidatedCmd(BaseModel):
    """Command model with per-type field requirements"""

    type: str = Field(..., min_length=1, max_length=50, description="Command type")

    driverId: Optional[int] = Field(
        None, ge=1, le=MAX_DRIVERS, description=f"Driver slot (1-{MAX_DRIVERS})"
    )
    count: Optional[int] = Field(
        None, ge=1, le=MAX_DRIVERS, description=f"Drivers in session (1-{MAX_DRIVERS})"
    )
    flag: Optional[str] = Field(None, max_length=10, description="'sc' or 'vsc'")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Validate command type is one of allowed types"""
        v = v.strip().upper()
        if v not in COMMAND_TYPES:
            raise ValueError(f"type must be one of {sorted(COMMAND_TYPES)}, got {v}")
        return v

    @field_validator("driverId", "count", mode="before")
    @classmethod
    def reject_bool(cls, v: object) -> object:
        # bool is an int subclass; lax mode would turn True into 1
        if isinstance(v, bool):
            raise ValueError("must be an integer, not a boolean")
        return v

    @field_validator("flag")
    @classmethod
    def validate_flag(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        if v not in FLAG_NAMES:
            raise ValueError(f"flag must be one of {FLAG_NAMES}, got {v}")
        return v

    @model_validator(mode="after")
    def validate_command_fields(self) -> Self:
        """Validate required fields based on command type"""
        cmd_type = self.type

        if cmd_type in ("REGISTER_LAP", "SET_ACTIVE_DRIVER"):
            if self.driverId is None:
                raise ValueError(f"{cmd_type} requires driverId")

        elif cmd_type == "SET_DRIVERS_COUNT":
            if self.count is None:
                raise ValueError("SET_DRIVERS_COUNT requires count")

        elif cmd_type == "TOGGLE_FLAG":
            if self.flag is None:
                raise ValueError("TOGGLE_FLAG requires flag")

        return self

    model_config = ConfigDict(extra="ignore")

    def to_payload(self) -> dict:
        """Plain command dict for apply_command (unset optionals dropped)."""
        return self.model_dump(exclude_none=True)


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        value = value.strip()
        value = value[:max_length]
        value = value.replace("\0", "")

        return value

    @staticmethod
    def sanitize_driver_name(name: str) -> str:
        """Sanitize a driver name for display - keeps Unicode letters (e.g. Polish diacritics)"""
        name = InputSanitizer.sanitize_string(name, 64)

        # Drop markup/control characters; the name ends up in HTML and CSV output
        dangerous_chars = r'[<>{}[\]\\|;`"\x00-\x1f\x7f]'
        name = re.sub(dangerous_chars, "", name)

        return name.strip()

    @staticmethod
    def validate_and_sanitize_cmd(cmd_dict: dict) -> ValidatedCmd:
        """
        Validate and sanitize command dictionary

        Returns:
            ValidatedCmd: Validated command object

        Raises:
            ValueError: If validation fails
        """
        try:
            return ValidatedCmd(**cmd_dict)
        except Exception as e:
            logger.warning(f"Command validation failed: {e}")
            raise ValueError(f"Invalid command: {str(e)}")


# ==================== EXPORT ====================

__all__ = [
    "COMMAND_TYPES",
    "FLAG_NAMES",
    "ValidatedCmd",
    "InputSanitizer",
]

"""Pydantic request validation schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from lib.payload import DEFAULT_PATTERN, DEFAULT_SIZE, MAX_SIZE, PATTERNS


class SpeedRequest(BaseModel):
    """Validated `/speed` query. Size bounds are checked by `parse_size` first."""

    size: int = Field(default=DEFAULT_SIZE, ge=1, le=MAX_SIZE)
    pattern: str = DEFAULT_PATTERN
    meta: bool = False

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        if v not in PATTERNS:
            raise ValueError(f"Invalid pattern. Must be one of: {', '.join(PATTERNS)}")
        return v

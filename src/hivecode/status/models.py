"""Status documents written by worker processes."""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StatusValue(str, Enum):
    IDLE = "idle"
    CODING = "coding"
    TESTING = "testing"
    REVIEWING = "reviewing"
    READY_FOR_REVIEW = "ready_for_review"
    APPROVED = "approved"
    UNKNOWN = "unknown"


class SubagentState(str, Enum):
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    UNKNOWN = "unknown"


def _coerce_enum(enum_type: type[Enum], value: Any) -> Any:
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        for member in enum_type:
            if member.value == normalized:
                return member
    return enum_type("unknown")


class SubagentStatus(BaseModel):
    """Progress of a helper run (lint, test, review) inside a worker."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(default="", description="Free-text name of the subagent.")
    status: SubagentState = Field(default=SubagentState.UNKNOWN)
    message: str | None = Field(default=None)

    @field_validator("status", mode="before")
    @classmethod
    def _permissive_status(cls, value: Any) -> SubagentState:
        return _coerce_enum(SubagentState, value)

    @field_validator("name", mode="before")
    @classmethod
    def _stringify_name(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("message", mode="before")
    @classmethod
    def _stringify_message(cls, value: Any) -> str | None:
        return None if value is None else str(value)


class WorkerStatus(BaseModel):
    """Contents of ``.hive/status/worker-N.json``.

    Reading is permissive: unknown status strings become ``unknown``, an
    out-of-range ``percent`` is kept as written, a malformed ``subagent`` is
    dropped and unrecognised fields are preserved. ``validate_for_write``
    applies the strict rules used when this process authors a document.
    """

    model_config = ConfigDict(extra="allow")

    status: StatusValue = Field(default=StatusValue.UNKNOWN)
    branch: str | None = None
    current: str | None = None
    percent: float | None = None
    subagent: SubagentStatus | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _permissive_status(cls, value: Any) -> StatusValue:
        return _coerce_enum(StatusValue, value)

    @field_validator("branch", "current", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    @field_validator("percent", mode="before")
    @classmethod
    def _numeric_percent(cls, value: Any) -> float | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None

    @field_validator("subagent", mode="before")
    @classmethod
    def _subagent_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, SubagentStatus)) else None

    @property
    def display_percent(self) -> int | None:
        """``percent`` clamped to 0-100 for rendering."""

        if self.percent is None:
            return None
        return int(round(min(max(self.percent, 0.0), 100.0)))

    def validate_for_write(self) -> None:
        if self.status is StatusValue.UNKNOWN:
            raise ValueError("status must be one of " + ", ".join(known_statuses()))
        if self.percent is not None and not 0 <= self.percent <= 100:
            raise ValueError("percent must be between 0 and 100")
        if self.subagent is not None and self.subagent.status is SubagentState.UNKNOWN:
            raise ValueError("subagent.status must be one of running, passed, failed")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def known_statuses() -> list[str]:
    return [member.value for member in StatusValue if member is not StatusValue.UNKNOWN]


__all__ = [
    "StatusValue",
    "SubagentState",
    "SubagentStatus",
    "WorkerStatus",
    "known_statuses",
]

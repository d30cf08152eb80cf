"""Data model for normalized cluster events."""

from typing import Any

from pydantic import BaseModel, field_validator

WATCHED_EVENT_TYPES = frozenset(
    {"AllocationUpdated", "NodeUpdated", "JobRegistered", "JobDeregistered"}
)


class ClusterEvent(BaseModel):
    """A cluster change that should trigger a reconciliation.

    ``timestamp`` is the event stream index, interpreted as nanoseconds. It only
    orders events and is not a wall-clock time.
    """

    kind: str
    timestamp: int
    node_id: str = ""
    job_id: str = ""
    details: dict[str, Any]

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        """Validate kind is not empty."""
        if not v:
            raise ValueError("kind cannot be empty")
        return v

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: int) -> int:
        """Validate timestamp is set."""
        if v <= 0:
            raise ValueError("timestamp must be non-zero")
        return v

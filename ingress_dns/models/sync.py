"""Data models for reconciliation results."""

from pydantic import BaseModel


class ConvergeResult(BaseModel):
    """Result of applying a record diff at the DNS provider."""

    records_observed: int = 0
    created: int = 0
    deleted: int = 0
    failed: int = 0
    dry_run: bool = False


class ReconciliationOutcome(BaseModel):
    """Summary of one reconciliation pass."""

    trigger: str
    addresses_desired: int = 0
    eligible_nodes: int = 0
    records_observed: int = 0
    created: int = 0
    deleted: int = 0
    failed: int = 0
    error: str | None = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        """True when the pass completed (per-record failures do not count)."""
        return self.error is None

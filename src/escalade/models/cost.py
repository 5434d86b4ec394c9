"""Cost ledger entries and derived daily statistics."""

from __future__ import annotations

from datetime import UTC, date, datetime

from pydantic import BaseModel, Field


class CostEntry(BaseModel):
    """One recorded spend. Never mutated after creation."""

    model_config = {"frozen": True}

    task_id: str
    handler_id: str
    amount: float = 0.0
    description: str = "Handler execution"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def day(self) -> date:
        return self.timestamp.astimezone(UTC).date()


class DailyCostStats(BaseModel):
    """Aggregate of all entries falling on one UTC calendar day."""

    day: date
    total: float = 0.0
    count: int = 0
    by_handler: dict[str, float] = Field(default_factory=dict)
    entries: list[CostEntry] = Field(default_factory=list)

"""Routing output models: the trail, the final result, executor counters."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field

NO_HANDLER = "No handler registered"
MAX_ATTEMPTS = "Max attempts exceeded"
EXHAUSTED = "All escalation levels exhausted"


class TrailEntry(BaseModel):
    """One handler invocation, or one explicit no-handler / max-attempts advance."""

    level: int
    success: bool
    handler_id: Optional[str] = None
    error: Optional[str] = None


class RoutingResult(BaseModel):
    """Outcome of one ``process()`` run for a task."""

    success: bool
    level: int
    handler_id: Optional[str] = None
    data: Any = None
    error: Optional[str] = None
    cost: float = 0.0
    attempts: int = 0
    trail: list[TrailEntry] = Field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return not self.success and self.error == EXHAUSTED


class ExecutorStats(BaseModel):
    """Daily counters kept by the executor; reset on UTC date rollover."""

    daily_cost: float = 0.0
    last_reset: date
    tasks_processed: int = 0

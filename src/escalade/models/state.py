"""Per-task attempt state owned by the AttemptTracker."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


def handler_key(level: int, handler_id: str) -> str:
    return f"{level}:{handler_id}"


class AttemptState(BaseModel):
    """Mutable progress of one task through the escalation stages."""

    task_id: str
    current_level: int = 0
    attempts: dict[int, int] = Field(default_factory=dict)
    handler_attempts: dict[str, int] = Field(default_factory=dict)
    spent_handlers: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    cost: float = 0.0
    resolved: bool = False
    approved: bool = False  # gated stage of the ladder
    approved_handlers: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def attempts_at(self, level: int) -> int:
        return self.attempts.get(level, 0)

    def handler_attempts_at(self, level: int, handler_id: str) -> int:
        return self.handler_attempts.get(handler_key(level, handler_id), 0)

    def is_spent(self, level: int, handler_id: str) -> bool:
        return handler_key(level, handler_id) in self.spent_handlers

    def is_approved(self, handler_id: str) -> bool:
        return handler_id in self.approved_handlers

    def touch(self) -> None:
        self.updated_at = _utcnow()

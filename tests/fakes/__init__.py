"""Shared test doubles: memory backends and scripted handlers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from escalade.models.outcomes import Escalate, Retry, Success
from escalade.persistence.memory_backend import MemoryCostArchive, MemoryStateStore

__all__ = [
    "FakeClock",
    "MemoryCostArchive",
    "MemoryStateStore",
    "ScriptedHandler",
    "always",
]


class ScriptedHandler:
    """Async handler replaying a fixed list of outcomes; repeats the last one.

    An outcome that is an Exception instance is raised instead of returned.
    """

    def __init__(self, *outcomes: Any) -> None:
        self._outcomes = list(outcomes) or [Success()]
        self.calls = 0
        self.seen_attempts: list[dict[int, int]] = []

    async def __call__(self, task, state):
        self.seen_attempts.append(dict(state.attempts))
        outcome = self._outcomes[min(self.calls, len(self._outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def always(kind: str, **kwargs: Any) -> ScriptedHandler:
    factory = {"success": Success, "retry": Retry, "escalate": Escalate}[kind]
    return ScriptedHandler(factory(**kwargs))


class FakeClock:
    """Settable UTC clock for CostLedger."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 3, 14, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)

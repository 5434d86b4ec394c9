"""Protocol interfaces for all Escalade abstractions.

All inter-layer communication uses these Protocols: structural typing,
no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from datetime import date
from typing import Any, Awaitable, Protocol, runtime_checkable

from escalade.models.cost import CostEntry
from escalade.models.state import AttemptState
from escalade.models.task import Task


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

@runtime_checkable
class IHandler(Protocol):
    """Caller-supplied unit of work for one level.

    Returns a HandlerOutcome (or a legacy result mapping), either directly
    or as an awaitable.
    """

    def __call__(self, task: Task, state: AttemptState) -> Any | Awaitable[Any]: ...


# ---------------------------------------------------------------------------
# Persistence: Attempt State Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IStateStore(Protocol):
    """Keyed storage for per-task AttemptState."""

    def get(self, task_id: str) -> AttemptState | None: ...

    def put(self, state: AttemptState) -> None: ...

    def delete(self, task_id: str) -> None: ...

    def all(self) -> list[AttemptState]: ...

    def clear(self) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: Cost Archive
# ---------------------------------------------------------------------------

@runtime_checkable
class ICostArchive(Protocol):
    """Durable home for cost ledger entries across processes."""

    def save(self, entries: list[CostEntry]) -> int: ...

    def load_day(self, day: date) -> list[CostEntry]: ...

    def load_range(self, start: date, end: date) -> list[CostEntry]: ...

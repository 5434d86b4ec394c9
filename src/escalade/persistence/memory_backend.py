"""In-memory backends: the default state store, also used as test doubles."""

from __future__ import annotations

from datetime import date

from escalade.models.cost import CostEntry
from escalade.models.state import AttemptState


class MemoryStateStore:
    """Dict-backed IStateStore. Returns the stored object itself, so identity holds."""

    def __init__(self) -> None:
        self._states: dict[str, AttemptState] = {}

    def get(self, task_id: str) -> AttemptState | None:
        return self._states.get(task_id)

    def put(self, state: AttemptState) -> None:
        self._states[state.task_id] = state

    def delete(self, task_id: str) -> None:
        self._states.pop(task_id, None)

    def all(self) -> list[AttemptState]:
        return list(self._states.values())

    def clear(self) -> None:
        self._states.clear()


class MemoryCostArchive:
    """List-backed ICostArchive for unit tests."""

    def __init__(self) -> None:
        self._entries: list[CostEntry] = []

    def save(self, entries: list[CostEntry]) -> int:
        self._entries.extend(entries)
        return len(entries)

    def load_day(self, day: date) -> list[CostEntry]:
        return [e for e in self._entries if e.day == day]

    def load_range(self, start: date, end: date) -> list[CostEntry]:
        return [e for e in self._entries if start <= e.day <= end]

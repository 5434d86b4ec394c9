"""AttemptTracker: owns per-task AttemptState and serializes its mutation."""

from __future__ import annotations

import threading
import zlib
from contextlib import contextmanager
from typing import Callable, Iterator

from escalade.core.protocols import IStateStore
from escalade.models.state import AttemptState, handler_key
from escalade.persistence.memory_backend import MemoryStateStore

DEFAULT_SHARDS = 64


class AttemptTracker:
    """Per-task progress: levels, attempt counts, errors, cost, approval.

    Mutators run under a lock chosen by hashing the task id onto a fixed set
    of shards, so unrelated tasks rarely contend and two writers on the same
    task never interleave a read-modify-write. Locks are only held for the
    duration of one mutation, never across a handler call.
    """

    def __init__(
        self,
        max_level: int,
        store: IStateStore | None = None,
        shards: int = DEFAULT_SHARDS,
    ) -> None:
        self.max_level = max_level
        self._store: IStateStore = store if store is not None else MemoryStateStore()
        self._locks = [threading.RLock() for _ in range(max(1, shards))]

    @contextmanager
    def _locked(self, task_id: str) -> Iterator[None]:
        lock = self._locks[zlib.crc32(task_id.encode("utf-8")) % len(self._locks)]
        with lock:
            yield

    def _load(self, task_id: str) -> AttemptState:
        # Caller holds the shard lock.
        state = self._store.get(task_id)
        if state is None:
            state = AttemptState(task_id=task_id)
            self._store.put(state)
        return state

    def _mutate(self, task_id: str, change: Callable[[AttemptState], None]) -> AttemptState:
        with self._locked(task_id):
            state = self._load(task_id)
            change(state)
            state.touch()
            self._store.put(state)
            return state

    def get_state(self, task_id: str) -> AttemptState:
        """Return the task's state, creating a fresh zero-valued one on first access."""
        with self._locked(task_id):
            return self._load(task_id)

    def peek_state(self, task_id: str) -> AttemptState | None:
        """Return the task's state without creating one."""
        with self._locked(task_id):
            return self._store.get(task_id)

    def record_attempt(self, task_id: str, level: int, handler_id: str | None = None) -> AttemptState:
        def change(state: AttemptState) -> None:
            state.attempts[level] = state.attempts.get(level, 0) + 1
            if handler_id is not None:
                key = handler_key(level, handler_id)
                state.handler_attempts[key] = state.handler_attempts.get(key, 0) + 1

        return self._mutate(task_id, change)

    def record_error(self, task_id: str, message: str) -> AttemptState:
        return self._mutate(task_id, lambda s: s.errors.append(message))

    def escalate(self, task_id: str) -> AttemptState:
        """Move one level up; a no-op at the top level."""
        def change(state: AttemptState) -> None:
            state.current_level = min(self.max_level, state.current_level + 1)

        return self._mutate(task_id, change)

    def advance_to(self, task_id: str, level: int) -> AttemptState:
        """Raise current_level to ``level`` (clamped); never lowers it."""
        def change(state: AttemptState) -> None:
            state.current_level = max(state.current_level, min(self.max_level, level))

        return self._mutate(task_id, change)

    def mark_spent(self, task_id: str, level: int, handler_id: str) -> AttemptState:
        key = handler_key(level, handler_id)

        def change(state: AttemptState) -> None:
            if key not in state.spent_handlers:
                state.spent_handlers.append(key)

        return self._mutate(task_id, change)

    def resolve(self, task_id: str) -> AttemptState:
        def change(state: AttemptState) -> None:
            state.resolved = True

        return self._mutate(task_id, change)

    def add_cost(self, task_id: str, amount: float) -> AttemptState:
        def change(state: AttemptState) -> None:
            state.cost += amount

        return self._mutate(task_id, change)

    def set_approval(self, task_id: str, approved: bool, handler_id: str | None = None) -> AttemptState:
        """Record approval for the task's gated stage, or for one handler id when given."""

        def change(state: AttemptState) -> None:
            if handler_id is None:
                state.approved = approved
            elif approved and handler_id not in state.approved_handlers:
                state.approved_handlers.append(handler_id)
            elif not approved and handler_id in state.approved_handlers:
                state.approved_handlers.remove(handler_id)

        return self._mutate(task_id, change)

    def reset_state(self, task_id: str) -> None:
        with self._locked(task_id):
            self._store.delete(task_id)

    def all_states(self) -> list[AttemptState]:
        return self._store.all()

    def unresolved_states(self) -> list[AttemptState]:
        return [s for s in self.all_states() if not s.resolved]

    def total_cost(self) -> float:
        return sum(s.cost for s in self.all_states())

    def clear(self) -> None:
        self._store.clear()

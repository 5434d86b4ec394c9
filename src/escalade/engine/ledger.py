"""CostLedger: append-only spend log with daily budget enforcement."""

from __future__ import annotations

import logging
import math
import threading
from datetime import UTC, date, datetime, timedelta
from typing import Any, Callable

from escalade.core.exceptions import CostArchiveError
from escalade.core.protocols import ICostArchive
from escalade.models.cost import CostEntry, DailyCostStats

logger = logging.getLogger(__name__)

BUDGET_WARNING_RATIO = 0.2


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CostLedger:
    """Records cost entries and answers budget questions for the current UTC day.

    A daily budget of 0 means unlimited. Daily statistics are always
    recomputed from the entry log; only today's running total is cached,
    keyed by a ``last_reset`` date and zeroed when the date rolls over.

    With an ``archive`` every recorded entry is written through to it, and
    ``restore`` reloads a day from it after a restart. A failed archive write
    is logged; the entry stays in the in-memory log.
    """

    def __init__(
        self,
        daily_budget: float = 0.0,
        *,
        on_budget_warning: Callable[[float, float], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        archive: ICostArchive | None = None,
    ) -> None:
        self._daily_budget = daily_budget
        self._archive = archive
        self._on_budget_warning = on_budget_warning
        self._clock = clock
        self._entries: list[CostEntry] = []
        self._lock = threading.Lock()
        self._last_reset = self._today()
        self._today_total = 0.0

    def _today(self) -> date:
        return self._clock().astimezone(UTC).date()

    def _roll_over(self) -> None:
        # Caller holds self._lock.
        today = self._today()
        if today != self._last_reset:
            self._last_reset = today
            self._today_total = 0.0

    def _recompute_today(self) -> None:
        # Caller holds self._lock.
        self._last_reset = self._today()
        self._today_total = sum(e.amount for e in self._entries if e.day == self._last_reset)

    @property
    def last_reset(self) -> date:
        with self._lock:
            self._roll_over()
            return self._last_reset

    def record(
        self,
        task_id: str,
        handler_id: str,
        amount: float,
        description: str = "Handler execution",
    ) -> CostEntry:
        entry = CostEntry(
            task_id=task_id,
            handler_id=handler_id,
            amount=amount,
            description=description,
            timestamp=self._clock(),
        )
        with self._lock:
            self._roll_over()
            self._entries.append(entry)
            if entry.day == self._last_reset:
                self._today_total += amount
            total = self._today_total
            budget = self._daily_budget

        logger.debug("Cost recorded task=%s handler=%s amount=%s", task_id, handler_id, amount)
        if self._archive is not None:
            try:
                self._archive.save([entry])
            except CostArchiveError:
                logger.exception("Archiving cost entry for task %s failed", task_id)
        if budget > 0:
            remaining = budget - total
            if 0 < remaining <= budget * BUDGET_WARNING_RATIO:
                logger.warning(
                    "Daily budget nearly spent: remaining=%.2f total=%.2f budget=%.2f",
                    remaining, total, budget,
                )
                if self._on_budget_warning is not None:
                    self._on_budget_warning(remaining, total)
        return entry

    def today_total(self) -> float:
        with self._lock:
            self._roll_over()
            return self._today_total

    def daily_stats(self, day: date | None = None) -> DailyCostStats:
        """Sum all entries whose UTC timestamp falls on ``day`` (default: today)."""
        target = day or self._today()
        with self._lock:
            entries = [e for e in self._entries if e.day == target]
        by_handler: dict[str, float] = {}
        for e in entries:
            by_handler[e.handler_id] = by_handler.get(e.handler_id, 0.0) + e.amount
        return DailyCostStats(
            day=target,
            total=sum(e.amount for e in entries),
            count=len(entries),
            by_handler=by_handler,
            entries=entries,
        )

    def stats_in_range(self, start: date, end: date) -> list[DailyCostStats]:
        """Per-day stats for every day in [start, end] that has at least one entry."""
        with self._lock:
            days = {e.day for e in self._entries}
        stats: list[DailyCostStats] = []
        current = start
        while current <= end:
            if current in days:
                stats.append(self.daily_stats(current))
            current += timedelta(days=1)
        return stats

    def can_afford(self, amount: float) -> bool:
        if self._daily_budget == 0:
            return True
        return self.today_total() + amount <= self._daily_budget

    def remaining_budget(self) -> float:
        if self._daily_budget == 0:
            return math.inf
        return max(0.0, self._daily_budget - self.today_total())

    def set_daily_budget(self, budget: float) -> None:
        self._daily_budget = budget

    def get_daily_budget(self) -> float:
        return self._daily_budget

    def total_cost(self) -> float:
        with self._lock:
            return sum(e.amount for e in self._entries)

    def entries(self) -> list[CostEntry]:
        with self._lock:
            return list(self._entries)

    def cleanup(self, keep_days: int = 30) -> int:
        """Drop entries older than ``keep_days`` days. Returns how many were removed."""
        cutoff = self._today() - timedelta(days=keep_days)
        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.day >= cutoff]
            self._recompute_today()
            return before - len(self._entries)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._recompute_today()

    # ---- serialization ----

    def export(self) -> list[dict[str, Any]]:
        with self._lock:
            return [e.model_dump(mode="json") for e in self._entries]

    def import_entries(self, data: list[dict[str, Any]]) -> None:
        """Replace the entry log with previously exported entries."""
        entries = [CostEntry.model_validate(item) for item in data]
        with self._lock:
            self._entries = entries
            self._recompute_today()

    def restore(self, day: date | None = None) -> int:
        """Replace the in-memory entries for ``day`` (default: today) with the archived ones."""
        if self._archive is None:
            return 0
        target = day or self._today()
        archived = self._archive.load_day(target)
        with self._lock:
            self._entries = [e for e in self._entries if e.day != target] + archived
            self._entries.sort(key=lambda e: e.timestamp)
            self._recompute_today()
        logger.info("Restored %d archived cost entries for %s", len(archived), target.isoformat())
        return len(archived)

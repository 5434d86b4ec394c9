"""Tests for CostLedger budget enforcement and aggregation."""

from __future__ import annotations

import logging
import math
import threading
from datetime import date

import pytest

from escalade.core.exceptions import CostArchiveError
from escalade.engine.ledger import CostLedger
from tests.fakes import FakeClock, MemoryCostArchive


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    return CostLedger(daily_budget=1000, clock=clock)


class TestRecord:
    def test_returns_entry_with_timestamp(self, ledger, clock):
        entry = ledger.record("task-1", "cloud-agent", 250, "Level 6 execution")
        assert entry.task_id == "task-1"
        assert entry.handler_id == "cloud-agent"
        assert entry.amount == 250
        assert entry.timestamp == clock.now

    def test_zero_amount_is_allowed(self, ledger):
        ledger.record("task-1", "local-fix", 0)
        assert ledger.daily_stats().count == 1
        assert ledger.daily_stats().total == 0

    def test_default_description(self, ledger):
        assert ledger.record("t", "h", 1).description == "Handler execution"


class TestDailyStats:
    def test_sums_todays_entries(self, ledger):
        ledger.record("t1", "cloud-agent", 100)
        ledger.record("t2", "cloud-agent", 50)
        ledger.record("t3", "agent-session", 25)
        stats = ledger.daily_stats()
        assert stats.total == 175
        assert stats.count == 3
        assert stats.by_handler == {"cloud-agent": 150, "agent-session": 25}

    def test_filters_by_date(self, ledger, clock):
        ledger.record("t1", "h", 100)
        clock.advance(days=1)
        ledger.record("t2", "h", 40)
        assert ledger.daily_stats().total == 40
        assert ledger.daily_stats(date(2026, 3, 14)).total == 100

    def test_empty_day(self, ledger):
        stats = ledger.daily_stats(date(2020, 1, 1))
        assert stats.total == 0
        assert stats.count == 0
        assert stats.by_handler == {}


class TestBudget:
    def test_can_afford_within_budget(self, ledger):
        ledger.record("t", "h", 600)
        assert ledger.can_afford(400) is True
        assert ledger.can_afford(401) is False

    def test_zero_budget_is_unlimited(self, clock):
        ledger = CostLedger(daily_budget=0, clock=clock)
        ledger.record("t", "h", 10_000)
        assert ledger.can_afford(1_000_000) is True
        assert ledger.remaining_budget() == math.inf

    def test_remaining_budget_never_negative(self, ledger):
        ledger.record("t", "h", 1500)
        assert ledger.remaining_budget() == 0

    def test_can_afford_false_whenever_remaining_below_amount(self, ledger):
        ledger.record("t", "h", 600)
        for amount in (401, 500, 1000):
            assert ledger.remaining_budget() < amount
            assert ledger.can_afford(amount) is False

    def test_budget_resets_at_day_boundary(self, ledger, clock):
        ledger.record("t", "h", 1000)
        assert ledger.can_afford(1) is False
        clock.advance(days=1)
        assert ledger.can_afford(1000) is True
        assert ledger.remaining_budget() == 1000
        assert ledger.last_reset == date(2026, 3, 15)

    def test_set_daily_budget_applies_immediately(self, ledger):
        ledger.record("t", "h", 600)
        ledger.set_daily_budget(500)
        assert ledger.get_daily_budget() == 500
        assert ledger.can_afford(1) is False
        ledger.set_daily_budget(0)
        assert ledger.can_afford(1) is True

    def test_warning_when_budget_nearly_spent(self, clock):
        warnings: list[tuple[float, float]] = []
        ledger = CostLedger(
            daily_budget=1000,
            clock=clock,
            on_budget_warning=lambda remaining, total: warnings.append((remaining, total)),
        )
        ledger.record("t", "h", 700)
        assert warnings == []
        ledger.record("t", "h", 150)
        assert warnings == [(150, 850)]

    def test_no_warning_once_budget_exhausted(self, clock):
        warnings: list[tuple[float, float]] = []
        ledger = CostLedger(daily_budget=100, clock=clock, on_budget_warning=lambda r, t: warnings.append((r, t)))
        ledger.record("t", "h", 100)
        assert warnings == []


class TestHistory:
    def test_total_cost_spans_days(self, ledger, clock):
        ledger.record("t", "h", 10)
        clock.advance(days=2)
        ledger.record("t", "h", 5)
        assert ledger.total_cost() == 15

    def test_stats_in_range_only_days_with_entries(self, ledger, clock):
        ledger.record("t", "h", 10)
        clock.advance(days=2)
        ledger.record("t", "h", 5)
        stats = ledger.stats_in_range(date(2026, 3, 13), date(2026, 3, 20))
        assert [s.day for s in stats] == [date(2026, 3, 14), date(2026, 3, 16)]

    def test_cleanup_drops_old_entries(self, ledger, clock):
        ledger.record("t", "h", 10)
        clock.advance(days=40)
        ledger.record("t", "h", 5)
        assert ledger.cleanup(keep_days=30) == 1
        assert ledger.total_cost() == 5

    def test_reset_clears_everything(self, ledger):
        ledger.record("t", "h", 10)
        ledger.reset()
        assert ledger.total_cost() == 0
        assert ledger.remaining_budget() == 1000


class TestExportImport:
    def test_import_restores_entries_and_budget_position(self, ledger, clock):
        ledger.record("t1", "cloud-agent", 300)
        ledger.record("t2", "cloud-agent", 200, "retry")
        exported = ledger.export()

        restored = CostLedger(daily_budget=1000, clock=clock)
        restored.import_entries(exported)
        assert restored.export() == exported
        assert restored.daily_stats().total == 500
        assert restored.remaining_budget() == 500

    def test_import_replaces_existing_entries(self, ledger, clock):
        ledger.record("old", "h", 999)
        ledger.import_entries([])
        assert ledger.total_cost() == 0


class _BrokenArchive(MemoryCostArchive):
    def save(self, entries):
        raise CostArchiveError("table missing")


class TestArchive:
    def test_record_writes_through(self, clock):
        archive = MemoryCostArchive()
        ledger = CostLedger(daily_budget=1000, clock=clock, archive=archive)

        entry = ledger.record("t1", "cloud-agent", 250)

        assert archive.load_day(clock.now.date()) == [entry]

    def test_restore_rebuilds_todays_spend(self, clock):
        archive = MemoryCostArchive()
        before_restart = CostLedger(daily_budget=1000, clock=clock, archive=archive)
        before_restart.record("t1", "cloud-agent", 600)
        clock.advance(days=-1)
        before_restart.record("t0", "cloud-agent", 50)
        clock.advance(days=1)

        ledger = CostLedger(daily_budget=1000, clock=clock, archive=archive)

        assert ledger.restore() == 1
        assert ledger.today_total() == 600
        assert ledger.can_afford(500) is False
        assert ledger.total_cost() == 600

    def test_restore_without_archive_is_noop(self, ledger):
        ledger.record("t1", "h", 5)
        assert ledger.restore() == 0
        assert ledger.today_total() == 5

    def test_failed_archive_write_keeps_entry(self, clock, caplog):
        ledger = CostLedger(daily_budget=1000, clock=clock, archive=_BrokenArchive())

        with caplog.at_level(logging.ERROR, logger="escalade.engine.ledger"):
            ledger.record("t1", "h", 10)

        assert ledger.today_total() == 10
        assert "Archiving cost entry for task t1 failed" in caplog.text


def test_concurrent_records_are_not_lost(clock):
    ledger = CostLedger(daily_budget=0, clock=clock)

    def worker():
        for _ in range(200):
            ledger.record("t", "h", 1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert ledger.daily_stats().count == 1600
    assert ledger.today_total() == 1600

"""EscalationExecutor: walks a task up the stages until a handler succeeds.

Per level, in order:

1. Policy skip (disabled stage, review gate, paid stage off or unapproved,
   unaffordable estimate): advance, no trail entry, no attempt consumed.
2. No bound handler: trail "No handler registered", advance.
3. Attempt cap reached: trail "Max attempts exceeded", advance.
4. Invoke the next handler. Success is terminal. Retry stays on the level
   while the handler's cap allows; Escalate, a raised exception, or a spent
   cap moves to the next handler of the stage, or the next level when none
   is left.

Task-level failures never raise; everything is reported in the RoutingResult.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import threading
from datetime import date
from typing import Any, Awaitable, Callable, Iterable

from escalade.core.config import EscalationConfig
from escalade.core.exceptions import ConfigurationError
from escalade.engine.approval import has_approval
from escalade.engine.ledger import CostLedger
from escalade.engine.registry import HandlerDefinition, HandlerRegistry
from escalade.engine.stages import Stage, validate_stages
from escalade.engine.tracker import AttemptTracker
from escalade.models.outcomes import Escalate, Retry, Success, coerce_outcome
from escalade.models.routing import (
    EXHAUSTED,
    MAX_ATTEMPTS,
    NO_HANDLER,
    ExecutorStats,
    RoutingResult,
    TrailEntry,
)
from escalade.models.state import AttemptState
from escalade.models.task import Classification, Task

logger = logging.getLogger(__name__)

HandlerSelectedHook = Callable[[HandlerDefinition, Task], None]
EscalateHook = Callable[[HandlerDefinition, Task, int, str], None]
CostHook = Callable[[HandlerDefinition, float, Task], None]


class HandlerTimeout(Exception):
    def __init__(self, handler_id: str, timeout_s: float) -> None:
        super().__init__(f"Handler {handler_id} timed out after {timeout_s:g}s")


def is_async_callable(fn: Any) -> bool:
    while isinstance(fn, functools.partial):
        fn = fn.func
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(getattr(fn, "__call__", None))


class EscalationExecutor:
    """Generic escalation engine over an ordered list of stages.

    The ledger and tracker are shared collaborators: pass the same instances
    to several executors to share one budget and one state space. When a
    ledger is injected its own daily budget is authoritative.

    Optional hooks run inline and are isolated from routing; one that raises
    is logged and ignored:

    - ``on_handler_selected(handler, task)`` before each invocation.
    - ``on_escalate(handler, task, to_level, reason)`` when a handler is given
      up on; ``to_level`` equals the current level while the stage still has
      another handler to try, and is past ``max_level`` on exhaustion.
    - ``on_cost(handler, amount, task)`` whenever an outcome carries a cost.
    """

    def __init__(
        self,
        stages: Iterable[Stage],
        *,
        config: EscalationConfig | None = None,
        ledger: CostLedger | None = None,
        tracker: AttemptTracker | None = None,
        registry: HandlerRegistry | None = None,
        on_handler_selected: HandlerSelectedHook | None = None,
        on_escalate: EscalateHook | None = None,
        on_cost: CostHook | None = None,
    ) -> None:
        self._stages = validate_stages(stages)
        self._config = config or EscalationConfig()
        self._ledger = ledger if ledger is not None else CostLedger(self._config.daily_budget)
        self._tracker = tracker if tracker is not None else AttemptTracker(max_level=self.max_level)
        self._registry = registry
        self._on_handler_selected = on_handler_selected
        self._on_escalate = on_escalate
        self._on_cost = on_cost

        if self._tracker.max_level != self.max_level:
            raise ConfigurationError(
                f"Tracker max_level={self._tracker.max_level} does not match "
                f"the {len(self._stages)} configured stages"
            )
        if registry is None and any(s.tier is not None for s in self._stages):
            raise ConfigurationError("Tier stages need a HandlerRegistry")

        self._stats_lock = threading.Lock()
        self._stats_day: date = self._ledger.last_reset
        self._tasks_processed = 0

    # ---- accessors ----

    @property
    def max_level(self) -> int:
        return len(self._stages) - 1

    @property
    def stages(self) -> list[Stage]:
        return self._stages

    @property
    def config(self) -> EscalationConfig:
        return self._config

    @property
    def ledger(self) -> CostLedger:
        return self._ledger

    @property
    def tracker(self) -> AttemptTracker:
        return self._tracker

    @property
    def registry(self) -> HandlerRegistry | None:
        return self._registry

    def get_state(self, task_id: str) -> AttemptState:
        return self._tracker.get_state(task_id)

    def reset_state(self, task_id: str) -> None:
        self._tracker.reset_state(task_id)

    def all_states(self) -> list[AttemptState]:
        return self._tracker.all_states()

    def update_config(self, **changes: Any) -> EscalationConfig:
        """Apply config changes; they take effect on the next level evaluated."""
        self._config = EscalationConfig(**{**self._config.model_dump(), **changes})
        if "daily_budget" in changes:
            self._ledger.set_daily_budget(self._config.daily_budget)
        return self._config

    def stats(self) -> ExecutorStats:
        with self._stats_lock:
            self._roll_stats()
            return ExecutorStats(
                daily_cost=self._ledger.today_total(),
                last_reset=self._stats_day,
                tasks_processed=self._tasks_processed,
            )

    def _roll_stats(self) -> None:
        # Caller holds self._stats_lock.
        today = self._ledger.last_reset
        if today != self._stats_day:
            self._stats_day = today
            self._tasks_processed = 0

    def _count_processed(self) -> None:
        with self._stats_lock:
            self._roll_stats()
            self._tasks_processed += 1

    # ---- main loop ----

    async def process(self, task: Task, classification: Classification | None = None) -> RoutingResult:
        trail: list[TrailEntry] = []
        total_cost = 0.0
        invocations = 0

        if has_approval(task, self._config.approval_handler_id):
            self._tracker.set_approval(task.id, True)

        state = self._tracker.get_state(task.id)
        if state.resolved:
            logger.debug("Task %s already resolved at level %d", task.id, state.current_level)
            return RoutingResult(success=True, level=state.current_level)

        level = state.current_level
        if classification is not None and classification.level > level:
            state = self._tracker.advance_to(task.id, classification.level)
            level = state.current_level
        logger.info("Routing task %s from level %d", task.id, level)

        while level <= self.max_level:
            stage = self._stages[level]
            state = self._tracker.get_state(task.id)

            reason = self._skip_reason(stage, state)
            if reason is not None:
                logger.info("Task %s skips level %d (%s): %s", task.id, level, stage.name, reason)
                level = self._advance(task.id, level)
                continue

            bound = self._bound_handlers(stage)
            if not bound:
                trail.append(TrailEntry(level=level, success=False, error=NO_HANDLER))
                level = self._advance(task.id, level)
                continue

            eligible = [h for h in bound if self._admit(h, task, state)]
            if not eligible:
                logger.info(
                    "Task %s skips level %d (%s): no approved or affordable handler",
                    task.id, level, stage.name,
                )
                level = self._advance(task.id, level)
                continue

            limit = stage.attempt_limit(len(bound))
            handler = self._next_handler(stage, eligible, state)
            if handler is None or state.attempts_at(level) >= limit:
                trail.append(TrailEntry(level=level, success=False, error=MAX_ATTEMPTS))
                level = self._advance(task.id, level)
                continue

            state = self._tracker.record_attempt(task.id, level, handler.id)
            invocations += 1
            logger.debug(
                "Task %s invoking %s at level %d (attempt %d/%d)",
                task.id, handler.id, level, state.attempts_at(level), limit,
            )
            self._notify(self._on_handler_selected, handler, task)
            outcome = await self._invoke(handler, task, state)

            if outcome.cost > 0:
                total_cost += outcome.cost
                self._tracker.add_cost(task.id, outcome.cost)
                self._ledger.record(
                    task.id, handler.id, outcome.cost,
                    f"Level {level} ({stage.name}) execution",
                )
                self._notify(self._on_cost, handler, outcome.cost, task)

            if isinstance(outcome, Success):
                self._tracker.resolve(task.id)
                trail.append(TrailEntry(level=level, success=True, handler_id=handler.id))
                self._count_processed()
                logger.info("Task %s resolved by %s at level %d", task.id, handler.id, level)
                return RoutingResult(
                    success=True,
                    level=level,
                    handler_id=handler.id,
                    data=outcome.data,
                    cost=total_cost,
                    attempts=invocations,
                    trail=trail,
                )

            if outcome.error:
                self._tracker.record_error(task.id, outcome.error)
            trail.append(
                TrailEntry(level=level, success=False, handler_id=handler.id, error=outcome.error)
            )

            state = self._tracker.get_state(task.id)
            capped = state.handler_attempts_at(level, handler.id) >= stage.max_attempts
            if isinstance(outcome, Escalate) or capped:
                state = self._tracker.mark_spent(task.id, level, handler.id)
                if state.attempts_at(level) >= limit or self._next_handler(stage, eligible, state) is None:
                    level = self._advance(task.id, level)
                self._notify(
                    self._on_escalate, handler, task, level,
                    outcome.error or ("Escalated" if isinstance(outcome, Escalate) else MAX_ATTEMPTS),
                )
            elif self._config.retry_delay_s > 0:
                await asyncio.sleep(self._config.retry_delay_s)

        self._count_processed()
        logger.info("Task %s exhausted all %d levels", task.id, len(self._stages))
        return RoutingResult(
            success=False,
            level=self.max_level,
            error=EXHAUSTED,
            cost=total_cost,
            attempts=invocations,
            trail=trail,
        )

    # ---- helpers ----

    def _advance(self, task_id: str, level: int) -> int:
        self._tracker.advance_to(task_id, level + 1)
        return level + 1

    def _skip_reason(self, stage: Stage, state: AttemptState) -> str | None:
        cfg = self._config
        if not stage.enabled:
            return "stage disabled"
        if stage.review_gate:
            if state.approved:
                return "approval already granted"
            if not cfg.approval_required:
                return "approval not required"
        if stage.paid and not cfg.paid_enabled:
            return "paid handlers disabled"
        if stage.requires_approval and cfg.approval_required and not state.approved:
            return "approval missing"
        if stage.estimated_cost > 0 and not self._ledger.can_afford(stage.estimated_cost):
            return f"estimated cost {stage.estimated_cost:g} exceeds remaining budget"
        return None

    def _bound_handlers(self, stage: Stage) -> list[HandlerDefinition]:
        if stage.tier is not None and self._registry is not None:
            return self._registry.for_tier(stage.tier)
        return sorted((h for h in stage.handlers if h.enabled), key=lambda h: (h.priority, h.cost))

    def _admit(self, handler: HandlerDefinition, task: Task, state: AttemptState) -> bool:
        """Per-handler policy: affordable, and approved for this handler id when required.

        Approval found on the task is recorded on the state so it persists.
        """
        if handler.cost > 0 and not self._ledger.can_afford(handler.cost):
            return False
        if handler.requires_approval and self._config.approval_required:
            if state.is_approved(handler.id):
                return True
            if not has_approval(task, handler.id):
                return False
            self._tracker.set_approval(task.id, True, handler.id)
        return True

    @staticmethod
    def _next_handler(
        stage: Stage, eligible: list[HandlerDefinition], state: AttemptState
    ) -> HandlerDefinition | None:
        for handler in eligible:
            if state.is_spent(stage.ordinal, handler.id):
                continue
            if state.handler_attempts_at(stage.ordinal, handler.id) >= stage.max_attempts:
                continue
            return handler
        return None

    @staticmethod
    def _notify(hook: Callable[..., None] | None, *args: Any) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception("Routing hook %r failed", hook)

    async def _invoke(
        self, handler: HandlerDefinition, task: Task, state: AttemptState
    ) -> Success | Retry | Escalate:
        try:
            result = await self._await(handler, self._call(handler, task, state))
            return coerce_outcome(result)
        except HandlerTimeout as exc:
            logger.warning("Task %s: %s", task.id, exc)
            return Retry(error=str(exc))
        except Exception as exc:
            logger.warning(
                "Task %s: handler %s raised at level %d: %s",
                task.id, handler.id, state.current_level, exc,
            )
            return Escalate(error=str(exc) or type(exc).__name__)

    @staticmethod
    async def _call(handler: HandlerDefinition, task: Task, state: AttemptState) -> Any:
        # Sync handlers run in a worker thread so they cannot stall the loop
        # and stay bounded by timeout_s.
        if is_async_callable(handler.execute):
            result = handler.execute(task, state)
        else:
            result = await asyncio.to_thread(handler.execute, task, state)
        if inspect.isawaitable(result):
            result = await result
        return result

    @staticmethod
    async def _await(handler: HandlerDefinition, awaitable: Awaitable[Any]) -> Any:
        if handler.timeout_s is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=handler.timeout_s)
        except asyncio.TimeoutError as exc:
            raise HandlerTimeout(handler.id, handler.timeout_s) from exc

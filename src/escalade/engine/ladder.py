"""Ready-made configurations of the executor: the 7-level ladder and the tier router."""

from __future__ import annotations

from typing import Any

from escalade.core.config import EscalationConfig
from escalade.core.exceptions import UnknownLevelError
from escalade.core.protocols import IHandler
from escalade.engine.executor import EscalationExecutor
from escalade.engine.ledger import CostLedger
from escalade.engine.registry import HandlerDefinition, HandlerRegistry
from escalade.engine.stages import apply_ladder_config, build_ladder_stages, build_tier_stages
from escalade.engine.tracker import AttemptTracker
from escalade.models.routing import RoutingResult
from escalade.models.task import Classification, Task


class EscalationLadder(EscalationExecutor):
    """Fixed ladder: static analysis, complexity evaluation, local fix, agent
    session, boosted agent session, human review, cloud agent.

    Exactly one handler is bound per level via ``register_handler``. Keyword
    hooks (``on_handler_selected``, ``on_escalate``, ``on_cost``) are passed
    through to EscalationExecutor.
    """

    def __init__(
        self,
        config: EscalationConfig | None = None,
        *,
        ledger: CostLedger | None = None,
        tracker: AttemptTracker | None = None,
        **hooks: Any,
    ) -> None:
        config = config or EscalationConfig()
        super().__init__(build_ladder_stages(config), config=config, ledger=ledger, tracker=tracker, **hooks)

    def register_handler(
        self,
        level: int,
        handler: IHandler,
        *,
        handler_id: str | None = None,
        timeout_s: float | None = None,
    ) -> EscalationLadder:
        if not 0 <= level <= self.max_level:
            raise UnknownLevelError(level, self.max_level)
        stage = self.stages[level]
        stage.handlers = [
            HandlerDefinition(id=handler_id or stage.name, execute=handler, timeout_s=timeout_s)
        ]
        return self

    def update_config(self, **changes: Any) -> EscalationConfig:
        config = super().update_config(**changes)
        apply_ladder_config(self.stages, config)
        return config


class TaskRouter(EscalationExecutor):
    """Tier router: one stage per complexity tier, handlers ranked by the registry.

    Routing starts at the classification's tier and escalates tier by tier.
    Each handler gets ``config.max_tier_attempts`` attempts before the next
    handler in the tier is tried.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        config: EscalationConfig | None = None,
        *,
        ledger: CostLedger | None = None,
        tracker: AttemptTracker | None = None,
        **hooks: Any,
    ) -> None:
        config = config or EscalationConfig()
        super().__init__(
            build_tier_stages(config.max_tier_attempts),
            config=config,
            ledger=ledger,
            tracker=tracker,
            registry=registry,
            **hooks,
        )

    async def route(self, task: Task, classification: Classification) -> RoutingResult:
        return await self.process(task, classification)

    def update_config(self, **changes: Any) -> EscalationConfig:
        config = super().update_config(**changes)
        for stage in self.stages:
            stage.max_attempts = config.max_tier_attempts
        return config

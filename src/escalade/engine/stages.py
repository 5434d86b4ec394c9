"""Stage definitions: the ordered levels a task escalates through.

A stage holds one or more ranked handlers. The fixed ladder binds exactly
one handler per level; the tier router resolves a stage's handlers from the
HandlerRegistry each time the stage is entered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable

from escalade.core.config import EscalationConfig
from escalade.core.exceptions import ConfigurationError
from escalade.engine.registry import HandlerDefinition
from escalade.models.task import TIER_ORDER


@dataclass
class Stage:
    ordinal: int
    name: str
    handlers: list[HandlerDefinition] = field(default_factory=list)
    max_attempts: int = 1  # per handler
    requires_approval: bool = False
    enabled: bool = True
    review_gate: bool = False
    paid: bool = False
    estimated_cost: float = 0.0
    tier: str | None = None

    def attempt_limit(self, handler_count: int | None = None) -> int:
        count = len(self.handlers) if handler_count is None else handler_count
        return self.max_attempts * max(1, count)


class LadderLevel(IntEnum):
    STATIC_ANALYSIS = 0
    COMPLEXITY_EVALUATION = 1
    LOCAL_FIX = 2
    AGENT_SESSION = 3
    AGENT_BOOSTED = 4
    HUMAN_REVIEW = 5
    CLOUD_AGENT = 6


LADDER_STAGE_NAMES: dict[LadderLevel, str] = {
    LadderLevel.STATIC_ANALYSIS: "static-analysis",
    LadderLevel.COMPLEXITY_EVALUATION: "complexity-evaluation",
    LadderLevel.LOCAL_FIX: "local-fix",
    LadderLevel.AGENT_SESSION: "agent-session",
    LadderLevel.AGENT_BOOSTED: "agent-boosted",
    LadderLevel.HUMAN_REVIEW: "human-review",
    LadderLevel.CLOUD_AGENT: "cloud-agent",
}


def ladder_attempt_caps(config: EscalationConfig) -> dict[int, int]:
    """Only the three worker levels retry; every other level gets one attempt."""
    return {
        LadderLevel.LOCAL_FIX: config.max_local_fix_attempts,
        LadderLevel.AGENT_SESSION: config.max_agent_attempts,
        LadderLevel.AGENT_BOOSTED: config.max_agent_boost_attempts,
    }


def build_ladder_stages(config: EscalationConfig) -> list[Stage]:
    caps = ladder_attempt_caps(config)
    stages = [
        Stage(ordinal=int(level), name=name, max_attempts=caps.get(level, 1))
        for level, name in LADDER_STAGE_NAMES.items()
    ]
    stages[LadderLevel.HUMAN_REVIEW].review_gate = True
    cloud = stages[LadderLevel.CLOUD_AGENT]
    cloud.name = config.approval_handler_id
    cloud.paid = True
    cloud.requires_approval = True
    cloud.estimated_cost = config.paid_estimated_cost
    return stages


def apply_ladder_config(stages: list[Stage], config: EscalationConfig) -> None:
    """Push runtime config changes into already-built ladder stages."""
    caps = ladder_attempt_caps(config)
    for stage in stages:
        stage.max_attempts = caps.get(stage.ordinal, 1)
        if stage.paid:
            stage.estimated_cost = config.paid_estimated_cost


def build_tier_stages(max_attempts: int) -> list[Stage]:
    """One stage per complexity tier, handlers resolved from the registry."""
    return [
        Stage(ordinal=i, name=str(tier), tier=str(tier), max_attempts=max_attempts)
        for i, tier in enumerate(TIER_ORDER)
    ]


def validate_stages(stages: Iterable[Stage]) -> list[Stage]:
    """Return stages sorted by ordinal, checking they form 0..n-1 with no gaps."""
    ordered = sorted(stages, key=lambda s: s.ordinal)
    if not ordered:
        raise ConfigurationError("At least one stage is required")
    ordinals = [s.ordinal for s in ordered]
    if ordinals != list(range(len(ordered))):
        raise ConfigurationError(f"Stage ordinals must be 0..{len(ordered) - 1}, got {ordinals}")
    for stage in ordered:
        if stage.max_attempts < 1:
            raise ConfigurationError(f"Stage {stage.ordinal} ({stage.name}) needs max_attempts >= 1")
    return ordered

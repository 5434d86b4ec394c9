"""Task input and complexity classification models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ComplexityTier(StrEnum):
    TRIVIAL = "trivial"
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    EXPERT = "expert"


TIER_ORDER: list[ComplexityTier] = [
    ComplexityTier.TRIVIAL,
    ComplexityTier.SIMPLE,
    ComplexityTier.MODERATE,
    ComplexityTier.COMPLEX,
    ComplexityTier.EXPERT,
]


class TierThresholds(BaseModel):
    """Upper score bounds per tier; anything above ``complex`` is expert."""

    trivial: float = 2.5
    simple: float = 5.0
    moderate: float = 7.0
    complex: float = 8.5


def score_to_tier(score: float, thresholds: TierThresholds | None = None) -> ComplexityTier:
    """Map a weighted 0-10 complexity score onto a tier."""
    t = thresholds or TierThresholds()
    if score <= t.trivial:
        return ComplexityTier.TRIVIAL
    if score <= t.simple:
        return ComplexityTier.SIMPLE
    if score <= t.moderate:
        return ComplexityTier.MODERATE
    if score <= t.complex:
        return ComplexityTier.COMPLEX
    return ComplexityTier.EXPERT


class Task(BaseModel):
    """A unit of work routed through the escalation stages. Read-only to the engine."""

    model_config = {"frozen": True}

    id: str
    description: str = ""
    context: Any = ""  # diff, prompt, file contents
    metadata: dict[str, Any] = Field(default_factory=dict)
    repo: Optional[str] = None

    @property
    def labels(self) -> list[str]:
        raw = self.metadata.get("labels")
        if isinstance(raw, (list, tuple, set)):
            return [str(label) for label in raw]
        return []


class Classification(BaseModel):
    """Complexity verdict computed once per task, before routing starts."""

    model_config = {"frozen": True}

    score: float = 0.0
    level: int = Field(default=0, ge=0)
    reasoning: str = ""
    tier: Optional[ComplexityTier] = None

    @classmethod
    def from_score(
        cls,
        score: float,
        reasoning: str = "",
        thresholds: TierThresholds | None = None,
    ) -> Classification:
        """Build a classification whose start level is the tier's index in TIER_ORDER."""
        tier = score_to_tier(score, thresholds)
        return cls(score=score, level=TIER_ORDER.index(tier), reasoning=reasoning, tier=tier)

    @classmethod
    def for_tier(cls, tier: ComplexityTier | str, score: float = 0.0, reasoning: str = "") -> Classification:
        tier = ComplexityTier(tier)
        return cls(score=score, level=TIER_ORDER.index(tier), reasoning=reasoning, tier=tier)

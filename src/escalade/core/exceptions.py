"""Escalade exception hierarchy.

Task-level failures are never raised: they come back inside a RoutingResult.
These exceptions cover programmer errors and storage backends only.
"""

from __future__ import annotations


class EscaladeError(Exception):
    """Base exception for all Escalade errors."""


class ConfigurationError(EscaladeError):
    """Stages or handlers were wired up inconsistently."""


class UnknownLevelError(ConfigurationError):
    """A handler was bound to a level the ladder does not define."""

    def __init__(self, level: int, max_level: int) -> None:
        self.level = level
        self.max_level = max_level
        super().__init__(f"Level {level} is outside the ladder (0..{max_level})")


class StateStoreError(EscaladeError):
    """Attempt state backend operation failed."""


class CostArchiveError(EscaladeError):
    """Cost archive backend operation failed."""

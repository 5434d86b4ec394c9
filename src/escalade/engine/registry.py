"""Handler registry: ranks caller-supplied handlers per capability tier."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from escalade.core.protocols import IHandler


@dataclass
class HandlerDefinition:
    """A registered handler and the policy attached to it.

    ``priority`` is the primary ranking key (lower is tried first); ``cost``
    breaks ties (cheaper first) and is the per-invocation estimate checked
    against the daily budget before the handler runs.
    """

    id: str
    execute: IHandler
    name: str = ""
    cost: float = 0.0
    priority: int = 100
    tiers: frozenset[str] = field(default_factory=frozenset)
    requires_approval: bool = False
    enabled: bool = True
    timeout_s: float | None = None
    capabilities: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.tiers = frozenset(str(t) for t in self.tiers)
        if not self.name:
            self.name = self.id

    def serves(self, tier: str) -> bool:
        return str(tier) in self.tiers


class HandlerRegistry:
    """Catalog of handlers, reconfigurable at runtime without re-registering."""

    def __init__(self, handlers: Iterable[HandlerDefinition] = ()) -> None:
        self._handlers: dict[str, HandlerDefinition] = {}
        self.register_all(handlers)

    def register(self, handler: HandlerDefinition) -> HandlerRegistry:
        self._handlers[handler.id] = handler
        return self

    def register_all(self, handlers: Iterable[HandlerDefinition]) -> HandlerRegistry:
        for handler in handlers:
            self.register(handler)
        return self

    def unregister(self, handler_id: str) -> bool:
        return self._handlers.pop(handler_id, None) is not None

    def set_enabled(self, handler_id: str, enabled: bool) -> None:
        if handler_id in self._handlers:
            self._handlers[handler_id].enabled = enabled

    def set_priority(self, handler_id: str, priority: int) -> None:
        if handler_id in self._handlers:
            self._handlers[handler_id].priority = priority

    def set_cost(self, handler_id: str, cost: float) -> None:
        if handler_id in self._handlers:
            self._handlers[handler_id].cost = cost

    def get(self, handler_id: str) -> HandlerDefinition | None:
        return self._handlers.get(handler_id)

    def has(self, handler_id: str) -> bool:
        return handler_id in self._handlers

    def all(self) -> list[HandlerDefinition]:
        return list(self._handlers.values())

    def enabled(self) -> list[HandlerDefinition]:
        return [h for h in self._handlers.values() if h.enabled]

    def for_tier(self, tier: str, include_disabled: bool = False) -> list[HandlerDefinition]:
        """Handlers serving ``tier``, ordered by (priority, cost)."""
        candidates = [
            h for h in self._handlers.values()
            if (include_disabled or h.enabled) and h.serves(tier)
        ]
        return sorted(candidates, key=lambda h: (h.priority, h.cost))

    def optimal_for(self, tier: str) -> HandlerDefinition | None:
        ranked = self.for_tier(tier)
        return ranked[0] if ranked else None

    def clear(self) -> None:
        self._handlers.clear()

    def export(self) -> list[dict[str, Any]]:
        """Registry configuration without the executable callables."""
        return [
            {
                "id": h.id,
                "name": h.name,
                "cost": h.cost,
                "priority": h.priority,
                "tiers": sorted(h.tiers),
                "requires_approval": h.requires_approval,
                "enabled": h.enabled,
                "timeout_s": h.timeout_s,
                "capabilities": dict(h.capabilities),
            }
            for h in self._handlers.values()
        ]

    def __len__(self) -> int:
        return len(self._handlers)

"""Handler outcomes: what a handler tells the executor after one invocation.

Exactly one of three shapes comes back from a handler:

- ``Success``: the task is resolved; routing stops.
- ``Retry``: the attempt failed but the same level may try again.
- ``Escalate``: the attempt failed and this handler should not be retried.

Handlers written against the older loose result mapping
(``{"success", "data", "error", "escalate", "cost"}``) are accepted through
``coerce_outcome``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class Success(BaseModel):
    kind: Literal["success"] = "success"
    data: Any = None
    cost: float = Field(default=0.0, ge=0.0)

    @property
    def error(self) -> Optional[str]:
        return None


class Retry(BaseModel):
    kind: Literal["retry"] = "retry"
    error: Optional[str] = None
    cost: float = Field(default=0.0, ge=0.0)


class Escalate(BaseModel):
    kind: Literal["escalate"] = "escalate"
    error: Optional[str] = None
    cost: float = Field(default=0.0, ge=0.0)


HandlerOutcome = Annotated[Union[Success, Retry, Escalate], Field(discriminator="kind")]


def coerce_outcome(value: Any) -> Success | Retry | Escalate:
    """Normalize a handler return value into a HandlerOutcome.

    Raises:
        TypeError: The value is neither an outcome nor a result mapping.
    """
    if isinstance(value, (Success, Retry, Escalate)):
        return value
    if not isinstance(value, Mapping):
        raise TypeError(f"Handler returned unsupported result type {type(value).__name__}")

    cost = float(value.get("cost") or 0.0)
    if value.get("success"):
        return Success(data=value.get("data"), cost=cost)
    error = value.get("error")
    if value.get("escalate"):
        return Escalate(error=error, cost=cost)
    return Retry(error=error, cost=cost)

"""Read-only views of attempt states and the cost ledger."""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request

from escalade.engine.executor import EscalationExecutor
from escalade.models.cost import DailyCostStats
from escalade.models.routing import ExecutorStats
from escalade.models.state import AttemptState

router = APIRouter(tags=["status"])


def _executor(request: Request) -> EscalationExecutor:
    return request.app.state.executor


@router.get("/states", response_model=list[AttemptState])
async def list_states(request: Request) -> list[AttemptState]:
    return _executor(request).all_states()


@router.get("/states/unresolved", response_model=list[AttemptState])
async def list_unresolved(request: Request) -> list[AttemptState]:
    return _executor(request).tracker.unresolved_states()


@router.get("/states/{task_id}", response_model=AttemptState)
async def get_state(task_id: str, request: Request) -> AttemptState:
    state = _executor(request).tracker.peek_state(task_id)
    if state is None:
        raise HTTPException(status_code=404, detail=f"No state for task {task_id}")
    return state


@router.get("/costs/daily", response_model=DailyCostStats)
async def daily_costs(request: Request, day: Optional[date] = None) -> DailyCostStats:
    return _executor(request).ledger.daily_stats(day)


@router.get("/costs/budget")
async def budget(request: Request) -> dict[str, Any]:
    ledger = _executor(request).ledger
    remaining = ledger.remaining_budget()
    return {
        "daily_budget": ledger.get_daily_budget(),
        "spent_today": ledger.today_total(),
        "remaining": None if math.isinf(remaining) else remaining,
        "unlimited": ledger.get_daily_budget() == 0,
    }


@router.get("/stats", response_model=ExecutorStats)
async def executor_stats(request: Request) -> ExecutorStats:
    return _executor(request).stats()

"""FastAPI application exposing read-only escalation status."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from escalade.api.routes import health, status
from escalade.core.config import AppSettings
from escalade.core.logging_config import setup_logging
from escalade.engine.executor import EscalationExecutor
from escalade.engine.ladder import EscalationLadder
from escalade.engine.ledger import CostLedger
from escalade.engine.stages import LADDER_STAGE_NAMES
from escalade.engine.tracker import AttemptTracker
from escalade.persistence import create_persistence


def build_default_executor(settings: AppSettings) -> EscalationExecutor:
    """A ladder with no handlers bound, sharing state through the configured store.

    When the DynamoDB archive is enabled the ledger writes every entry through
    to it and starts from the entries already archived for today.
    """
    state_store, cost_archive = create_persistence(settings)
    tracker = AttemptTracker(max_level=len(LADDER_STAGE_NAMES) - 1, store=state_store)
    ledger = CostLedger(settings.escalation.daily_budget, archive=cost_archive)
    ledger.restore()
    return EscalationLadder(settings.escalation, ledger=ledger, tracker=tracker)


def create_app(executor: EscalationExecutor | None = None) -> FastAPI:
    """Create the status API, optionally around an executor owned by the host process."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        settings = AppSettings()
        setup_logging(settings)
        app.state.settings = settings
        app.state.executor = executor or build_default_executor(settings)
        yield

    app = FastAPI(
        title="Escalade Status API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(health.router)
    app.include_router(status.router)
    return app

"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from escalade.core.config import AppSettings
from escalade.core.protocols import ICostArchive, IStateStore
from escalade.persistence.dynamodb_backend import DynamoDBCostArchive
from escalade.persistence.memory_backend import MemoryStateStore
from escalade.persistence.redis_backend import RedisStateStore


def create_persistence(
    settings: AppSettings | None = None,
) -> tuple[IStateStore, ICostArchive | None]:
    """Create wired-up persistence backends from application settings.

    Returns:
        Tuple of (state_store, cost_archive). The archive is None unless
        DynamoDB is enabled.
    """
    if settings is None:
        settings = AppSettings()

    state_store: IStateStore
    if settings.state_backend == "redis":
        state_store = RedisStateStore(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            key_prefix=settings.redis.key_prefix,
            ttl=settings.state_ttl_s,
        )
    else:
        state_store = MemoryStateStore()

    cost_archive: ICostArchive | None = None
    if settings.dynamodb.enabled:
        cost_archive = DynamoDBCostArchive(
            table_suffix=settings.dynamodb.table_suffix,
            region=settings.dynamodb.region,
            endpoint_url=settings.dynamodb.endpoint_url,
        )

    return state_store, cost_archive

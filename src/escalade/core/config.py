"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class EscalationConfig(BaseSettings):
    """Retry caps, paid-stage policy and daily budget for the escalation engine."""

    model_config = {"env_prefix": "ESCALADE_ESCALATION_"}

    max_local_fix_attempts: int = Field(default=2, ge=1)
    max_agent_attempts: int = Field(default=3, ge=1)
    max_agent_boost_attempts: int = Field(default=3, ge=1)
    max_tier_attempts: int = Field(default=3, ge=1)  # per handler, router variant
    paid_enabled: bool = False
    approval_required: bool = True
    daily_budget: float = Field(default=0.0, ge=0.0)  # 0 = unlimited
    paid_estimated_cost: float = Field(default=1000.0, ge=0.0)
    approval_handler_id: str = "cloud-agent"
    retry_delay_s: float = Field(default=0.0, ge=0.0)


class RedisConfig(BaseSettings):
    """Redis state store configuration."""

    model_config = {"env_prefix": "ESCALADE_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "escalade:state:"


class DynamoDBConfig(BaseSettings):
    """DynamoDB cost archive configuration."""

    model_config = {"env_prefix": "ESCALADE_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    enabled: bool = False


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "ESCALADE_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    state_backend: Literal["memory", "redis"] = "memory"
    state_ttl_s: int = 7 * 24 * 3600

    escalation: EscalationConfig = EscalationConfig()
    redis: RedisConfig = RedisConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()

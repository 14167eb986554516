"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class RedisConfig(BaseSettings):
    """Redis session store configuration."""

    model_config = {"env_prefix": "CONTACTFLOW_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    socket_timeout: float = 5.0


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration for the contact record store."""

    model_config = {"env_prefix": "CONTACTFLOW_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    contacts_table: str = "contactflow-contacts"
    reference_table: str = "contactflow-reference-data"


class WorkflowConfig(BaseSettings):
    """Constants governing the contact workflow orchestrator."""

    model_config = {"env_prefix": "CONTACTFLOW_WORKFLOW_"}

    session_prefix: str = "contact:session:"
    batch_prefix: str = "contact:batch:"
    account_index_prefix: str = "contact:account:"
    outcome_prefix: str = "contact:outcomes:"

    default_session_ttl: int = 7200  # 2 hours
    min_session_ttl: int = 300
    max_session_ttl: int = 86400
    default_extension_ttl: int = 3600
    completed_grace_ttl: int = 300

    default_batch_size: int = 10
    max_batch_size: int = 100
    default_max_processing_time: int = 1800
    min_processing_time: int = 60
    max_processing_time: int = 3600
    estimated_ms_per_contact: int = 500
    batch_progress_ttl: int = 86400

    max_retry_count: int = 3
    external_call_timeout: float = 10.0

    manual_review_resolution: Literal["resolution_endpoint", "auto_suffix"] = (
        "resolution_endpoint"
    )
    max_suffix_attempts: int = 5
    generated_business_id_prefix: str = "CONT"

    outcome_history_ttl: int = 30 * 86400
    outcome_history_limit: int = 5000


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "CONTACTFLOW_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    redis: RedisConfig = RedisConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    workflow: WorkflowConfig = WorkflowConfig()

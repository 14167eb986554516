"""Tests for production container wiring."""

from __future__ import annotations

from unittest.mock import patch

import fakeredis
from moto import mock_aws

from contactflow.containers import build_container
from contactflow.core.config import AppSettings, WorkflowConfig
from contactflow.persistence.dynamodb_backend import DynamoDBContactRepository


def test_build_container_wires_services():
    settings = AppSettings(log_level="WARNING", workflow=WorkflowConfig(max_retry_count=1))
    with mock_aws(), patch("redis.Redis", return_value=fakeredis.FakeRedis(decode_responses=True)):
        container = build_container(settings)

    assert container.settings is settings
    assert container.orchestrator.config.max_retry_count == 1
    assert isinstance(container.orchestrator._repository, DynamoDBContactRepository)
    assert container.bulk._store is container.store
    assert container.analytics.get_workflow_analytics("acct-1").total_contacts_processed == 0

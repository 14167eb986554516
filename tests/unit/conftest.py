"""Workflow fixtures wired over the in-memory backends."""

from __future__ import annotations

import pytest

from contactflow.core.config import WorkflowConfig
from contactflow.orchestration.bulk import BulkContactCoordinator
from contactflow.orchestration.workflow import ContactWorkflowOrchestrator
from contactflow.persistence.session_store import SessionStore
from tests.fakes import (
    FakeClock,
    FakeMonotonic,
    MemoryCacheBackend,
    MemoryContactRepository,
    StaticEnumLookup,
)

ACCOUNT = "acct-1"

VALID_CONTACT = {
    "user_business_id": "ACME-001",
    "email": "Jane@Acme.com",
    "work_phone": "416-555-0100",
    "job_title": "Senior Software Engineer",
    "business_website": "https://acme.com",
    "linkedin": "linkedin.com/in/Jane-Doe",
    "access_modifier": 1,
    "privilege": 3,
}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_clock():
    return FakeMonotonic()


@pytest.fixture
def workflow_config():
    return WorkflowConfig(external_call_timeout=5.0)


@pytest.fixture
def session_store(cache_clock, workflow_config):
    return SessionStore(MemoryCacheBackend(clock=cache_clock), workflow_config)


@pytest.fixture
def repo():
    return MemoryContactRepository()


@pytest.fixture
def orchestrator(session_store, repo, workflow_config, clock):
    return ContactWorkflowOrchestrator(
        store=session_store,
        uniqueness=repo,
        repository=repo,
        enum_lookup=StaticEnumLookup(),
        config=workflow_config,
        clock=clock,
    )


@pytest.fixture
def coordinator(orchestrator, session_store):
    return BulkContactCoordinator(orchestrator=orchestrator, store=session_store)

"""Dependency container wiring for the contact workflow."""

from __future__ import annotations

from dataclasses import dataclass

from contactflow.analytics.aggregator import WorkflowAnalyticsAggregator
from contactflow.core.config import AppSettings
from contactflow.core.logging import configure_logging
from contactflow.orchestration.bulk import BulkContactCoordinator
from contactflow.orchestration.workflow import ContactWorkflowOrchestrator
from contactflow.persistence import create_persistence
from contactflow.persistence.session_store import SessionStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: AppSettings
    store: SessionStore
    orchestrator: ContactWorkflowOrchestrator
    bulk: BulkContactCoordinator
    analytics: WorkflowAnalyticsAggregator


def build_container(settings: AppSettings | None = None) -> AppContainer:
    """Create the production container (Redis sessions, DynamoDB contacts)."""
    resolved_settings = settings or AppSettings()
    configure_logging(resolved_settings.log_level)

    store, repository, enum_lookup = create_persistence(resolved_settings)
    orchestrator = ContactWorkflowOrchestrator(
        store=store,
        uniqueness=repository,
        repository=repository,
        enum_lookup=enum_lookup,
        config=resolved_settings.workflow,
    )
    return AppContainer(
        settings=resolved_settings,
        store=store,
        orchestrator=orchestrator,
        bulk=BulkContactCoordinator(orchestrator=orchestrator, store=store),
        analytics=WorkflowAnalyticsAggregator(store),
    )

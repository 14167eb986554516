"""Workflow analytics, recomputed on demand from the outcome history."""

from __future__ import annotations

from collections import Counter

from contactflow.models.analytics import (
    FailureReason,
    NetworkingAnalytics,
    OutcomeKind,
    WorkflowAnalytics,
    WorkflowOutcome,
)
from contactflow.persistence.session_store import SessionStore

NETWORKING_OPPORTUNITY_THRESHOLD = 60


def _percent(part: int, whole: int) -> float:
    return round(100.0 * part / whole, 2) if whole else 0.0


class WorkflowAnalyticsAggregator:
    """Read side over the per-account outcome log. Nothing here is stored."""

    def __init__(self, store: SessionStore) -> None:
        self._store = store

    def get_workflow_analytics(self, account_id: str) -> WorkflowAnalytics:
        outcomes = self._store.load_outcomes(account_id)
        return summarize_workflow(account_id, outcomes)

    def get_professional_networking_analytics(self, account_id: str) -> NetworkingAnalytics:
        outcomes = self._store.load_outcomes(account_id)
        return summarize_networking(account_id, outcomes)


def summarize_workflow(account_id: str, outcomes: list[WorkflowOutcome]) -> WorkflowAnalytics:
    total = len(outcomes)
    if total == 0:
        return WorkflowAnalytics(account_id=account_id)

    completed = [o for o in outcomes if o.outcome == OutcomeKind.COMPLETED]
    failures = Counter(o.failure_reason or "unknown" for o in outcomes if o.outcome == OutcomeKind.FAILED)
    failed_total = sum(failures.values())

    return WorkflowAnalytics(
        account_id=account_id,
        total_contacts_processed=total,
        success_rate=_percent(len(completed), total),
        average_processing_time_ms=round(sum(o.processing_time_ms for o in outcomes) / total, 2),
        common_failure_reasons=[
            FailureReason(reason=reason, count=count, percentage=_percent(count, failed_total))
            for reason, count in failures.most_common()
        ],
        social_media_adoption_rate=_percent(sum(1 for o in completed if o.social_platforms), len(completed)),
        business_id_generation_rate=_percent(
            sum(1 for o in completed if o.business_id_generated), len(completed)
        ),
    )


def summarize_networking(account_id: str, outcomes: list[WorkflowOutcome]) -> NetworkingAnalytics:
    # Only contacts that were actually created count toward the network.
    contacts = [o for o in outcomes if o.outcome == OutcomeKind.COMPLETED]
    categories = Counter(o.job_title_category for o in contacts if o.job_title_category)
    industries = Counter(tag for o in contacts for tag in o.industry_tags)
    return NetworkingAnalytics(
        account_id=account_id,
        total_contacts=len(contacts),
        contacts_with_linkedin=sum(1 for o in contacts if o.has_linkedin),
        contacts_with_business_email=sum(1 for o in contacts if o.has_business_email),
        job_title_categories=dict(categories),
        industry_distribution=dict(industries),
        networking_opportunities=sum(
            1 for o in contacts if o.networking_potential >= NETWORKING_OPPORTUNITY_THRESHOLD
        ),
    )

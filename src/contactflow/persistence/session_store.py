"""Session store client: contact sessions, batch progress and outcome history.

Everything lives in the fast key-value store behind ``ICacheBackend``:

    <session_prefix><session_id>          JSON session, TTL = seconds to expiry
    <account_index_prefix><account_id>    set of live session ids
    <batch_prefix><batch_id>              hash: header fields + counters
    <batch_prefix><batch_id>:completed    list of contact ids
    <batch_prefix><batch_id>:failed       list of FailedContact JSON
    <batch_prefix><batch_id>:collisions   list of BusinessIdCollision JSON
    <outcome_prefix><account_id>          capped list of WorkflowOutcome JSON
"""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import ValidationError

from contactflow.core.config import WorkflowConfig
from contactflow.core.protocols import ICacheBackend
from contactflow.models.analytics import WorkflowOutcome
from contactflow.models.batch import BatchCounters, BatchStatus, BulkContactProgress, FailedContact
from contactflow.models.results import BusinessIdCollision
from contactflow.models.session import ContactSession

logger = logging.getLogger(__name__)

_COUNTER_FIELDS = tuple(BatchCounters.model_fields)


class SessionStore:
    """Typed access to workflow state held in the cache backend."""

    def __init__(self, cache: ICacheBackend, config: WorkflowConfig | None = None) -> None:
        self._cache = cache
        self._config = config or WorkflowConfig()

    # ---- sessions ----

    def _session_key(self, session_id: str) -> str:
        return f"{self._config.session_prefix}{session_id}"

    def save_session(self, session: ContactSession, ttl: int) -> None:
        self._cache.setex(self._session_key(session.session_id), max(1, ttl), session.model_dump_json())

    def load_session(self, session_id: str) -> ContactSession | None:
        raw = self._cache.get(self._session_key(session_id))
        if raw is None:
            return None
        try:
            return ContactSession.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable session %s", session_id)
            return None

    def delete_session(self, session_id: str) -> None:
        self._cache.delete(self._session_key(session_id))

    # ---- per-account index ----

    def _account_key(self, account_id: str) -> str:
        return f"{self._config.account_index_prefix}{account_id}"

    def index_session(self, account_id: str, session_id: str) -> None:
        self._cache.add_member(
            self._account_key(account_id), session_id, ttl=self._config.max_session_ttl
        )

    def unindex_session(self, account_id: str, session_id: str) -> None:
        self._cache.remove_member(self._account_key(account_id), session_id)

    def account_session_ids(self, account_id: str) -> set[str]:
        return self._cache.members(self._account_key(account_id))

    # ---- batch progress ----

    def _batch_key(self, batch_id: str, suffix: str = "") -> str:
        key = f"{self._config.batch_prefix}{batch_id}"
        return f"{key}:{suffix}" if suffix else key

    def create_batch(self, progress: BulkContactProgress) -> None:
        """Write the batch header and counters in one transaction."""
        fields = {
            "account_id": progress.account_id,
            "total_contacts": str(progress.total_contacts),
            "status": progress.status.value,
            "started_at": progress.started_at.isoformat(),
            "estimated_completion_at": progress.estimated_completion_at.isoformat(),
        }
        fields.update({name: str(getattr(progress.counters, name)) for name in _COUNTER_FIELDS})
        self._cache.set_fields(
            self._batch_key(progress.batch_id), fields, ttl=self._config.batch_progress_ttl
        )

    def move_member(self, batch_id: str, source: str, target: str) -> None:
        """Move one member between histogram buckets atomically."""
        self._cache.increment_fields(
            self._batch_key(batch_id), {source: -1, target: 1}, ttl=self._config.batch_progress_ttl
        )

    def record_completed(self, batch_id: str, contact_id: str) -> None:
        self._cache.append(
            self._batch_key(batch_id, "completed"), contact_id, ttl=self._config.batch_progress_ttl
        )

    def record_failure(self, batch_id: str, failure: FailedContact) -> None:
        self._cache.append(
            self._batch_key(batch_id, "failed"),
            failure.model_dump_json(),
            ttl=self._config.batch_progress_ttl,
        )

    def record_collision(self, batch_id: str, collision: BusinessIdCollision) -> None:
        self._cache.append(
            self._batch_key(batch_id, "collisions"),
            collision.model_dump_json(),
            ttl=self._config.batch_progress_ttl,
        )

    def finish_batch(self, batch_id: str, status: BatchStatus, finished_at: datetime) -> None:
        self._cache.set_fields(
            self._batch_key(batch_id),
            {"status": status.value, "finished_at": finished_at.isoformat()},
            ttl=self._config.batch_progress_ttl,
        )

    def load_batch(self, batch_id: str) -> BulkContactProgress | None:
        fields = self._cache.get_fields(self._batch_key(batch_id))
        if not fields:
            return None
        counters = BatchCounters(**{name: int(fields.get(name, 0)) for name in _COUNTER_FIELDS})
        return BulkContactProgress(
            batch_id=batch_id,
            account_id=fields["account_id"],
            total_contacts=int(fields["total_contacts"]),
            counters=counters,
            completed_contacts=self._cache.list_range(self._batch_key(batch_id, "completed")),
            failed_contacts=[
                FailedContact.model_validate_json(raw)
                for raw in self._cache.list_range(self._batch_key(batch_id, "failed"))
            ],
            business_id_collisions=[
                BusinessIdCollision.model_validate_json(raw)
                for raw in self._cache.list_range(self._batch_key(batch_id, "collisions"))
            ],
            status=BatchStatus(fields["status"]),
            started_at=datetime.fromisoformat(fields["started_at"]),
            estimated_completion_at=datetime.fromisoformat(fields["estimated_completion_at"]),
            finished_at=(
                datetime.fromisoformat(fields["finished_at"]) if fields.get("finished_at") else None
            ),
        )

    # ---- outcome history ----

    def _outcome_key(self, account_id: str) -> str:
        return f"{self._config.outcome_prefix}{account_id}"

    def append_outcome(self, outcome: WorkflowOutcome) -> None:
        self._cache.append(
            self._outcome_key(outcome.account_id),
            outcome.model_dump_json(),
            max_len=self._config.outcome_history_limit,
            ttl=self._config.outcome_history_ttl,
        )

    def load_outcomes(self, account_id: str) -> list[WorkflowOutcome]:
        return [
            WorkflowOutcome.model_validate_json(raw)
            for raw in self._cache.list_range(self._outcome_key(account_id))
        ]

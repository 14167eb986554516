"""BulkContactCoordinator: many contacts, independent failures.

Members run ``stage -> validate -> persist -> complete`` on their own; a chunk
of ``batch_size`` members runs concurrently and chunks run one after the
other. Progress lives in the session store as a position histogram
(``pending``, ``staged``, ``validated``, ``persisted``, ``failed``) moved
with atomic increments, so status reads never scan sessions.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import timedelta
from typing import Any, Mapping, Sequence

from contactflow.core.config import WorkflowConfig
from contactflow.core.exceptions import CacheError, ContactFlowError, ErrorKind, WorkflowError
from contactflow.core.ids import generate_id
from contactflow.models.batch import BatchCounters, BatchStatus, BulkContactProgress, FailedContact
from contactflow.models.contact import ContactPayload, RegistrationFlow
from contactflow.models.options import (
    BulkOptions,
    PersistenceOptions,
    StagingOptions,
    ValidationOptions,
)
from contactflow.orchestration.state_machine import WorkflowState
from contactflow.orchestration.workflow import ContactWorkflowOrchestrator, run_blocking
from contactflow.persistence.session_store import SessionStore

logger = logging.getLogger(__name__)

ContactInput = ContactPayload | Mapping[str, Any]


class _MemberFailed(Exception):
    """A member stopped short of completion with a recorded reason."""

    def __init__(self, reason: str, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.reason = reason
        self.retryable = retryable


class _Member:
    def __init__(self, index: int, contact: ContactInput) -> None:
        self.index = index
        self.contact = contact
        self.bucket = "pending"
        self.session_id: str | None = None
        self.finished = False
        self.failed = False
        self.persisting = False


class _BatchRun:
    def __init__(
        self,
        progress: BulkContactProgress,
        contacts: Sequence[ContactInput],
        options: BulkOptions,
        batch_size: int,
        max_processing_time: int,
    ) -> None:
        self.progress = progress
        self.options = options
        self.batch_size = batch_size
        self.max_processing_time = max_processing_time
        self.members = [_Member(i, c) for i, c in enumerate(contacts)]
        self.abort = asyncio.Event()

    @property
    def batch_id(self) -> str:
        return self.progress.batch_id

    @property
    def account_id(self) -> str:
        return self.progress.account_id


class BulkContactCoordinator:
    """Runs batches of contacts through the orchestrator."""

    def __init__(
        self,
        *,
        orchestrator: ContactWorkflowOrchestrator,
        store: SessionStore,
        config: WorkflowConfig | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._store = store
        self._config = config or orchestrator.config
        self._background: set[asyncio.Task] = set()

    async def _call(self, fn, *args: Any) -> Any:
        return await run_blocking(fn, *args, timeout=self._config.external_call_timeout)

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    async def process_bulk_contacts(
        self,
        contacts: Sequence[ContactInput],
        account_id: str,
        options: BulkOptions | None = None,
    ) -> BulkContactProgress:
        """Run a whole batch and return its final progress."""
        run = await self._start(contacts, account_id, options or BulkOptions())
        await self._run(run)
        progress = await self.get_bulk_operation_status(run.batch_id)
        if progress is None:
            raise CacheError(f"progress for batch {run.batch_id} disappeared")
        return progress

    async def submit_bulk_contacts(
        self,
        contacts: Sequence[ContactInput],
        account_id: str,
        options: BulkOptions | None = None,
    ) -> BulkContactProgress:
        """Start a batch in the background and return its initial progress."""
        run = await self._start(contacts, account_id, options or BulkOptions())
        task = asyncio.create_task(self._run(run), name=f"bulk-{run.batch_id}")
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return run.progress

    async def get_bulk_operation_status(self, batch_id: str) -> BulkContactProgress | None:
        return await self._call(self._store.load_batch, batch_id)

    async def wait_for_background(self) -> None:
        """Wait for every batch started with ``submit_bulk_contacts``."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background batch %s crashed", task.get_name(), exc_info=task.exception())

    # ------------------------------------------------------------------
    # batch lifecycle
    # ------------------------------------------------------------------

    async def _start(
        self, contacts: Sequence[ContactInput], account_id: str, options: BulkOptions
    ) -> _BatchRun:
        if not contacts:
            raise ValueError("bulk submission needs at least one contact")
        batch_size = options.batch_size
        if batch_size is None:
            batch_size = self._config.default_batch_size
        if not 1 <= batch_size <= self._config.max_batch_size:
            raise ValueError(f"batch_size must be between 1 and {self._config.max_batch_size}")
        max_time = options.max_processing_time
        if max_time is None:
            max_time = self._config.default_max_processing_time
        low, high = self._config.min_processing_time, self._config.max_processing_time
        if not low <= max_time <= high:
            raise ValueError(f"max_processing_time must be between {low} and {high} seconds")

        now = self._orchestrator.now()
        chunks = math.ceil(len(contacts) / batch_size)
        progress = BulkContactProgress(
            batch_id=generate_id("batch_contact", now),
            account_id=account_id,
            total_contacts=len(contacts),
            counters=BatchCounters(pending=len(contacts)),
            started_at=now,
            estimated_completion_at=now + timedelta(
                milliseconds=chunks * self._config.estimated_ms_per_contact
            ),
        )
        await self._call(self._store.create_batch, progress)
        logger.info(
            "Started batch %s for account %s: %d contacts in chunks of %d",
            progress.batch_id, account_id, len(contacts), batch_size,
        )
        return _BatchRun(progress, contacts, options, batch_size, max_time)

    async def _run(self, run: _BatchRun) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + run.max_processing_time

        for start in range(0, len(run.members), run.batch_size):
            chunk = run.members[start:start + run.batch_size]
            remaining = deadline - loop.time()
            if run.abort.is_set():
                await self._fail_unstarted(run, chunk, "aborted", "batch aborted after an earlier failure")
                continue
            if remaining <= 0:
                await self._fail_unstarted(run, chunk, ErrorKind.TIMEOUT.value, "batch time limit reached")
                continue

            tasks = [asyncio.create_task(self._run_member(run, m)) for m in chunk]
            _, pending = await asyncio.wait(tasks, timeout=remaining)
            if pending:
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                timed_out = [m for m in chunk if not m.finished]
                for member in timed_out:
                    if member.persisting:
                        # The create may still land after the cancel.
                        await self._fail_member(
                            run, member, ErrorKind.TIMEOUT.value,
                            "batch time limit reached during persistence; "
                            "the contact may have been created",
                            retryable=False,
                        )
                    else:
                        await self._fail_member(
                            run, member, ErrorKind.TIMEOUT.value,
                            "batch time limit reached while processing", retryable=True,
                        )

        await self._finish(run)

    async def _finish(self, run: _BatchRun) -> None:
        failed = sum(1 for m in run.members if m.failed)
        if failed == 0:
            status = BatchStatus.COMPLETED
        elif failed == len(run.members) or run.abort.is_set():
            status = BatchStatus.FAILED
        else:
            status = BatchStatus.PARTIAL_FAILURE
        await self._call(self._store.finish_batch, run.batch_id, status, self._orchestrator.now())
        logger.info(
            "Batch %s finished %s: %d of %d failed",
            run.batch_id, status, failed, len(run.members),
        )

    # ------------------------------------------------------------------
    # members
    # ------------------------------------------------------------------

    async def _move(self, run: _BatchRun, member: _Member, bucket: str) -> None:
        # Record the new bucket first: a cancelled await still lets the increment land.
        source, member.bucket = member.bucket, bucket
        await self._call(self._store.move_member, run.batch_id, source, bucket)

    async def _run_member(self, run: _BatchRun, member: _Member) -> None:
        orchestrator = self._orchestrator
        options = run.options
        try:
            staged = await orchestrator.stage(
                member.contact,
                run.account_id,
                StagingOptions(registration_flow=RegistrationFlow.BULK),
                batch_id=run.batch_id,
            )
            member.session_id = staged.session_id
            await self._move(run, member, "staged")
            if staged.state == WorkflowState.STAGING_FAILED:
                raise _MemberFailed("staging_failed", "; ".join(staged.validation_errors))

            validated = await orchestrator.validate(
                staged.session_id,
                ValidationOptions(
                    skip_business_id_check=not options.validate_business_id_uniqueness,
                    generate_networking_insights=options.generate_networking_insights,
                ),
            )
            if validated.state == WorkflowState.MANUAL_REVIEW:
                for collision in validated.business_id_collisions:
                    await self._call(self._store.record_collision, run.batch_id, collision)
                raise _MemberFailed(
                    ErrorKind.UNIQUENESS_COLLISION.value,
                    f"business id {validated.business_id} is already in use",
                    retryable=False,
                )
            if validated.state != WorkflowState.VALIDATED:
                raise _MemberFailed(
                    ErrorKind.VALIDATION_FAILED.value,
                    "; ".join(validated.validation_results.errors),
                )
            await self._move(run, member, "validated")

            member.persisting = True
            persisted = await orchestrator.persist(
                staged.session_id,
                PersistenceOptions(
                    set_primary_contact=options.set_primary_contact,
                    generate_business_id=options.generate_business_id,
                ),
            )
            member.persisting = False
            if persisted.state == WorkflowState.MANUAL_REVIEW:
                for collision in persisted.business_id_collisions:
                    await self._call(self._store.record_collision, run.batch_id, collision)
                raise _MemberFailed(
                    ErrorKind.UNIQUENESS_COLLISION.value,
                    persisted.error or "business id already in use",
                    retryable=False,
                )
            if persisted.state != WorkflowState.PERSISTED:
                raise _MemberFailed(ErrorKind.PERSISTENCE_FAILED.value, persisted.error or "persistence failed")
            await self._move(run, member, "persisted")

            completion = await orchestrator.complete(staged.session_id)
            await self._call(self._store.record_completed, run.batch_id, completion.contact_id)
            member.finished = True
        except _MemberFailed as exc:
            await self._fail_member(run, member, exc.reason, str(exc), exc.retryable)
        except WorkflowError as exc:
            await self._fail_member(
                run, member, exc.kind.value, str(exc),
                retryable=exc.kind != ErrorKind.RETRY_EXHAUSTED,
                emit=exc.kind != ErrorKind.RETRY_EXHAUSTED,
            )
        except ContactFlowError as exc:
            await self._fail_member(run, member, type(exc).__name__, str(exc), retryable=True)
        except Exception as exc:
            logger.exception("Unexpected error for member %d of batch %s", member.index, run.batch_id)
            await self._fail_member(run, member, "unexpected_error", str(exc), retryable=False)

    async def _fail_member(
        self,
        run: _BatchRun,
        member: _Member,
        reason: str,
        message: str,
        retryable: bool,
        emit: bool = True,
    ) -> None:
        member.finished = True
        member.failed = True
        await self._move(run, member, "failed")
        await self._call(self._store.record_failure, run.batch_id, FailedContact(
            session_id=member.session_id,
            index=member.index,
            error=message,
            retryable=retryable,
        ))
        if emit:
            await self._orchestrator.record_failure(
                account_id=run.account_id,
                reason=reason,
                detail=message,
                started_at=run.progress.started_at,
                session_id=member.session_id,
                batch_id=run.batch_id,
            )
        logger.warning("Batch %s member %d failed (%s): %s", run.batch_id, member.index, reason, message)
        if not run.options.continue_on_error:
            run.abort.set()

    async def _fail_unstarted(
        self, run: _BatchRun, members: list[_Member], reason: str, message: str
    ) -> None:
        for member in members:
            await self._fail_member(run, member, reason, message, retryable=True)

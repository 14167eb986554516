"""ContactWorkflowOrchestrator: staged, resumable contact creation.

A contact moves through staging, validation and persistence as separate
calls against a TTL-bound session; callers may drop off between calls and
resume later with the session id. Every external call (session store,
uniqueness checker, contact repository, reference data) runs in a worker
thread under ``external_call_timeout``.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from contactflow.core.config import WorkflowConfig
from contactflow.core.exceptions import (
    BusinessIdClaimedError,
    ErrorKind,
    RepositoryError,
    WorkflowError,
)
from contactflow.core.ids import generate_business_id, generate_id
from contactflow.core.protocols import IContactRepository, IEnumLookup, IUniquenessChecker
from contactflow.models.analytics import OutcomeKind, WorkflowOutcome
from contactflow.models.contact import ContactPayload, ContactRecord, SocialPlatform
from contactflow.models.options import PersistenceOptions, StagingOptions, ValidationOptions
from contactflow.models.results import (
    BusinessIdCollision,
    CancellationResult,
    CommunicationPreferences,
    CompletionResult,
    ExtensionResult,
    NetworkingInsights,
    PersistenceResult,
    ProfessionalNetworkingCheck,
    SocialMediaAnalysis,
    SocialMediaSummary,
    StagingResult,
    ValidationOutcome,
    ValidationResult,
)
from contactflow.models.session import ContactSession
from contactflow.normalization.professional import build_networking_insights
from contactflow.normalization.social_media import (
    detect_platform,
    extract_social_profiles,
    normalize_social_url,
    profile_quality,
)
from contactflow.orchestration.state_machine import (
    WorkflowEvent,
    WorkflowState,
    WorkflowStep,
    allowed_events,
    transition,
)
from contactflow.persistence.session_store import SessionStore
from contactflow.validation.rules import (
    apply_business_rules,
    check_business_id,
    check_reference_data,
    format_phone,
    is_valid_email,
    structural_check,
)

logger = logging.getLogger(__name__)

S = WorkflowState

STEPS_COMPLETED = ["staging", "validation", "persistence", "completion"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def run_blocking(fn: Callable[..., Any], *args: Any, timeout: float) -> Any:
    """Run a blocking collaborator call in a worker thread, bounded by ``timeout``.

    Raises:
        WorkflowError: ``TIMEOUT`` when the call does not finish in time.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
    except TimeoutError as exc:
        name = getattr(fn, "__qualname__", repr(fn))
        raise WorkflowError(ErrorKind.TIMEOUT, f"{name} timed out after {timeout}s") from exc


class ContactWorkflowOrchestrator:
    """Drives one contact at a time through the workflow state machine."""

    def __init__(
        self,
        *,
        store: SessionStore,
        uniqueness: IUniquenessChecker,
        repository: IContactRepository,
        enum_lookup: IEnumLookup,
        config: WorkflowConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._uniqueness = uniqueness
        self._repository = repository
        self._enums = enum_lookup
        self._config = config or WorkflowConfig()
        self._clock = clock

    @property
    def config(self) -> WorkflowConfig:
        return self._config

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await run_blocking(fn, *args, timeout=self._config.external_call_timeout)

    async def _load(self, session_id: str) -> ContactSession:
        session = await self._call(self._store.load_session, session_id)
        if session is None:
            raise WorkflowError.session_not_found(session_id)
        return session

    async def _save(self, session: ContactSession) -> None:
        session.version += 1
        remaining = (session.expires_at - self.now()).total_seconds()
        await self._call(self._store.save_session, session, max(1, math.ceil(remaining)))

    def _move(self, session: ContactSession, event: WorkflowEvent, now: datetime) -> None:
        session.state = transition(session.state, event, session.session_id)
        session.last_updated_at = now

    async def _step_back(
        self, session: ContactSession, event: WorkflowEvent, reason: str, now: datetime
    ) -> None:
        """Take a retry edge, failing the session once retries run out.

        Raises:
            WorkflowError: ``RETRY_EXHAUSTED`` after the session was saved as failed.
        """
        session.retry_count += 1
        session.last_error = reason
        if session.retry_count <= self._config.max_retry_count:
            self._move(session, event, now)
            return

        self._move(session, WorkflowEvent.RETRIES_EXHAUSTED, now)
        session.record("failed", "retry_exhausted", now, reason=reason)
        await self._save(session)
        await self._emit_outcome(session, OutcomeKind.FAILED, ErrorKind.RETRY_EXHAUSTED.value, reason)
        await self._call(self._store.unindex_session, session.account_id, session.session_id)
        logger.warning(
            "Session %s failed after %d retries: %s",
            session.session_id, session.retry_count - 1, reason,
        )
        raise WorkflowError(
            ErrorKind.RETRY_EXHAUSTED,
            f"gave up after {self._config.max_retry_count} retries: {reason}",
            session.session_id,
            {"retry_count": session.retry_count},
        )

    def _resolve_ttl(self, ttl: int | None, default: int) -> int:
        value = default if ttl is None else ttl
        low, high = self._config.min_session_ttl, self._config.max_session_ttl
        if not low <= value <= high:
            raise ValueError(f"TTL must be between {low} and {high} seconds, got {value}")
        return value

    def _clear_business_id(self, session: ContactSession, now: datetime, reason: str) -> None:
        if session.business_id is None:
            return
        session.record(
            session.step.value, "business_id_cleared", now,
            previous=session.business_id, reason=reason,
        )
        session.business_id = None
        session.business_id_generated = False

    async def _find_free_suffix(self, business_id: str) -> str | None:
        """First unique ``<id>-N`` (N from 2), kept within the 20-char limit."""
        for n in range(2, 2 + self._config.max_suffix_attempts):
            suffix = f"-{n}"
            candidate = f"{business_id[: 20 - len(suffix)]}{suffix}"
            result = await self._call(self._uniqueness.check, candidate)
            if result.unique:
                return candidate
        return None

    # ------------------------------------------------------------------
    # staging
    # ------------------------------------------------------------------

    async def stage(
        self,
        contact: ContactPayload | Mapping[str, Any],
        account_id: str,
        options: StagingOptions | None = None,
        *,
        batch_id: str | None = None,
    ) -> StagingResult:
        """Create a session in ``staged`` (or ``staging_failed``)."""
        options = options or StagingOptions()
        ttl = self._resolve_ttl(options.session_ttl, self._config.default_session_ttl)
        payload = self._coerce_payload(contact)

        now = self.now()
        errors, warnings = ([], []) if options.skip_initial_validation else structural_check(payload)
        event = WorkflowEvent.STRUCTURE_REJECTED if errors else WorkflowEvent.STRUCTURE_ACCEPTED

        session = ContactSession(
            session_id=generate_id("sess_contact", now),
            account_id=account_id,
            registration_flow=options.registration_flow,
            batch_id=batch_id,
            contact=payload,
            business_id=payload.user_business_id if not errors else None,
            social_profiles=extract_social_profiles(payload),
            created_at=now,
            last_updated_at=now,
            ttl_seconds=ttl,
        )
        session.state = transition(session.state, event, session.session_id)
        session.record("staging", session.state.value, now, errors=errors or None)
        if errors:
            session.last_error = "; ".join(errors)

        await self._save(session)
        await self._call(self._store.index_session, account_id, session.session_id)
        logger.info("Staged session %s for account %s (%s)", session.session_id, account_id, session.state)
        return self._staging_result(session, errors, warnings)

    async def get_staged(self, session_id: str) -> ContactSession | None:
        return await self._call(self._store.load_session, session_id)

    async def update_staged(self, session_id: str, updates: Mapping[str, Any]) -> StagingResult:
        """Merge ``updates`` into the working payload while still in staging."""
        session = await self._load(session_id)
        if session.step != WorkflowStep.STAGING:
            raise WorkflowError.invalid_state(session_id, session.state.value, "update staged contact")

        merged = self._coerce_payload({**session.contact.model_dump(), **dict(updates)})
        now = self.now()
        if merged.user_business_id != session.business_id:
            self._clear_business_id(session, now, "staged update")

        errors, warnings = structural_check(merged)
        session.contact = merged
        session.normalized_contact = None
        session.social_profiles = extract_social_profiles(merged)
        if not errors:
            session.business_id = merged.user_business_id

        event = WorkflowEvent.STRUCTURE_REJECTED if errors else WorkflowEvent.STRUCTURE_ACCEPTED
        self._move(session, event, now)
        session.last_error = "; ".join(errors) if errors else None
        session.record("staging", "updated", now, fields=sorted(updates), errors=errors or None)

        await self._save(session)
        logger.info("Updated staged session %s (%s)", session_id, session.state)
        return self._staging_result(session, errors, warnings)

    def _coerce_payload(self, contact: ContactPayload | Mapping[str, Any]) -> ContactPayload:
        if isinstance(contact, ContactPayload):
            return contact
        try:
            return ContactPayload.model_validate(dict(contact))
        except ValidationError as exc:
            raise WorkflowError(
                ErrorKind.VALIDATION_FAILED,
                f"contact payload rejected: {exc.error_count()} error(s)",
                details={"errors": exc.errors(include_url=False)},
            ) from exc

    @staticmethod
    def _staging_result(
        session: ContactSession, errors: list[str], warnings: list[str]
    ) -> StagingResult:
        return StagingResult(
            session_id=session.session_id,
            state=session.state,
            contact_data=session.contact,
            business_id=session.business_id,
            social_media_profiles=session.social_profiles,
            validation_warnings=warnings,
            validation_errors=errors,
            expires_at=session.expires_at,
        )

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------

    async def validate(
        self, session_id: str, options: ValidationOptions | None = None
    ) -> ValidationResult:
        """Normalize, check uniqueness and formats, and classify the contact."""
        options = options or ValidationOptions()
        session = await self._load(session_id)
        if WorkflowEvent.VALIDATION_PASSED not in allowed_events(session.state):
            raise WorkflowError.invalid_state(session_id, session.state.value, "validate")

        contact = session.contact
        outcome = ValidationOutcome()
        errors, warnings = outcome.errors, outcome.warnings

        # (a) social media normalization
        raw_profiles = extract_social_profiles(contact)
        if options.skip_social_media_normalization:
            profiles = raw_profiles
        else:
            profiles = self._normalize_profiles(contact, raw_profiles, errors, warnings)
            outcome.social_media_normalized = True

        # (b) business id uniqueness
        collisions: list[BusinessIdCollision] = []
        business_id = session.business_id
        id_problem = check_business_id(business_id) if business_id else None
        if id_problem:
            errors.append(id_problem)
        elif options.skip_business_id_check:
            pass
        elif business_id is None:
            warnings.append("No business ID provided; one will be generated at persistence")
        else:
            result = await self._call(self._uniqueness.check, business_id)
            if not result.unique:
                outcome.business_id_unique = False
                collisions.append(BusinessIdCollision(
                    session_id=session_id,
                    business_id=business_id,
                    existing_contact_id=result.existing_contact_id or "unknown",
                ))

        # (c) formats, business rules, reference data
        updates: dict[str, Any] = {}
        if contact.email:
            outcome.email_valid = is_valid_email(contact.email)
            if outcome.email_valid:
                updates["email"] = contact.email.lower()
            else:
                errors.append(f"Invalid email format: {contact.email}")
        for name in ("home_phone", "work_phone"):
            raw = getattr(contact, name)
            if not raw:
                continue
            formatted = format_phone(raw)
            if formatted is None:
                outcome.phone_valid = False
                errors.append(f"Invalid {name.replace('_', ' ')}: {raw}")
            else:
                updates[name] = formatted

        report = apply_business_rules(contact, profiles)
        outcome.business_rules_applied.extend(report.applied)
        errors.extend(report.errors)
        warnings.extend(report.warnings)

        outcome.business_rules_applied.append("reference_data")
        errors.extend(await self._call(check_reference_data, contact, self._enums))

        # (d) professional networking
        for platform, url in profiles.items():
            if contact.social_url(platform):
                updates[platform.value] = url
        normalized = contact.model_copy(update=updates)
        insights: NetworkingInsights | None = None
        if options.generate_networking_insights:
            insights = build_networking_insights(normalized, profiles)
            outcome.business_rules_applied.append("professional_networking")
            outcome.professional_networking = ProfessionalNetworkingCheck(
                job_title_analyzed=bool(contact.job_title),
                industry_detected=bool(insights.industry_tags),
                experience_level_estimated=insights.experience_level != "unknown",
            )

        now = self.now()
        session.social_profiles = profiles
        if errors:
            session.normalized_contact = None
            session.record("validation", "validation_failed", now, errors=list(errors))
            await self._step_back(session, WorkflowEvent.VALIDATION_REJECTED, "; ".join(errors), now)
        elif collisions:
            await self._handle_collision(session, collisions, outcome, normalized, now)
        else:
            self._mark_validated(session, normalized, now)

        await self._save(session)
        logger.info("Validated session %s -> %s", session_id, session.state)
        return ValidationResult(
            session_id=session_id,
            state=session.state,
            original_data=contact,
            normalized_data=session.normalized_contact,
            business_id=session.business_id,
            validation_results=outcome,
            business_id_collisions=collisions if session.state == S.MANUAL_REVIEW else [],
            networking_insights=insights,
            validated_at=now,
        )

    @staticmethod
    def _normalize_profiles(
        contact: ContactPayload,
        raw_profiles: dict[SocialPlatform, str],
        errors: list[str],
        warnings: list[str],
    ) -> dict[SocialPlatform, str]:
        profiles: dict[SocialPlatform, str] = {}
        for platform, raw in raw_profiles.items():
            try:
                profiles[platform] = normalize_social_url(platform, raw)
            except ValueError as exc:
                # A social-looking business website is advisory only.
                if contact.social_url(platform):
                    errors.append(f"Invalid {platform.value} profile: {exc}")
                else:
                    warnings.append(f"Business website is not a usable {platform.value} profile")
        return profiles

    def _mark_validated(self, session: ContactSession, normalized: ContactPayload, now: datetime) -> None:
        self._move(session, WorkflowEvent.VALIDATION_PASSED, now)
        session.normalized_contact = normalized.model_copy(
            update={"user_business_id": session.business_id}
        )
        session.last_error = None
        session.record("validation", "validated", now)

    async def _handle_collision(
        self,
        session: ContactSession,
        collisions: list[BusinessIdCollision],
        outcome: ValidationOutcome,
        normalized: ContactPayload,
        now: datetime,
    ) -> None:
        taken = collisions[0]
        if self._config.manual_review_resolution == "auto_suffix":
            candidate = await self._find_free_suffix(taken.business_id)
            if candidate is not None:
                self._clear_business_id(session, now, "uniqueness collision")
                session.business_id = candidate
                outcome.business_id_unique = True
                outcome.warnings.append(
                    f"Business ID {taken.business_id} is taken; assigned {candidate}"
                )
                self._mark_validated(session, normalized, now)
                return

        self._move(session, WorkflowEvent.COLLISION_DETECTED, now)
        session.normalized_contact = normalized
        session.last_error = f"business id {taken.business_id} already used by {taken.existing_contact_id}"
        session.record(
            "validation", "requires_manual_review", now,
            business_id=taken.business_id, existing_contact_id=taken.existing_contact_id,
        )
        logger.warning("Session %s needs manual review: %s", session.session_id, session.last_error)

    async def resolve_manual_review(
        self, session_id: str, business_id: str | None = None
    ) -> StagingResult:
        """Assign a new business id to a session parked in ``manual_review``.

        With no ``business_id`` the first free ``<id>-N`` suffix is used. The
        session returns to ``staged`` and must be validated again.
        """
        session = await self._load(session_id)
        if session.state != S.MANUAL_REVIEW:
            raise WorkflowError.invalid_state(session_id, session.state.value, "resolve manual review")

        if business_id is not None:
            problem = check_business_id(business_id)
            if problem:
                raise WorkflowError(ErrorKind.VALIDATION_FAILED, problem, session_id)
            new_id = business_id
        else:
            new_id = await self._find_free_suffix(session.business_id or "")
            if new_id is None:
                raise WorkflowError(
                    ErrorKind.UNIQUENESS_COLLISION,
                    f"no free suffix for business id {session.business_id!r}",
                    session_id,
                )

        now = self.now()
        await self._step_back(session, WorkflowEvent.REVIEW_RESOLVED, "manual review", now)
        self._clear_business_id(session, now, "manual review")
        session.business_id = new_id
        session.contact = session.contact.model_copy(update={"user_business_id": new_id})
        session.normalized_contact = None
        session.last_error = None
        session.record("staging", "manual_review_resolved", now, business_id=new_id)

        await self._save(session)
        logger.info("Resolved manual review for %s with business id %s", session_id, new_id)
        return self._staging_result(session, [], [])

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------

    async def persist(
        self, session_id: str, options: PersistenceOptions | None = None
    ) -> PersistenceResult:
        """Write the validated contact to the contact repository."""
        options = options or PersistenceOptions()
        session = await self._load(session_id)
        if self._is_stale_persisting(session):
            await self._release_stale(session)
        if WorkflowEvent.PERSIST_STARTED not in allowed_events(session.state):
            raise WorkflowError.invalid_state(session_id, session.state.value, "persist")

        now = self.now()
        if session.business_id is None:
            if not options.generate_business_id:
                raise WorkflowError(
                    ErrorKind.VALIDATION_FAILED,
                    "no business id and generation is disabled",
                    session_id,
                )
            session.business_id = generate_business_id(self._config.generated_business_id_prefix)
            session.business_id_generated = True
            session.record("persistence", "business_id_generated", now, business_id=session.business_id)

        contact = session.effective_contact
        record = ContactRecord(
            account_id=session.account_id,
            business_id=session.business_id,
            email=contact.email,
            job_title=contact.job_title,
            home_phone=contact.home_phone,
            work_phone=contact.work_phone,
            business_website=contact.business_website,
            social_profiles=session.social_profiles,
            access_modifier=contact.access_modifier,
            privilege=contact.privilege,
        )

        self._move(session, WorkflowEvent.PERSIST_STARTED, now)
        await self._save(session)

        try:
            created = await self._call(self._repository.create, record)
        except BusinessIdClaimedError as exc:
            return await self._claim_lost(session, exc)
        except (RepositoryError, WorkflowError) as exc:
            if isinstance(exc, WorkflowError) and exc.kind != ErrorKind.TIMEOUT:
                raise
            return await self._persistence_failed(session, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error persisting session %s", session_id)
            await self._persistence_failed(session, f"unexpected error: {exc}")
            raise

        now = self.now()
        warnings: list[str] = []
        if options.set_primary_contact:
            try:
                await self._call(self._repository.set_primary, session.account_id, created.contact_id)
            except (RepositoryError, WorkflowError) as exc:
                logger.warning("Could not set primary contact for %s: %s", session.account_id, exc)
                warnings.append(f"Contact created but could not be set as primary: {exc}")

        self._move(session, WorkflowEvent.PERSIST_SUCCEEDED, now)
        session.contact_id = created.contact_id
        session.persisted_at = now
        session.last_error = None
        session.ttl_seconds = self._config.completed_grace_ttl
        session.record("persistence", "persisted", now, contact_id=created.contact_id)
        await self._save(session)

        logger.info("Persisted session %s as contact %s", session_id, created.contact_id)
        return self._persistence_result(session, warnings=warnings)

    async def _persistence_failed(self, session: ContactSession, reason: str) -> PersistenceResult:
        now = self.now()
        session.record("persistence", "persistence_failed", now, error=reason)
        await self._step_back(session, WorkflowEvent.PERSIST_REJECTED, reason, now)
        await self._save(session)
        logger.warning("Persistence failed for session %s: %s", session.session_id, reason)
        return self._persistence_result(session, error=reason)

    async def _claim_lost(
        self, session: ContactSession, exc: BusinessIdClaimedError
    ) -> PersistenceResult:
        """Another contact took the business id after this session validated it."""
        now = self.now()
        collision = BusinessIdCollision(
            session_id=session.session_id,
            business_id=exc.business_id,
            existing_contact_id=exc.existing_contact_id or "unknown",
        )
        self._move(session, WorkflowEvent.CLAIM_LOST, now)
        session.last_error = (
            f"business id {collision.business_id} already used by {collision.existing_contact_id}"
        )
        session.record(
            "persistence", "requires_manual_review", now,
            business_id=collision.business_id, existing_contact_id=collision.existing_contact_id,
        )
        await self._save(session)
        logger.warning("Session %s needs manual review: %s", session.session_id, session.last_error)
        return self._persistence_result(session, error=session.last_error, collisions=[collision])

    def _is_stale_persisting(self, session: ContactSession) -> bool:
        """``persisting`` outlived any repository call that could still resolve it."""
        if session.state != S.PERSISTING:
            return False
        age = (self.now() - session.last_updated_at).total_seconds()
        return age > self._config.external_call_timeout

    async def _release_stale(self, session: ContactSession) -> None:
        now = self.now()
        reason = "earlier persistence attempt never finished; the contact may have been created"
        session.record("persistence", "persistence_failed", now, error=reason)
        await self._step_back(session, WorkflowEvent.PERSIST_REJECTED, reason, now)
        await self._save(session)
        logger.warning("Released stale persisting session %s", session.session_id)

    def _persistence_result(
        self,
        session: ContactSession,
        *,
        warnings: list[str] | None = None,
        error: str | None = None,
        collisions: list[BusinessIdCollision] | None = None,
    ) -> PersistenceResult:
        contact = session.effective_contact
        profiles = session.social_profiles
        has_website = bool(contact.business_website) and detect_platform(contact.business_website) is None
        channels = {
            "email": bool(contact.email),
            "phone": bool(contact.phone),
            "website": has_website,
            "social": bool(profiles),
        }
        prefs = CommunicationPreferences(
            has_email=channels["email"],
            has_phone=channels["phone"],
            has_website=channels["website"],
            has_social=channels["social"],
            preferred_method=next((m for m, present in channels.items() if present), "none"),
        )

        return PersistenceResult(
            session_id=session.session_id,
            state=session.state,
            account_id=session.account_id,
            contact_id=session.contact_id,
            business_id=session.business_id,
            business_id_generated=session.business_id_generated,
            social_media_summary=SocialMediaSummary(
                total_profiles=len(profiles),
                platforms=list(profiles),
                normalized_urls=dict(profiles),
            ),
            communication_preferences=prefs,
            warnings=warnings or [],
            error=error,
            business_id_collisions=collisions or [],
            persisted_at=session.persisted_at or session.last_updated_at,
        )

    # ------------------------------------------------------------------
    # completion and lifecycle
    # ------------------------------------------------------------------

    async def complete(self, session_id: str) -> CompletionResult:
        """Finish a persisted session. Calling it again returns the same result."""
        session = await self._load(session_id)
        if session.state == S.COMPLETED:
            return self._completion_result(session)
        if session.state != S.PERSISTED:
            raise WorkflowError.invalid_state(session_id, session.state.value, "complete")

        now = self.now()
        self._move(session, WorkflowEvent.COMPLETED, now)
        session.completed_at = now
        session.record("completed", "completed", now)
        await self._save(session)
        await self._emit_outcome(session, OutcomeKind.COMPLETED)
        await self._call(self._store.unindex_session, session.account_id, session_id)

        logger.info("Completed session %s (contact %s)", session_id, session.contact_id)
        return self._completion_result(session)

    @staticmethod
    def _completion_result(session: ContactSession) -> CompletionResult:
        contact = session.effective_contact
        actions = [f"View contact {session.contact_id}"]
        if session.business_id_generated:
            actions.append(f"Share generated business ID {session.business_id} with the contact")
        if SocialPlatform.LINKEDIN not in session.social_profiles:
            actions.append("Add a LinkedIn profile for professional networking")
        if not contact.email:
            actions.append("Add an email address for communication")
        if not contact.phone:
            actions.append("Add a phone number for contact options")

        completed_at = session.completed_at or session.last_updated_at
        return CompletionResult(
            session_id=session.session_id,
            contact_id=session.contact_id or "",
            business_id=session.business_id,
            next_actions=actions,
            steps_completed=list(STEPS_COMPLETED),
            total_processing_time_ms=int((completed_at - session.created_at).total_seconds() * 1000),
            completed_at=completed_at,
        )

    async def extend_session(self, session_id: str, additional_ttl: int | None = None) -> ExtensionResult:
        """Push ``expires_at`` out by exactly ``additional_ttl`` seconds."""
        additional = self._resolve_ttl(additional_ttl, self._config.default_extension_ttl)
        session = await self._load(session_id)
        if session.terminal:
            raise WorkflowError.invalid_state(session_id, session.state.value, "extend session")

        remaining = (session.expires_at - self.now()).total_seconds() + additional
        if remaining > self._config.max_session_ttl:
            raise ValueError(
                f"extension would leave {math.ceil(remaining)}s of session lifetime, "
                f"over the {self._config.max_session_ttl}s limit"
            )
        session.ttl_seconds += additional
        session.total_extensions += 1
        await self._save(session)
        logger.info("Extended session %s by %ds", session_id, additional)
        return ExtensionResult(
            session_id=session_id,
            expires_at=session.expires_at,
            total_extensions=session.total_extensions,
        )

    async def cancel_session(self, session_id: str) -> CancellationResult:
        session = await self._call(self._store.load_session, session_id)
        if session is None or session.terminal:
            return CancellationResult(cancelled=True)
        if session.state == S.PERSISTING and not self._is_stale_persisting(session):
            raise WorkflowError(
                ErrorKind.CONFLICT, "cannot cancel while persistence is in flight", session_id
            )

        await self._call(self._store.delete_session, session_id)
        await self._call(self._store.unindex_session, session.account_id, session_id)
        logger.info("Cancelled session %s", session_id)
        return CancellationResult(cancelled=True)

    async def get_active_sessions(self, account_id: str) -> list[ContactSession]:
        """Non-terminal sessions of an account; stale index entries are pruned."""
        active: list[ContactSession] = []
        for session_id in await self._call(self._store.account_session_ids, account_id):
            session = await self._call(self._store.load_session, session_id)
            if session is None or session.terminal:
                await self._call(self._store.unindex_session, account_id, session_id)
                continue
            active.append(session)
        return sorted(active, key=lambda s: s.created_at)

    # ------------------------------------------------------------------
    # read-only analysis
    # ------------------------------------------------------------------

    async def analyze_social_media_profiles(self, session_id: str) -> SocialMediaAnalysis:
        session = await self._load(session_id)
        contact = session.contact
        raw_profiles = extract_social_profiles(contact)

        normalized: dict[SocialPlatform, str] = {}
        quality: dict[SocialPlatform, str] = {}
        for platform, raw in raw_profiles.items():
            quality[platform] = profile_quality(platform, raw)
            if quality[platform] != "invalid":
                normalized[platform] = normalize_social_url(platform, raw)

        has_linkedin = quality.get(SocialPlatform.LINKEDIN) == "valid"
        has_website = bool(contact.business_website) and detect_platform(contact.business_website) is None

        score = 0
        if has_linkedin:
            score += 40
        if has_website:
            score += 20
        others = [p for p, q in quality.items() if q == "valid" and p != SocialPlatform.LINKEDIN]
        score += min(30, 10 * len(others))
        if quality and all(q == "valid" for q in quality.values()):
            score += 10

        recommendations: list[str] = []
        if not raw_profiles:
            recommendations.append("Add at least one social media profile")
        if not has_linkedin:
            recommendations.append("Add a LinkedIn profile for professional networking")
        for platform, q in quality.items():
            if q == "invalid":
                recommendations.append(f"Fix the {platform.value} profile URL")
            elif q == "suspicious":
                recommendations.append(f"Verify the {platform.value} profile belongs to this contact")

        return SocialMediaAnalysis(
            profiles_found=len(raw_profiles),
            platforms=list(raw_profiles),
            normalized_urls=normalized,
            profile_quality=quality,
            has_linkedin=has_linkedin,
            has_business_website=has_website,
            professional_score=min(score, 100),
            recommendations=recommendations,
        )

    async def generate_networking_insights(self, session_id: str) -> NetworkingInsights:
        session = await self._load(session_id)
        return build_networking_insights(session.effective_contact, session.social_profiles)

    # ------------------------------------------------------------------
    # outcomes
    # ------------------------------------------------------------------

    async def _emit_outcome(
        self,
        session: ContactSession,
        outcome: OutcomeKind,
        reason: str | None = None,
        detail: str | None = None,
    ) -> None:
        contact = session.effective_contact
        insights = build_networking_insights(contact, session.social_profiles)
        record = WorkflowOutcome(
            session_id=session.session_id,
            account_id=session.account_id,
            batch_id=session.batch_id,
            outcome=outcome,
            failure_reason=reason,
            failure_detail=detail,
            started_at=session.created_at,
            finished_at=session.completed_at or session.last_updated_at,
            contact_id=session.contact_id,
            business_id=session.business_id,
            business_id_generated=session.business_id_generated,
            social_platforms=list(session.social_profiles),
            job_title_category=insights.job_title_category,
            experience_level=insights.experience_level,
            industry_tags=insights.industry_tags,
            has_linkedin=insights.career_stage_indicators.has_linkedin_profile,
            has_business_email=insights.career_stage_indicators.has_business_email,
            networking_potential=insights.networking_potential,
        )
        await self._call(self._store.append_outcome, record)

    async def record_failure(
        self,
        *,
        account_id: str,
        reason: str,
        detail: str,
        started_at: datetime,
        session_id: str | None = None,
        batch_id: str | None = None,
    ) -> None:
        """Append a failure outcome for a unit of work that never reached ``failed``."""
        session = await self._call(self._store.load_session, session_id) if session_id else None
        if session is not None:
            session.batch_id = session.batch_id or batch_id
            session.last_updated_at = self.now()
            await self._emit_outcome(session, OutcomeKind.FAILED, reason, detail)
            return
        await self._call(self._store.append_outcome, WorkflowOutcome(
            session_id=session_id,
            account_id=account_id,
            batch_id=batch_id,
            outcome=OutcomeKind.FAILED,
            failure_reason=reason,
            failure_detail=detail,
            started_at=started_at,
            finished_at=self.now(),
        ))


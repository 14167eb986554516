"""Tests for persisting validated contacts."""

from __future__ import annotations

import asyncio

import pytest

from contactflow.core.config import WorkflowConfig
from contactflow.core.exceptions import ErrorKind, WorkflowError
from contactflow.models.options import PersistenceOptions
from contactflow.orchestration.state_machine import NextStep, WorkflowState
from contactflow.orchestration.workflow import ContactWorkflowOrchestrator
from tests.fakes import MemoryContactRepository, StaticEnumLookup
from tests.unit.conftest import ACCOUNT, VALID_CONTACT


async def _validated(orchestrator, contact=VALID_CONTACT) -> str:
    staged = await orchestrator.stage(contact, ACCOUNT)
    validated = await orchestrator.validate(staged.session_id)
    assert validated.state == WorkflowState.VALIDATED
    return staged.session_id


def _persist(orchestrator, contact=VALID_CONTACT, options=None):
    async def scenario():
        return await orchestrator.persist(await _validated(orchestrator, contact), options)

    return asyncio.run(scenario())


class TestPersist:
    def test_creates_contact(self, orchestrator, repo, session_store):
        result = _persist(orchestrator)

        assert result.state == WorkflowState.PERSISTED
        assert result.status == "active"
        assert result.next_step == NextStep.COMPLETE
        assert result.business_id == "ACME-001"
        assert not result.business_id_generated

        record = repo.contacts[result.contact_id]
        assert record.email == "jane@acme.com"
        assert record.work_phone == "(416) 555-0100"
        assert record.social_profiles == {"linkedin": "https://linkedin.com/in/jane-doe"}
        assert record.access_modifier == 1

        summary = result.social_media_summary
        assert summary.total_profiles == 1
        assert summary.normalized_urls == {"linkedin": "https://linkedin.com/in/jane-doe"}
        prefs = result.communication_preferences
        assert (prefs.has_email, prefs.has_phone, prefs.has_website, prefs.has_social) == (
            True, True, True, True,
        )
        assert prefs.preferred_method == "email"

        session = session_store.load_session(result.session_id)
        assert session.contact_id == result.contact_id
        assert session.ttl_seconds == 300

    def test_generates_business_id(self, orchestrator, repo):
        contact = {k: v for k, v in VALID_CONTACT.items() if k != "user_business_id"}
        result = _persist(orchestrator, contact)

        assert result.state == WorkflowState.PERSISTED
        assert result.business_id_generated
        assert result.business_id.startswith("CONT-")
        assert len(result.business_id) == len("CONT-000000")
        assert repo.contacts[result.contact_id].business_id == result.business_id

    def test_generation_disabled(self, orchestrator, session_store):
        contact = {k: v for k, v in VALID_CONTACT.items() if k != "user_business_id"}

        async def scenario():
            session_id = await _validated(orchestrator, contact)
            try:
                await orchestrator.persist(session_id, PersistenceOptions(generate_business_id=False))
            finally:
                assert session_store.load_session(session_id).state == WorkflowState.VALIDATED

        with pytest.raises(WorkflowError) as info:
            asyncio.run(scenario())
        assert info.value.kind == ErrorKind.VALIDATION_FAILED

    @pytest.mark.parametrize(
        "contact, method",
        [
            ({"work_phone": "416-555-0100"}, "phone"),
            ({"business_website": "https://acme.com", "linkedin": "linkedin.com/in/jane"}, "website"),
            ({"instagram": "@jane.doe"}, "social"),
            ({"job_title": "Nurse"}, "none"),
        ],
    )
    def test_preferred_method(self, orchestrator, contact, method):
        result = _persist(orchestrator, contact)
        assert result.communication_preferences.preferred_method == method

    def test_set_primary(self, orchestrator, repo):
        result = _persist(orchestrator, options=PersistenceOptions(set_primary_contact=True))
        assert repo.primary == {ACCOUNT: result.contact_id}
        assert result.warnings == []

    def test_set_primary_failure_is_a_warning(self, orchestrator, repo):
        repo.fail_set_primary = True
        result = _persist(orchestrator, options=PersistenceOptions(set_primary_contact=True))
        assert result.state == WorkflowState.PERSISTED
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Contact created but could not be set as primary")

    def test_repository_failure_steps_back(self, orchestrator, repo, session_store):
        repo.fail_creates = 1

        async def scenario():
            session_id = await _validated(orchestrator)
            failed = await orchestrator.persist(session_id)
            retried = await orchestrator.persist(session_id)
            return failed, retried

        failed, retried = asyncio.run(scenario())
        assert failed.state == WorkflowState.PERSISTENCE_FAILED
        assert failed.status == "persistence_failed"
        assert failed.next_step == NextStep.RETRY_PERSISTENCE
        assert failed.contact_id is None
        assert failed.error == "contact store unavailable"
        assert retried.state == WorkflowState.PERSISTED
        assert session_store.load_session(retried.session_id).retry_count == 1

    def test_revalidate_after_persistence_failure(self, orchestrator, repo):
        repo.fail_creates = 1

        async def scenario():
            session_id = await _validated(orchestrator)
            await orchestrator.persist(session_id)
            return await orchestrator.validate(session_id)

        assert asyncio.run(scenario()).state == WorkflowState.VALIDATED

    def test_retries_exhausted(self, orchestrator, repo, session_store):
        repo.fail_creates = 10

        async def scenario():
            session_id = await _validated(orchestrator)
            for _ in range(3):
                assert (await orchestrator.persist(session_id)).state == WorkflowState.PERSISTENCE_FAILED
            with pytest.raises(WorkflowError) as info:
                await orchestrator.persist(session_id)
            assert info.value.kind == ErrorKind.RETRY_EXHAUSTED
            return session_id

        session_id = asyncio.run(scenario())
        assert session_store.load_session(session_id).state == WorkflowState.FAILED
        assert repo.contacts == {}

    def test_timeout_is_a_persistence_failure(self, session_store, clock):
        slow_repo = MemoryContactRepository(delay=1.0)
        orchestrator = ContactWorkflowOrchestrator(
            store=session_store,
            uniqueness=slow_repo,
            repository=slow_repo,
            enum_lookup=StaticEnumLookup(),
            config=WorkflowConfig(external_call_timeout=0.3),
            clock=clock,
        )
        result = _persist(orchestrator)
        assert result.state == WorkflowState.PERSISTENCE_FAILED
        assert "timed out" in result.error

    def test_requires_validation(self, orchestrator):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            await orchestrator.persist(staged.session_id)

        with pytest.raises(WorkflowError) as info:
            asyncio.run(scenario())
        assert info.value.kind == ErrorKind.INVALID_STATE

    def test_cannot_persist_twice(self, orchestrator):
        async def scenario():
            session_id = await _validated(orchestrator)
            await orchestrator.persist(session_id)
            await orchestrator.persist(session_id)

        with pytest.raises(WorkflowError) as info:
            asyncio.run(scenario())
        assert info.value.kind == ErrorKind.INVALID_STATE


class TestLostClaim:
    def test_second_writer_goes_to_manual_review(self, orchestrator, repo, session_store):
        async def scenario():
            first = await _validated(orchestrator)
            second = await _validated(orchestrator)
            winner = await orchestrator.persist(first)
            loser = await orchestrator.persist(second)
            return winner, loser

        winner, loser = asyncio.run(scenario())

        assert winner.state == WorkflowState.PERSISTED
        assert loser.state == WorkflowState.MANUAL_REVIEW
        assert loser.status == "requires_manual_review"
        assert loser.next_step == NextStep.MANUAL_REVIEW
        assert loser.contact_id is None
        [collision] = loser.business_id_collisions
        assert collision.business_id == "ACME-001"
        assert collision.existing_contact_id == winner.contact_id

        session = session_store.load_session(loser.session_id)
        assert session.retry_count == 0
        assert session.validation_history[-1].outcome == "requires_manual_review"
        assert len(repo.contacts) == 1

    def test_resolved_loser_persists_under_new_id(self, orchestrator, repo):
        async def scenario():
            first = await _validated(orchestrator)
            second = await _validated(orchestrator)
            await orchestrator.persist(first)
            await orchestrator.persist(second)
            await orchestrator.resolve_manual_review(second)
            await orchestrator.validate(second)
            return await orchestrator.persist(second)

        result = asyncio.run(scenario())
        assert result.state == WorkflowState.PERSISTED
        assert result.business_id == "ACME-001-2"
        assert len(repo.contacts) == 2


class TestStalePersisting:
    @staticmethod
    def _mark_persisting(session_store, session_id):
        session = session_store.load_session(session_id)
        session.state = WorkflowState.PERSISTING
        session_store.save_session(session, ttl=600)

    def test_in_flight_persist_is_refused(self, orchestrator, session_store):
        async def scenario():
            session_id = await _validated(orchestrator)
            self._mark_persisting(session_store, session_id)
            await orchestrator.persist(session_id)

        with pytest.raises(WorkflowError) as info:
            asyncio.run(scenario())
        assert info.value.kind == ErrorKind.INVALID_STATE

    def test_stale_persisting_is_released_then_retried(self, orchestrator, session_store, clock):
        async def scenario():
            session_id = await _validated(orchestrator)
            self._mark_persisting(session_store, session_id)
            clock.advance(orchestrator.config.external_call_timeout + 1)
            return await orchestrator.persist(session_id)

        result = asyncio.run(scenario())
        assert result.state == WorkflowState.PERSISTED

        session = session_store.load_session(result.session_id)
        assert session.retry_count == 1
        released = [e for e in session.validation_history if e.outcome == "persistence_failed"]
        assert "may have been created" in released[0].detail["error"]

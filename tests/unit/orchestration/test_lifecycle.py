"""Tests for completion, session lifecycle and read-only analysis."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from contactflow.core.exceptions import ErrorKind, WorkflowError
from contactflow.models.analytics import OutcomeKind
from contactflow.orchestration.state_machine import WorkflowState
from contactflow.orchestration.workflow import STEPS_COMPLETED
from tests.fakes import EPOCH
from tests.unit.conftest import ACCOUNT, VALID_CONTACT


async def _persisted(orchestrator, contact=VALID_CONTACT) -> str:
    staged = await orchestrator.stage(contact, ACCOUNT)
    await orchestrator.validate(staged.session_id)
    await orchestrator.persist(staged.session_id)
    return staged.session_id


class TestComplete:
    def test_completes_and_records_outcome(self, orchestrator, session_store, clock):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            clock.advance(2)
            await orchestrator.validate(staged.session_id)
            await orchestrator.persist(staged.session_id)
            return await orchestrator.complete(staged.session_id)

        result = asyncio.run(scenario())
        assert result.workflow_completed
        assert result.contact_id.startswith("ct-")
        assert result.steps_completed == STEPS_COMPLETED
        assert result.total_processing_time_ms == 2000
        assert result.completed_at == EPOCH + timedelta(seconds=2)

        assert session_store.account_session_ids(ACCOUNT) == set()
        [outcome] = session_store.load_outcomes(ACCOUNT)
        assert outcome.outcome == OutcomeKind.COMPLETED
        assert outcome.contact_id == result.contact_id
        assert outcome.has_linkedin
        assert outcome.job_title_category == "engineering"

    def test_is_idempotent(self, orchestrator, session_store):
        async def scenario():
            session_id = await _persisted(orchestrator)
            first = await orchestrator.complete(session_id)
            second = await orchestrator.complete(session_id)
            return first, second

        first, second = asyncio.run(scenario())
        assert first == second
        assert len(session_store.load_outcomes(ACCOUNT)) == 1

    def test_next_actions(self, orchestrator):
        contact = {"job_title": "Nurse", "instagram": "@jane.doe"}

        async def scenario():
            return await orchestrator.complete(await _persisted(orchestrator, contact))

        result = asyncio.run(scenario())
        assert result.next_actions[0] == f"View contact {result.contact_id}"
        assert result.next_actions[1] == (
            f"Share generated business ID {result.business_id} with the contact"
        )
        assert "Add a LinkedIn profile for professional networking" in result.next_actions
        assert "Add an email address for communication" in result.next_actions
        assert "Add a phone number for contact options" in result.next_actions

    def test_requires_persistence(self, orchestrator):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            await orchestrator.validate(staged.session_id)
            await orchestrator.complete(staged.session_id)

        with pytest.raises(WorkflowError) as info:
            asyncio.run(scenario())
        assert info.value.kind == ErrorKind.INVALID_STATE


class TestExtendSession:
    def test_extends_by_exact_amount(self, orchestrator):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            first = await orchestrator.extend_session(staged.session_id)
            second = await orchestrator.extend_session(staged.session_id, 600)
            return staged, first, second

        staged, first, second = asyncio.run(scenario())
        assert first.expires_at == staged.expires_at + timedelta(seconds=3600)
        assert second.expires_at == first.expires_at + timedelta(seconds=600)
        assert second.total_extensions == 2

    def test_extension_bounds(self, orchestrator):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            await orchestrator.extend_session(staged.session_id, 60)

        with pytest.raises(ValueError):
            asyncio.run(scenario())

    def test_lifetime_is_capped(self, orchestrator):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            for _ in range(3):
                await orchestrator.extend_session(staged.session_id, 36000)
            return staged.session_id

        with pytest.raises(ValueError, match="86400s limit"):
            asyncio.run(scenario())

    def test_rejected_extension_leaves_session_alone(self, orchestrator, session_store):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            await orchestrator.extend_session(staged.session_id, 36000)
            with pytest.raises(ValueError):
                await orchestrator.extend_session(staged.session_id, 50000)
            return staged.session_id

        session = session_store.load_session(asyncio.run(scenario()))
        assert session.total_extensions == 1
        assert session.ttl_seconds == 7200 + 36000

    def test_terminal_session(self, orchestrator):
        async def scenario():
            session_id = await _persisted(orchestrator)
            await orchestrator.complete(session_id)
            await orchestrator.extend_session(session_id)

        with pytest.raises(WorkflowError) as info:
            asyncio.run(scenario())
        assert info.value.kind == ErrorKind.INVALID_STATE


class TestCancelSession:
    def test_cancels_staged_session(self, orchestrator, session_store):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            return staged.session_id, await orchestrator.cancel_session(staged.session_id)

        session_id, result = asyncio.run(scenario())
        assert result.cancelled
        assert session_store.load_session(session_id) is None
        assert session_store.account_session_ids(ACCOUNT) == set()

    def test_unknown_session_is_already_cancelled(self, orchestrator):
        assert asyncio.run(orchestrator.cancel_session("sess_contact_missing")).cancelled

    def test_completed_session_is_left_alone(self, orchestrator, session_store):
        async def scenario():
            session_id = await _persisted(orchestrator)
            await orchestrator.complete(session_id)
            await orchestrator.cancel_session(session_id)
            return session_id

        session_id = asyncio.run(scenario())
        assert session_store.load_session(session_id).state == WorkflowState.COMPLETED

    def test_refuses_while_persisting(self, orchestrator, session_store):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            session = session_store.load_session(staged.session_id)
            session.state = WorkflowState.PERSISTING
            session_store.save_session(session, ttl=600)
            await orchestrator.cancel_session(staged.session_id)

        with pytest.raises(WorkflowError) as info:
            asyncio.run(scenario())
        assert info.value.kind == ErrorKind.CONFLICT

    def test_cancels_stale_persisting_session(self, orchestrator, session_store, clock):
        async def scenario():
            staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            session = session_store.load_session(staged.session_id)
            session.state = WorkflowState.PERSISTING
            session_store.save_session(session, ttl=600)
            clock.advance(orchestrator.config.external_call_timeout + 1)
            return staged.session_id, await orchestrator.cancel_session(staged.session_id)

        session_id, result = asyncio.run(scenario())
        assert result.cancelled
        assert session_store.load_session(session_id) is None


class TestActiveSessions:
    def test_lists_live_sessions_and_prunes_stale_ones(self, orchestrator, session_store, clock):
        async def scenario():
            first = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            clock.advance(1)
            second = await orchestrator.stage({"job_title": "Nurse"}, ACCOUNT)
            done = await _persisted(orchestrator, {"work_phone": "416-555-0199"})
            await orchestrator.complete(done)
            session_store.index_session(ACCOUNT, "sess_contact_gone")
            session_store.index_session(ACCOUNT, done)
            return first, second, await orchestrator.get_active_sessions(ACCOUNT)

        first, second, active = asyncio.run(scenario())
        assert [s.session_id for s in active] == [first.session_id, second.session_id]
        assert session_store.account_session_ids(ACCOUNT) == {first.session_id, second.session_id}

    def test_expired_sessions_drop_out(self, orchestrator, cache_clock):
        async def scenario():
            await orchestrator.stage(VALID_CONTACT, ACCOUNT)
            cache_clock.advance(7201)
            return await orchestrator.get_active_sessions(ACCOUNT)

        assert asyncio.run(scenario()) == []


class TestSocialMediaAnalysis:
    def _analyze(self, orchestrator, contact):
        async def scenario():
            staged = await orchestrator.stage(contact, ACCOUNT)
            return await orchestrator.analyze_social_media_profiles(staged.session_id)

        return asyncio.run(scenario())

    def test_full_presence_scores_100(self, orchestrator):
        analysis = self._analyze(orchestrator, {
            "business_website": "https://acme.com",
            "linkedin": "linkedin.com/in/jane-doe",
            "facebook": "janedoe",
            "instagram": "@jane.doe",
            "tiktok": "@janedances",
        })
        assert analysis.profiles_found == 4
        assert analysis.has_linkedin
        assert analysis.has_business_website
        assert analysis.professional_score == 100
        assert analysis.recommendations == []

    def test_suspicious_profile(self, orchestrator):
        analysis = self._analyze(orchestrator, {
            "business_website": "https://acme.com",
            "linkedin": "linkedin.com/in/jane-doe",
            "instagram": "@test123",
        })
        assert analysis.profile_quality == {"linkedin": "valid", "instagram": "suspicious"}
        assert analysis.normalized_urls["instagram"] == "https://instagram.com/test123"
        assert analysis.professional_score == 60
        assert analysis.recommendations == ["Verify the instagram profile belongs to this contact"]

    def test_invalid_profile_is_not_normalized(self, orchestrator):
        analysis = self._analyze(orchestrator, {"facebook": "https://facebook.com/login"})
        assert analysis.profile_quality == {"facebook": "invalid"}
        assert analysis.normalized_urls == {}
        assert analysis.professional_score == 0
        assert "Fix the facebook profile URL" in analysis.recommendations

    def test_no_profiles(self, orchestrator):
        analysis = self._analyze(orchestrator, {"email": "jane@acme.com"})
        assert analysis.profiles_found == 0
        assert analysis.recommendations == [
            "Add at least one social media profile",
            "Add a LinkedIn profile for professional networking",
        ]


def test_generate_networking_insights(orchestrator):
    async def scenario():
        staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
        await orchestrator.validate(staged.session_id)
        return await orchestrator.generate_networking_insights(staged.session_id)

    insights = asyncio.run(scenario())
    assert insights.job_title_category == "engineering"
    assert insights.career_stage_indicators.has_linkedin_profile
    assert insights.networking_potential == 100


def test_record_failure_without_session(orchestrator, session_store):
    asyncio.run(orchestrator.record_failure(
        account_id=ACCOUNT, reason="timeout", detail="slow", started_at=EPOCH, batch_id="b1",
    ))
    [outcome] = session_store.load_outcomes(ACCOUNT)
    assert outcome.outcome == OutcomeKind.FAILED
    assert outcome.failure_reason == "timeout"
    assert outcome.session_id is None


@pytest.mark.parametrize("last_step", ["update_staged", "validate", "persist", "complete"])
def test_expiry_follows_every_write(orchestrator, session_store, clock, last_step):
    async def scenario():
        staged = await orchestrator.stage(VALID_CONTACT, ACCOUNT)
        session_id = staged.session_id
        clock.advance(30)
        if last_step == "update_staged":
            await orchestrator.update_staged(session_id, {"job_title": "Chief Technology Officer"})
            return session_id
        await orchestrator.validate(session_id)
        if last_step == "validate":
            return session_id
        clock.advance(30)
        await orchestrator.persist(session_id)
        if last_step == "persist":
            return session_id
        clock.advance(30)
        await orchestrator.complete(session_id)
        return session_id

    session = session_store.load_session(asyncio.run(scenario()))
    assert session.last_updated_at == clock()
    assert session.expires_at == session.last_updated_at + timedelta(seconds=session.ttl_seconds)
    assert session.expires_at == clock() + timedelta(seconds=session.ttl_seconds)

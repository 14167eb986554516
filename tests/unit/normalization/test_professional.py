"""Tests for professional-networking classification."""

from __future__ import annotations

import pytest

from contactflow.models.contact import ContactPayload, SocialPlatform
from contactflow.models.results import CareerStageIndicators
from contactflow.normalization.professional import (
    build_networking_insights,
    classify_job_title,
    email_domain,
    industry_tags,
    is_business_email,
    networking_potential,
)


class TestClassifyJobTitle:
    @pytest.mark.parametrize(
        "title, expected",
        [
            ("Senior Software Engineer", ("engineering", "senior")),
            ("CEO", ("executive", "executive")),
            ("Occupational Therapist", ("healthcare", "mid")),
            ("Marketing Assistant", ("sales_marketing", "entry")),
            ("Junior Developer", ("engineering", "entry")),
            ("Astronaut", ("other", "mid")),
        ],
    )
    def test_categories_and_levels(self, title, expected):
        assert classify_job_title(title) == expected

    @pytest.mark.parametrize("title", [None, ""])
    def test_missing_title(self, title):
        assert classify_job_title(title) == ("unspecified", "unknown")


class TestEmail:
    def test_domain_is_lowercased(self):
        assert email_domain("Jane@Acme.COM") == "acme.com"

    def test_no_domain(self):
        assert email_domain("not-an-email") is None
        assert email_domain(None) is None

    def test_free_providers_are_not_business(self):
        assert not is_business_email("jane@gmail.com")
        assert not is_business_email(None)
        assert is_business_email("jane@acme.com")


class TestIndustryTags:
    def test_title_and_tld_do_not_duplicate(self):
        contact = ContactPayload(job_title="Professor", email="p@uni.edu")
        assert industry_tags(contact) == ["education"]

    def test_tld_only(self):
        contact = ContactPayload(job_title="Consultant", email="x@redcross.org")
        assert industry_tags(contact) == ["nonprofit"]

    def test_nothing_to_go_on(self):
        assert industry_tags(ContactPayload()) == []


class TestNetworkingPotential:
    def test_all_signals(self):
        indicators = CareerStageIndicators(
            has_business_email=True,
            has_linkedin_profile=True,
            has_business_website=True,
            professional_phone_number=True,
        )
        assert networking_potential(indicators, has_job_title=True) == 100

    def test_partial_signals(self):
        indicators = CareerStageIndicators(has_business_email=True, has_linkedin_profile=True)
        assert networking_potential(indicators, has_job_title=False) == 50

    def test_no_signals(self):
        assert networking_potential(CareerStageIndicators(), has_job_title=False) == 0


def test_build_networking_insights():
    contact = ContactPayload(
        job_title="Senior Software Engineer",
        email="jane@acme.io",
        business_website="https://acme.io",
        work_phone="(416) 555-0100",
    )
    insights = build_networking_insights(
        contact, {SocialPlatform.LINKEDIN: "https://linkedin.com/in/jane"}
    )
    assert insights.job_title_category == "engineering"
    assert insights.experience_level == "senior"
    assert insights.industry_tags == ["technology"]
    assert insights.networking_potential == 100
    assert insights.career_stage_indicators.has_linkedin_profile

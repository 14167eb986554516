"""Contact validation rules: structure, formats, business rules, reference data."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from contactflow.core.protocols import IEnumLookup
from contactflow.models.contact import ContactPayload, SocialPlatform
from contactflow.normalization.professional import email_domain, is_business_email

BUSINESS_ID_MIN_LENGTH = 3
BUSINESS_ID_MAX_LENGTH = 20
BUSINESS_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")

MAX_LENGTHS: dict[str, int] = {
    "email": 255,
    "job_title": 50,
    "home_phone": 14,
    "work_phone": 14,
    "business_website": 255,
    "facebook": 255,
    "instagram": 255,
    "tiktok": 255,
    "linkedin": 255,
}

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+'-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
# North American numbering plan: NXX-NXX-XXXX, optional leading 1.
NANP_RE = re.compile(r"^1?([2-9]\d{2})([2-9]\d{2})(\d{4})$")

REFERENCE_FIELDS = ("access_modifier", "privilege")


class RuleReport(BaseModel):
    applied: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def check_business_id(business_id: str) -> str | None:
    """Return an error message when ``business_id`` is malformed."""
    if not BUSINESS_ID_MIN_LENGTH <= len(business_id) <= BUSINESS_ID_MAX_LENGTH:
        return (
            f"user_business_id must be {BUSINESS_ID_MIN_LENGTH}-{BUSINESS_ID_MAX_LENGTH} "
            f"characters, got {len(business_id)}"
        )
    if not BUSINESS_ID_RE.match(business_id):
        return "user_business_id may only contain letters, digits, '.', '_' and '-'"
    return None


def structural_check(contact: ContactPayload) -> tuple[list[str], list[str]]:
    """Format-only checks run at staging. Returns ``(errors, warnings)``."""
    errors: list[str] = []
    warnings: list[str] = []

    if contact.user_business_id:
        problem = check_business_id(contact.user_business_id)
        if problem:
            errors.append(problem)
    else:
        warnings.append("No business ID provided; one will be generated at persistence")

    for name, limit in MAX_LENGTHS.items():
        value = getattr(contact, name)
        if value and len(value) > limit:
            errors.append(f"{name} exceeds {limit} characters")

    if not any((contact.email, contact.home_phone, contact.work_phone)):
        warnings.append("No email or phone number provided")
    return errors, warnings


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def phone_digits(phone: str) -> str:
    return re.sub(r"\D", "", phone)


def format_phone(phone: str) -> str | None:
    """Format a NANP number as ``(416) 555-0100``; ``None`` if not valid."""
    match = NANP_RE.match(phone_digits(phone))
    if match is None:
        return None
    area, exchange, line = match.groups()
    return f"({area}) {exchange}-{line}"


def _website_domain(url: str) -> str:
    parts = urlsplit(url if "://" in url else f"https://{url}")
    host = parts.netloc.lower().split(":", 1)[0]
    return host[4:] if host.startswith("www.") else host


def apply_business_rules(
    contact: ContactPayload, social_profiles: dict[SocialPlatform, str]
) -> RuleReport:
    report = RuleReport()

    report.applied.append("distinct_phone_numbers")
    if (
        contact.home_phone
        and contact.work_phone
        and phone_digits(contact.home_phone) == phone_digits(contact.work_phone)
    ):
        report.errors.append("Home phone and work phone cannot be the same")

    report.applied.append("linkedin_recommendation")
    has_linkedin = SocialPlatform.LINKEDIN in social_profiles
    if contact.business_website and not has_linkedin:
        report.warnings.append("LinkedIn profile recommended for contacts with business website")
    other_social = any(p != SocialPlatform.LINKEDIN for p in social_profiles)
    if contact.job_title and other_social and not has_linkedin:
        report.warnings.append(
            "LinkedIn recommended for professional contacts over other social media"
        )

    report.applied.append("domain_consistency")
    if contact.business_website and is_business_email(contact.email):
        website = _website_domain(contact.business_website)
        if website and email_domain(contact.email) != website:
            report.warnings.append("Email domain differs from business website domain")

    report.applied.append("professional_presence")
    if contact.job_title and not contact.business_website and not has_linkedin:
        report.warnings.append(
            "Professional job title provided but no business website or LinkedIn profile"
        )
    return report


def check_reference_data(contact: ContactPayload, lookup: IEnumLookup) -> list[str]:
    """Errors for access-modifier / privilege values outside their choices."""
    errors: list[str] = []
    for name in REFERENCE_FIELDS:
        value = getattr(contact, name)
        if value is not None and not lookup.is_valid(name, value):
            errors.append(f"{name} {value} is not a valid choice")
    return errors

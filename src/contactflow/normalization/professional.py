"""Professional-networking classification of a contact.

Keyword heuristics only; nothing here calls out to a service.
"""

from __future__ import annotations

from contactflow.models.contact import ContactPayload, SocialPlatform
from contactflow.models.results import CareerStageIndicators, NetworkingInsights

FREE_EMAIL_DOMAINS = frozenset({
    "gmail.com", "googlemail.com", "yahoo.com", "yahoo.ca", "hotmail.com",
    "outlook.com", "live.com", "msn.com", "aol.com", "icloud.com", "me.com",
    "protonmail.com", "proton.me", "gmx.com", "mail.com",
})

# Checked in order; first hit wins.
_CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("executive", ("ceo", "cto", "cfo", "coo", "chief", "president", "founder", "owner", "partner")),
    ("management", ("director", "manager", "head of", "lead", "supervisor", "coordinator")),
    ("healthcare", ("therapist", "nurse", "physician", "doctor", "clinician", "occupational", "physio")),
    ("engineering", ("engineer", "developer", "programmer", "architect", "devops", "scientist")),
    ("sales_marketing", ("sales", "marketing", "account executive", "business development", "brand")),
    ("finance", ("accountant", "finance", "financial", "controller", "auditor", "analyst")),
    ("education", ("teacher", "professor", "instructor", "lecturer", "educator", "tutor")),
    ("legal", ("lawyer", "attorney", "counsel", "paralegal", "legal")),
    ("creative", ("designer", "writer", "editor", "artist", "photographer", "producer")),
    ("operations", ("operations", "administrator", "assistant", "clerk", "specialist", "technician")),
]

_LEVEL_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("executive", ("chief", "ceo", "cto", "cfo", "coo", "president", "vp", "vice president", "founder", "owner")),
    ("senior", ("senior", "sr", "principal", "director", "head", "lead", "staff")),
    ("entry", ("junior", "jr", "intern", "trainee", "assistant", "associate", "graduate", "entry")),
]

_INDUSTRY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "healthcare": ("therapist", "nurse", "physician", "clinic", "health", "medical", "occupational"),
    "technology": ("software", "engineer", "developer", "data", "devops", "it ", "cloud"),
    "finance": ("bank", "finance", "financial", "accountant", "investment", "insurance"),
    "education": ("teacher", "professor", "school", "university", "education", "instructor"),
    "legal": ("lawyer", "attorney", "legal", "counsel"),
    "marketing": ("marketing", "brand", "advertising", "seo", "content"),
}

_TLD_INDUSTRY = {".edu": "education", ".gov": "government", ".org": "nonprofit", ".io": "technology"}

# Weights sum to 100.
_POTENTIAL_WEIGHTS = {
    "linkedin": 30,
    "business_email": 20,
    "business_website": 20,
    "job_title": 15,
    "work_phone": 15,
}


def _has_keyword(text: str, keywords: tuple[str, ...]) -> bool:
    padded = f" {text} "
    return any(f" {k} " in padded or (len(k) > 3 and k in text) for k in keywords)


def classify_job_title(job_title: str | None) -> tuple[str, str]:
    """Return ``(category, experience_level)`` for a job title."""
    if not job_title:
        return "unspecified", "unknown"
    text = job_title.lower().replace(",", " ").replace(".", " ")

    category = "other"
    for name, keywords in _CATEGORY_KEYWORDS:
        if _has_keyword(text, keywords):
            category = name
            break

    level = "mid"
    for name, keywords in _LEVEL_KEYWORDS:
        if _has_keyword(text, keywords):
            level = name
            break
    return category, level


def email_domain(email: str | None) -> str | None:
    if not email or "@" not in email:
        return None
    return email.rsplit("@", 1)[1].lower()


def is_business_email(email: str | None) -> bool:
    domain = email_domain(email)
    return domain is not None and domain not in FREE_EMAIL_DOMAINS


def industry_tags(contact: ContactPayload) -> list[str]:
    """Industry tags from job-title keywords plus the website/email TLD."""
    tags: list[str] = []
    text = f" {(contact.job_title or '').lower()} "
    for industry, keywords in _INDUSTRY_KEYWORDS.items():
        if any(k in text for k in keywords):
            tags.append(industry)

    domains = [email_domain(contact.email) or "", (contact.business_website or "").lower()]
    for suffix, industry in _TLD_INDUSTRY.items():
        if industry not in tags and any(suffix in d for d in domains):
            tags.append(industry)
    return tags


def career_stage_indicators(
    contact: ContactPayload, social_profiles: dict[SocialPlatform, str]
) -> CareerStageIndicators:
    return CareerStageIndicators(
        has_business_email=is_business_email(contact.email),
        has_linkedin_profile=SocialPlatform.LINKEDIN in social_profiles,
        has_business_website=bool(contact.business_website),
        professional_phone_number=bool(contact.work_phone),
    )


def networking_potential(indicators: CareerStageIndicators, has_job_title: bool) -> int:
    score = 0
    if indicators.has_linkedin_profile:
        score += _POTENTIAL_WEIGHTS["linkedin"]
    if indicators.has_business_email:
        score += _POTENTIAL_WEIGHTS["business_email"]
    if indicators.has_business_website:
        score += _POTENTIAL_WEIGHTS["business_website"]
    if has_job_title:
        score += _POTENTIAL_WEIGHTS["job_title"]
    if indicators.professional_phone_number:
        score += _POTENTIAL_WEIGHTS["work_phone"]
    return min(score, 100)


def build_networking_insights(
    contact: ContactPayload, social_profiles: dict[SocialPlatform, str]
) -> NetworkingInsights:
    category, level = classify_job_title(contact.job_title)
    indicators = career_stage_indicators(contact, social_profiles)
    return NetworkingInsights(
        job_title_category=category,
        experience_level=level,
        industry_tags=industry_tags(contact),
        networking_potential=networking_potential(indicators, bool(contact.job_title)),
        career_stage_indicators=indicators,
    )

"""Contact payload and durable contact record models."""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class SocialPlatform(StrEnum):
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    LINKEDIN = "linkedin"


class RegistrationFlow(StrEnum):
    WEB = "web"
    MOBILE = "mobile"
    API = "api"
    BULK = "bulk"


class ContactPayload(BaseModel):
    """Working copy of a contact as submitted by the caller.

    Every field a business rule looks at is explicit; unknown keys are
    rejected rather than carried along untyped.
    """

    # --- Identity ---
    user_business_id: Optional[str] = None

    # --- Communication ---
    email: Optional[str] = None
    home_phone: Optional[str] = None
    work_phone: Optional[str] = None

    # --- Professional ---
    job_title: Optional[str] = None
    business_website: Optional[str] = None

    # --- Social media (raw, as entered) ---
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    tiktok: Optional[str] = None
    linkedin: Optional[str] = None

    # --- Reference-data choices ---
    access_modifier: Optional[int] = None
    privilege: Optional[int] = None

    model_config = {"str_strip_whitespace": True, "extra": "forbid"}

    def social_url(self, platform: SocialPlatform) -> str | None:
        return getattr(self, platform.value)

    @property
    def phone(self) -> str | None:
        """Preferred phone number: work first, then home."""
        return self.work_phone or self.home_phone


class ContactRecord(BaseModel):
    """Durable contact record handed to the contact repository."""

    account_id: str
    business_id: str
    email: Optional[str] = None
    job_title: Optional[str] = None
    home_phone: Optional[str] = None
    work_phone: Optional[str] = None
    business_website: Optional[str] = None
    social_profiles: dict[SocialPlatform, str] = Field(default_factory=dict)
    access_modifier: Optional[int] = None
    privilege: Optional[int] = None


class CreatedContact(BaseModel):
    """Identifiers returned by the contact repository after a create."""

    contact_id: str
    business_id: str


class UniquenessResult(BaseModel):
    """Outcome of a business-identifier uniqueness check."""

    unique: bool
    existing_contact_id: Optional[str] = None

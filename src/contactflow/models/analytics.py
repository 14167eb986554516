"""Terminal workflow outcomes and the analytics computed from them."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from contactflow.models.contact import SocialPlatform


class OutcomeKind(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowOutcome(BaseModel):
    """One record per session that reached a terminal outcome."""

    session_id: Optional[str] = None
    account_id: str
    batch_id: Optional[str] = None
    outcome: OutcomeKind
    failure_reason: Optional[str] = None
    failure_detail: Optional[str] = None
    started_at: datetime
    finished_at: datetime

    contact_id: Optional[str] = None
    business_id: Optional[str] = None
    business_id_generated: bool = False
    social_platforms: list[SocialPlatform] = Field(default_factory=list)

    job_title_category: Optional[str] = None
    experience_level: Optional[str] = None
    industry_tags: list[str] = Field(default_factory=list)
    has_linkedin: bool = False
    has_business_email: bool = False
    networking_potential: int = 0

    @property
    def processing_time_ms(self) -> int:
        return max(0, int((self.finished_at - self.started_at).total_seconds() * 1000))


class FailureReason(BaseModel):
    reason: str
    count: int
    percentage: float


class WorkflowAnalytics(BaseModel):
    account_id: str
    total_contacts_processed: int = 0
    success_rate: float = 0.0  # percent, 0-100
    average_processing_time_ms: float = 0.0
    common_failure_reasons: list[FailureReason] = Field(default_factory=list)
    social_media_adoption_rate: float = 0.0
    business_id_generation_rate: float = 0.0


class NetworkingAnalytics(BaseModel):
    account_id: str
    total_contacts: int = 0
    contacts_with_linkedin: int = 0
    contacts_with_business_email: int = 0
    job_title_categories: dict[str, int] = Field(default_factory=dict)
    industry_distribution: dict[str, int] = Field(default_factory=dict)
    networking_opportunities: int = 0

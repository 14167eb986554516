"""Result shapes returned by the orchestrator.

Each result carries the canonical ``state``; ``status``, ``step`` and
``next_step`` are computed from it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field

from contactflow.models.contact import ContactPayload, SocialPlatform
from contactflow.orchestration.state_machine import (
    NEXT_STEP_OF,
    STEP_OF,
    NextStep,
    WorkflowState,
    WorkflowStep,
)

PreferredMethod = Literal["email", "phone", "website", "social", "none"]
ExperienceLevel = Literal["entry", "mid", "senior", "executive", "unknown"]
ProfileQuality = Literal["valid", "invalid", "suspicious"]


class _StateProjection(BaseModel):
    state: WorkflowState

    @computed_field  # type: ignore[prop-decorator]
    @property
    def step(self) -> WorkflowStep:
        return STEP_OF[self.state]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def next_step(self) -> NextStep:
        return NEXT_STEP_OF[self.state]


class BusinessIdCollision(BaseModel):
    session_id: str
    business_id: str
    existing_contact_id: str


class StagingResult(_StateProjection):
    session_id: str
    contact_data: ContactPayload
    business_id: Optional[str] = None
    social_media_profiles: dict[SocialPlatform, str] = Field(default_factory=dict)
    validation_warnings: list[str] = Field(default_factory=list)
    validation_errors: list[str] = Field(default_factory=list)
    expires_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> Literal["staged", "validation_failed"]:
        return "validation_failed" if self.state == WorkflowState.STAGING_FAILED else "staged"


class ProfessionalNetworkingCheck(BaseModel):
    job_title_analyzed: bool = False
    industry_detected: bool = False
    experience_level_estimated: bool = False


class ValidationOutcome(BaseModel):
    """Structured result of one validation pass."""

    business_id_unique: bool = True
    social_media_normalized: bool = False
    email_valid: bool = True
    phone_valid: bool = True
    business_rules_applied: list[str] = Field(default_factory=list)
    professional_networking: Optional[ProfessionalNetworkingCheck] = None
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def blocking(self) -> bool:
        return bool(self.errors)


class CareerStageIndicators(BaseModel):
    has_business_email: bool = False
    has_linkedin_profile: bool = False
    has_business_website: bool = False
    professional_phone_number: bool = False


class NetworkingInsights(BaseModel):
    job_title_category: str
    experience_level: ExperienceLevel
    industry_tags: list[str] = Field(default_factory=list)
    networking_potential: int = 0  # 0-100
    career_stage_indicators: CareerStageIndicators = CareerStageIndicators()


class ValidationResult(_StateProjection):
    session_id: str
    original_data: ContactPayload
    normalized_data: Optional[ContactPayload] = None
    business_id: Optional[str] = None
    validation_results: ValidationOutcome
    business_id_collisions: list[BusinessIdCollision] = Field(default_factory=list)
    networking_insights: Optional[NetworkingInsights] = None
    validated_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> Literal["validated", "validation_failed", "requires_manual_review"]:
        if self.state == WorkflowState.MANUAL_REVIEW:
            return "requires_manual_review"
        if self.state == WorkflowState.VALIDATED:
            return "validated"
        return "validation_failed"


class SocialMediaSummary(BaseModel):
    total_profiles: int = 0
    platforms: list[SocialPlatform] = Field(default_factory=list)
    normalized_urls: dict[SocialPlatform, str] = Field(default_factory=dict)


class CommunicationPreferences(BaseModel):
    has_email: bool = False
    has_phone: bool = False
    has_website: bool = False
    has_social: bool = False
    preferred_method: PreferredMethod = "none"


class PersistenceResult(_StateProjection):
    session_id: str
    account_id: str
    contact_id: Optional[str] = None
    business_id: Optional[str] = None
    business_id_generated: bool = False
    social_media_summary: SocialMediaSummary = SocialMediaSummary()
    communication_preferences: CommunicationPreferences = CommunicationPreferences()
    warnings: list[str] = Field(default_factory=list)
    error: Optional[str] = None
    business_id_collisions: list[BusinessIdCollision] = Field(default_factory=list)
    persisted_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> Literal["active", "persistence_failed", "requires_manual_review"]:
        if self.state == WorkflowState.PERSISTED:
            return "active"
        if self.state == WorkflowState.MANUAL_REVIEW:
            return "requires_manual_review"
        return "persistence_failed"


class CompletionResult(BaseModel):
    session_id: str
    contact_id: str
    business_id: Optional[str] = None
    workflow_completed: bool = True
    next_actions: list[str] = Field(default_factory=list)
    steps_completed: list[str] = Field(default_factory=list)
    total_processing_time_ms: int = 0
    completed_at: datetime


class ExtensionResult(BaseModel):
    session_id: str
    expires_at: datetime
    total_extensions: int


class CancellationResult(BaseModel):
    cancelled: bool
    failure_reason: Optional[str] = None


class SocialMediaAnalysis(BaseModel):
    profiles_found: int = 0
    platforms: list[SocialPlatform] = Field(default_factory=list)
    normalized_urls: dict[SocialPlatform, str] = Field(default_factory=dict)
    profile_quality: dict[SocialPlatform, ProfileQuality] = Field(default_factory=dict)
    has_linkedin: bool = False
    has_business_website: bool = False
    professional_score: int = 0  # 0-100
    recommendations: list[str] = Field(default_factory=list)

"""Contact workflow session models (stored as JSON in the session store)."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field

from contactflow.models.contact import ContactPayload, RegistrationFlow, SocialPlatform
from contactflow.orchestration.state_machine import (
    NEXT_STEP_OF,
    STEP_OF,
    NextStep,
    WorkflowState,
    WorkflowStep,
    is_terminal,
)


class ValidationHistoryEntry(BaseModel):
    """One line of a session's validation history."""

    step: str
    outcome: str
    timestamp: datetime
    detail: Optional[dict[str, Any]] = None


class ContactSession(BaseModel):
    """Transient workflow record for one contact."""

    session_id: str
    account_id: str
    state: WorkflowState = WorkflowState.STAGED
    registration_flow: RegistrationFlow = RegistrationFlow.WEB
    batch_id: Optional[str] = None

    contact: ContactPayload
    normalized_contact: Optional[ContactPayload] = None
    business_id: Optional[str] = None
    business_id_generated: bool = False
    social_profiles: dict[SocialPlatform, str] = Field(default_factory=dict)
    validation_history: list[ValidationHistoryEntry] = Field(default_factory=list)

    contact_id: Optional[str] = None
    last_error: Optional[str] = None
    retry_count: int = 0
    total_extensions: int = 0
    version: int = 0

    created_at: datetime
    last_updated_at: datetime
    persisted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    ttl_seconds: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def expires_at(self) -> datetime:
        return self.last_updated_at + timedelta(seconds=self.ttl_seconds)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def step(self) -> WorkflowStep:
        return STEP_OF[self.state]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def next_step(self) -> NextStep:
        return NEXT_STEP_OF[self.state]

    @property
    def terminal(self) -> bool:
        return is_terminal(self.state)

    @property
    def effective_contact(self) -> ContactPayload:
        """Normalized payload once validated, the working copy before that."""
        return self.normalized_contact or self.contact

    def record(self, step: str, outcome: str, at: datetime, **detail: Any) -> None:
        self.validation_history.append(
            ValidationHistoryEntry(step=step, outcome=outcome, timestamp=at, detail=detail or None)
        )

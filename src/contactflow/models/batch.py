"""Bulk contact batch progress models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from contactflow.models.results import BusinessIdCollision


class BatchStatus(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


class BatchCounters(BaseModel):
    """Position histogram: every member sits in exactly one bucket."""

    pending: int = 0
    staged: int = 0
    validated: int = 0
    persisted: int = 0
    failed: int = 0

    @property
    def placed(self) -> int:
        return self.staged + self.validated + self.persisted + self.failed


class FailedContact(BaseModel):
    session_id: Optional[str] = None
    index: int
    error: str
    retryable: bool = True


class BulkContactProgress(BaseModel):
    batch_id: str
    account_id: str
    total_contacts: int
    counters: BatchCounters = Field(default_factory=BatchCounters)
    completed_contacts: list[str] = Field(default_factory=list)
    failed_contacts: list[FailedContact] = Field(default_factory=list)
    business_id_collisions: list[BusinessIdCollision] = Field(default_factory=list)
    status: BatchStatus = BatchStatus.IN_PROGRESS
    started_at: datetime
    estimated_completion_at: datetime
    finished_at: Optional[datetime] = None

    @property
    def terminal(self) -> bool:
        return self.status != BatchStatus.IN_PROGRESS

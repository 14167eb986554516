"""Caller-supplied options for each workflow operation.

``None`` means "use the configured default"; bounds are enforced against
``WorkflowConfig`` by the orchestrator, not here.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from contactflow.models.contact import RegistrationFlow


class StagingOptions(BaseModel):
    skip_initial_validation: bool = False
    session_ttl: Optional[int] = None
    registration_flow: RegistrationFlow = RegistrationFlow.WEB


class ValidationOptions(BaseModel):
    skip_business_id_check: bool = False
    skip_social_media_normalization: bool = False
    generate_networking_insights: bool = True


class PersistenceOptions(BaseModel):
    set_primary_contact: bool = False
    generate_business_id: bool = True


class BulkOptions(BaseModel):
    batch_size: Optional[int] = None
    continue_on_error: bool = True
    validate_business_id_uniqueness: bool = True
    generate_networking_insights: bool = False
    max_processing_time: Optional[int] = None
    set_primary_contact: bool = False
    generate_business_id: bool = True

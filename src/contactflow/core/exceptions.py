"""Contactflow exception types.

Workflow failures are a closed set of tagged variants (``ErrorKind``) carried
by a single ``WorkflowError``. Infrastructure failures keep their own types so
callers can tell "the session is gone" apart from "the store is unreachable".
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ContactFlowError(Exception):
    """Base exception for all contactflow errors."""


class CacheError(ContactFlowError):
    """Session store (Redis) operation failed."""


class RepositoryError(ContactFlowError):
    """Contact repository or reference-data call failed."""


class BusinessIdClaimedError(RepositoryError):
    """Create lost the business-id claim to another contact."""

    def __init__(self, business_id: str, existing_contact_id: str | None = None) -> None:
        self.business_id = business_id
        self.existing_contact_id = existing_contact_id
        super().__init__(f"business id {business_id!r} already claimed")


class ErrorKind(StrEnum):
    SESSION_NOT_FOUND = "session_not_found"
    INVALID_STATE = "invalid_state"
    VALIDATION_FAILED = "validation_failed"
    UNIQUENESS_COLLISION = "uniqueness_collision"
    PERSISTENCE_FAILED = "persistence_failed"
    RETRY_EXHAUSTED = "retry_exhausted"
    TIMEOUT = "timeout"
    CONFLICT = "conflict"


class WorkflowError(ContactFlowError):
    """A workflow operation could not be carried out."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        session_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.kind = kind
        self.session_id = session_id
        self.details = details or {}
        prefix = f"[{kind}]"
        if session_id:
            prefix = f"{prefix} session {session_id}:"
        super().__init__(f"{prefix} {message}")

    @classmethod
    def session_not_found(cls, session_id: str) -> WorkflowError:
        return cls(ErrorKind.SESSION_NOT_FOUND, "session not found or expired", session_id)

    @classmethod
    def invalid_state(cls, session_id: str, state: str, action: str) -> WorkflowError:
        return cls(
            ErrorKind.INVALID_STATE,
            f"cannot {action} while in state {state!r}",
            session_id,
            {"state": state, "action": action},
        )

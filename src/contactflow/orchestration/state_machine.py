"""Canonical contact workflow state machine.

One enum holds the real state; the coarse ``step`` and the caller-facing
``next_step`` hint are projections of it, so the labels can never drift
from the state they describe.

    staged ──► validated ──► persisting ──► persisted ──► completed
      ▲  │          │  ▲          │
      │  ▼          ▼  │          ▼
    validation_failed  persistence_failed        (any) ──► failed
    (validation) or persisting ──► manual_review ──► staged
"""

from __future__ import annotations

from enum import StrEnum

from contactflow.core.exceptions import ErrorKind, WorkflowError


class WorkflowState(StrEnum):
    STAGED = "staged"
    STAGING_FAILED = "staging_failed"
    VALIDATION_FAILED = "validation_failed"
    MANUAL_REVIEW = "manual_review"
    VALIDATED = "validated"
    PERSISTING = "persisting"
    PERSISTENCE_FAILED = "persistence_failed"
    PERSISTED = "persisted"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowStep(StrEnum):
    STAGING = "staging"
    VALIDATION = "validation"
    PERSISTENCE = "persistence"
    COMPLETED = "completed"
    FAILED = "failed"


class NextStep(StrEnum):
    VALIDATION = "validation"
    RETRY_STAGING = "retry_staging"
    RETRY_VALIDATION = "retry_validation"
    MANUAL_REVIEW = "manual_review"
    PERSISTENCE = "persistence"
    RETRY_PERSISTENCE = "retry_persistence"
    COMPLETE = "complete"
    NONE = "none"


class WorkflowEvent(StrEnum):
    STRUCTURE_ACCEPTED = "structure_accepted"
    STRUCTURE_REJECTED = "structure_rejected"
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_REJECTED = "validation_rejected"
    COLLISION_DETECTED = "collision_detected"
    REVIEW_RESOLVED = "review_resolved"
    PERSIST_STARTED = "persist_started"
    PERSIST_SUCCEEDED = "persist_succeeded"
    PERSIST_REJECTED = "persist_rejected"
    CLAIM_LOST = "claim_lost"
    COMPLETED = "completed"
    RETRIES_EXHAUSTED = "retries_exhausted"


S = WorkflowState

TERMINAL_STATES = frozenset({S.COMPLETED, S.FAILED})

_STAGING_STATES = frozenset({S.STAGED, S.STAGING_FAILED, S.VALIDATION_FAILED})
_VALIDATABLE_STATES = frozenset(
    {S.STAGED, S.VALIDATION_FAILED, S.VALIDATED, S.PERSISTENCE_FAILED}
)

_TRANSITIONS: dict[WorkflowEvent, tuple[frozenset[WorkflowState], WorkflowState]] = {
    WorkflowEvent.STRUCTURE_ACCEPTED: (_STAGING_STATES, S.STAGED),
    WorkflowEvent.STRUCTURE_REJECTED: (_STAGING_STATES, S.STAGING_FAILED),
    WorkflowEvent.VALIDATION_PASSED: (_VALIDATABLE_STATES, S.VALIDATED),
    WorkflowEvent.VALIDATION_REJECTED: (_VALIDATABLE_STATES, S.VALIDATION_FAILED),
    WorkflowEvent.COLLISION_DETECTED: (_VALIDATABLE_STATES, S.MANUAL_REVIEW),
    WorkflowEvent.REVIEW_RESOLVED: (frozenset({S.MANUAL_REVIEW}), S.STAGED),
    WorkflowEvent.PERSIST_STARTED: (
        frozenset({S.VALIDATED, S.PERSISTENCE_FAILED}),
        S.PERSISTING,
    ),
    WorkflowEvent.PERSIST_SUCCEEDED: (frozenset({S.PERSISTING}), S.PERSISTED),
    WorkflowEvent.PERSIST_REJECTED: (frozenset({S.PERSISTING}), S.PERSISTENCE_FAILED),
    WorkflowEvent.CLAIM_LOST: (frozenset({S.PERSISTING}), S.MANUAL_REVIEW),
    WorkflowEvent.COMPLETED: (frozenset({S.PERSISTED}), S.COMPLETED),
    WorkflowEvent.RETRIES_EXHAUSTED: (frozenset(S) - TERMINAL_STATES, S.FAILED),
}

STEP_OF: dict[WorkflowState, WorkflowStep] = {
    S.STAGED: WorkflowStep.STAGING,
    S.STAGING_FAILED: WorkflowStep.STAGING,
    S.VALIDATION_FAILED: WorkflowStep.STAGING,
    S.MANUAL_REVIEW: WorkflowStep.VALIDATION,
    S.VALIDATED: WorkflowStep.VALIDATION,
    S.PERSISTING: WorkflowStep.PERSISTENCE,
    S.PERSISTENCE_FAILED: WorkflowStep.VALIDATION,
    S.PERSISTED: WorkflowStep.PERSISTENCE,
    S.COMPLETED: WorkflowStep.COMPLETED,
    S.FAILED: WorkflowStep.FAILED,
}

NEXT_STEP_OF: dict[WorkflowState, NextStep] = {
    S.STAGED: NextStep.VALIDATION,
    S.STAGING_FAILED: NextStep.RETRY_STAGING,
    S.VALIDATION_FAILED: NextStep.RETRY_VALIDATION,
    S.MANUAL_REVIEW: NextStep.MANUAL_REVIEW,
    S.VALIDATED: NextStep.PERSISTENCE,
    S.PERSISTING: NextStep.PERSISTENCE,
    S.PERSISTENCE_FAILED: NextStep.RETRY_PERSISTENCE,
    S.PERSISTED: NextStep.COMPLETE,
    S.COMPLETED: NextStep.COMPLETE,
    S.FAILED: NextStep.NONE,
}


def transition(
    state: WorkflowState, event: WorkflowEvent, session_id: str | None = None
) -> WorkflowState:
    """Return the state reached by applying ``event`` to ``state``.

    Raises:
        WorkflowError: ``INVALID_STATE`` when the event is not allowed.
    """
    sources, target = _TRANSITIONS[event]
    if state not in sources:
        raise WorkflowError(
            ErrorKind.INVALID_STATE,
            f"event {event.value!r} is not allowed in state {state.value!r}",
            session_id,
            {"state": state.value, "event": event.value},
        )
    return target


def allowed_events(state: WorkflowState) -> list[WorkflowEvent]:
    return [event for event, (sources, _) in _TRANSITIONS.items() if state in sources]


def is_terminal(state: WorkflowState) -> bool:
    return state in TERMINAL_STATES

"""
Workflow errors.

Every error raised by the workflow engine derives from WorkflowError so
callers can present it to the operator in response to the triggering
action.
"""
from typing import List, Optional


class WorkflowError(Exception):
    """Base class for workflow engine errors."""


class ValidationError(WorkflowError):
    """Required input is missing or invalid. No state was mutated."""

    def __init__(self, message: str, violations: Optional[List[str]] = None):
        super().__init__(message)
        self.violations = list(violations) if violations else [message]


class RecordNotFoundError(ValidationError):
    """A referenced record does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} '{record_id}' not found")
        self.kind = kind
        self.record_id = record_id


class InvalidStateError(ValidationError):
    """A transition was attempted from a state that does not permit it."""

    def __init__(self, record_id: str, current_state: str, target_state: str, message: str = None):
        super().__init__(
            message or f"{record_id}: cannot move from {current_state} to {target_state}"
        )
        self.record_id = record_id
        self.current_state = current_state
        self.target_state = target_state


class AuthorizationError(WorkflowError):
    """The authorization collaborator refused the action."""


class SequenceGenerationError(WorkflowError):
    """The numbering collaborator failed to produce a document number."""


class PersistenceError(WorkflowError):
    """A store write failed."""


class PartialPersistenceError(PersistenceError):
    """Some, but not all, records of a multi-record save were persisted."""

    def __init__(self, message: str, succeeded: int, total: int):
        super().__init__(message)
        self.succeeded = succeeded
        self.total = total

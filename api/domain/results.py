# SPDX-License-Identifier: Apache-2.0

"""
Result types shared by the issue lifecycle engine.

Every engine operation returns a WorkflowResult instead of raising, so route
handlers can map failures to responses without knowing engine internals.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from models.entities import Issue


class ErrorCode(str, Enum):
    """Failure taxonomy of the lifecycle engine."""
    NOT_FOUND = "NotFound"
    UNAUTHENTICATED = "Unauthenticated"
    NOT_OWNER = "NotOwner"
    NOT_ASSIGNEE = "NotAssignee"
    FORBIDDEN = "Forbidden"
    INVALID_TRANSITION = "InvalidTransition"
    NOT_EDITABLE = "NotEditable"
    ALREADY_VOTED = "AlreadyVoted"
    SELF_VOTE = "SelfVote"
    ALREADY_ASSIGNED = "AlreadyAssigned"
    BLOCKED = "Blocked"
    QUOTA_EXCEEDED = "QuotaExceeded"
    PAYMENT_NOT_CONFIRMED = "PaymentNotConfirmed"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    VALIDATION_FAILED = "ValidationFailed"


@dataclass
class WorkflowResult:
    """Result of an issue workflow operation."""
    success: bool
    issue: Optional[Issue] = None
    value: Any = None
    error_code: Optional[ErrorCode] = None
    error_message: Optional[str] = None
    validation_errors: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, issue: Optional[Issue] = None, value: Any = None) -> "WorkflowResult":
        return cls(success=True, issue=issue, value=value)

    @classmethod
    def fail(cls, error_code: ErrorCode, message: str, validation_errors: Optional[List[str]] = None) -> "WorkflowResult":
        return cls(
            success=False,
            error_code=error_code,
            error_message=message,
            validation_errors=validation_errors or []
        )

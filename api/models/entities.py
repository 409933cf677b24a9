# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the CityFix platform.
"""

import re
from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict
from .base import BaseEntity, DocumentModel, generate_object_id, utc_now
from .enums import IssueStatus, IssuePriority, UserRole, PaymentKind

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

SYSTEM_ACTOR = "System"

TERMINAL_STATUSES = (IssueStatus.CLOSED, IssueStatus.REJECTED)


def normalize_email(value: str) -> str:
    """Validate an email address and normalize it to lowercase."""
    value = value.strip().lower()
    if not re.match(EMAIL_PATTERN, value):
        raise ValueError('Invalid email format')
    return value


class TimelineEntry(DocumentModel):
    """Single audit entry on an issue timeline."""

    action: str = Field(..., min_length=1, description="What happened")
    actor: str = Field(default=SYSTEM_ACTOR, description="Who did it")
    timestamp: datetime = Field(default_factory=utc_now, description="When it happened")


class Issue(BaseEntity):
    """Citizen-reported issue tracked through a fixed lifecycle."""

    title: str = Field(..., min_length=1, max_length=200, description="Issue title")
    description: str = Field(..., min_length=1, max_length=5000, description="Issue description")
    category: str = Field(..., min_length=1, max_length=100, description="Issue category")
    image_url: str = Field(default="", description="Photo of the problem")
    location: str = Field(default="", max_length=500, description="Where the problem is")
    reporter_email: str = Field(..., description="Citizen who reported the issue")
    status: IssueStatus = Field(default=IssueStatus.PENDING, description="Lifecycle status")
    priority: IssuePriority = Field(default=IssuePriority.NORMAL, description="Priority level")
    upvote_count: int = Field(default=0, ge=0, description="Number of vote records")
    assigned_to: Optional[str] = Field(None, description="Assigned staff email")
    timeline: List[TimelineEntry] = Field(default_factory=list, description="Audit log, newest first")

    @field_validator('reporter_email')
    @classmethod
    def validate_reporter_email(cls, v):
        return normalize_email(v)

    @field_validator('title', 'description', 'category')
    @classmethod
    def validate_text(cls, v):
        """Reject blank text fields."""
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    def is_terminal(self) -> bool:
        """Closed and Rejected issues accept no further changes."""
        return self.status in TERMINAL_STATUSES

    def is_owned_by(self, email: Optional[str]) -> bool:
        return bool(email) and self.reporter_email == email.lower()

    def is_assigned_to(self, email: Optional[str]) -> bool:
        return bool(email) and self.assigned_to == email.lower()

    def can_edit(self, email: Optional[str]) -> bool:
        """Only the reporter may edit, and only while the issue is pending."""
        return self.is_owned_by(email) and self.status == IssueStatus.PENDING


class User(BaseEntity):
    """Platform user identified by email."""

    email: str = Field(..., description="User email address")
    name: str = Field(default="", max_length=200, description="Display name")
    photo_url: str = Field(default="", description="Avatar URL")
    phone: str = Field(default="", max_length=50, description="Contact phone")
    role: UserRole = Field(default=UserRole.CITIZEN, description="User role")
    is_premium: bool = Field(default=False, description="Premium subscription flag")
    is_blocked: bool = Field(default=False, description="Blocked from filing issues")
    password_hash: Optional[str] = Field(None, description="Hashed password (staff accounts)")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return normalize_email(v)

    @classmethod
    def fresh_citizen(cls, email: str) -> "User":
        """Record for a user seen for the first time."""
        return cls(email=email)

    def to_public_dict(self) -> Dict[str, Any]:
        """Serializable view without credentials."""
        return self.model_dump(mode="json", exclude={"password_hash"})


class VoteRecord(DocumentModel):
    """One upvote; (issue_id, voter_email) is unique."""

    issue_id: str = Field(..., description="Voted issue")
    voter_email: str = Field(..., description="Voter")
    created_at: datetime = Field(default_factory=utc_now, description="Vote timestamp")

    @field_validator('voter_email')
    @classmethod
    def validate_voter_email(cls, v):
        return normalize_email(v)


class PaymentRecord(DocumentModel):
    """Immutable log entry for a confirmed payment."""

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        frozen=True
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    payer_email: str = Field(..., description="Who paid")
    amount: int = Field(..., ge=0, description="Amount in minor currency units")
    currency: str = Field(default="usd", description="ISO currency code")
    kind: PaymentKind = Field(..., description="What the payment unlocked")
    issue_id: Optional[str] = Field(None, description="Boosted issue, None for subscriptions")
    session_id: Optional[str] = Field(None, description="Payment provider session")
    created_at: datetime = Field(default_factory=utc_now, description="Record timestamp")

    @field_validator('payer_email')
    @classmethod
    def validate_payer_email(cls, v):
        return normalize_email(v)


class UserContext(BaseModel):
    """Verified caller identity for request processing."""

    email: str = Field(..., description="Authenticated user email")
    role: UserRole = Field(default=UserRole.CITIZEN, description="Role from the user record")
    name: Optional[str] = Field(None, description="User display name")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_staff(self) -> bool:
        return self.role == UserRole.STAFF

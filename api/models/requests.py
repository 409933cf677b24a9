# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from .entities import normalize_email
from .enums import IssueStatus, IssuePriority

EDITABLE_ISSUE_FIELDS = ("title", "description", "category", "image_url", "location")


class IssuePath(BaseModel):
    """Path parameters for issue endpoints."""

    issue_id: str = Field(..., description="Issue identifier")


class EmailPath(BaseModel):
    """Path parameters for user endpoints."""

    email: str = Field(..., description="User email address")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)


class CreateIssueRequest(BaseModel):
    """Request model for filing an issue."""

    title: str = Field(..., min_length=1, max_length=200, description="Issue title")
    description: str = Field(..., min_length=1, max_length=5000, description="Issue description")
    category: str = Field(..., min_length=1, max_length=100, description="Issue category")
    image_url: str = Field(default="", description="Photo of the problem")
    location: str = Field(default="", max_length=500, description="Where the problem is")

    @field_validator('title', 'description', 'category')
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()


class UpdateIssueRequest(BaseModel):
    """Request model for editing a pending issue. Unset fields are left alone."""

    title: Optional[str] = Field(None, min_length=1, max_length=200, description="Issue title")
    description: Optional[str] = Field(None, min_length=1, max_length=5000, description="Issue description")
    category: Optional[str] = Field(None, min_length=1, max_length=100, description="Issue category")
    image_url: Optional[str] = Field(None, description="Photo of the problem")
    location: Optional[str] = Field(None, max_length=500, description="Where the problem is")

    def to_updates(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent."""
        return self.model_dump(exclude_none=True)


class ChangeStatusRequest(BaseModel):
    """Request model for a staff status transition."""

    status: IssueStatus = Field(..., description="Requested next status")


class AssignIssueRequest(BaseModel):
    """Request model for assigning an issue to staff."""

    staff_email: str = Field(..., description="Staff member email")

    @field_validator('staff_email')
    @classmethod
    def validate_staff_email(cls, v):
        return normalize_email(v)


class IssueFilters(BaseModel):
    """Query filters for listing issues."""

    status: Optional[IssueStatus] = Field(None, description="Filter by status")
    category: Optional[str] = Field(None, description="Filter by category")
    priority: Optional[IssuePriority] = Field(None, description="Filter by priority")
    search: Optional[str] = Field(None, max_length=200, description="Search title, description and location")

    def to_store_filters(self) -> Dict[str, Any]:
        """Equality filters applied by the ledger store."""
        filters = {}
        if self.status is not None:
            filters["status"] = self.status.value
        if self.category:
            filters["category"] = self.category
        if self.priority is not None:
            filters["priority"] = self.priority.value
        return filters


class UpsertUserRequest(BaseModel):
    """Request model for first contact / profile sync."""

    email: str = Field(..., description="User email address")
    name: str = Field(default="", max_length=200, description="Display name")
    photo_url: str = Field(default="", description="Avatar URL")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)


class UpdateProfileRequest(BaseModel):
    """Request model for self-service profile updates."""

    name: Optional[str] = Field(None, min_length=1, max_length=200, description="Display name")
    photo_url: Optional[str] = Field(None, description="Avatar URL")
    phone: Optional[str] = Field(None, max_length=50, description="Contact phone")

    def to_updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class CreateStaffRequest(BaseModel):
    """Request model for an admin creating a staff account."""

    email: str = Field(..., description="Staff email address")
    name: str = Field(..., min_length=1, max_length=200, description="Staff full name")
    password: str = Field(..., min_length=8, description="Initial password")
    phone: str = Field(default="", max_length=50, description="Contact phone")
    photo_url: str = Field(default="", description="Avatar URL")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        """Validate password strength."""
        if not any(c.isupper() for c in v):
            raise ValueError('Password must contain at least one uppercase letter')
        if not any(c.islower() for c in v):
            raise ValueError('Password must contain at least one lowercase letter')
        if not any(c.isdigit() for c in v):
            raise ValueError('Password must contain at least one digit')
        return v


class BoostCheckoutRequest(BaseModel):
    """Request model for starting a boost checkout."""

    issue_id: str = Field(..., description="Issue to boost")


class ConfirmCheckoutRequest(BaseModel):
    """Request model for the payment confirmation path."""

    session_id: str = Field(..., min_length=1, description="Checkout session identifier")


class LoginRequest(BaseModel):
    """Request model for password login."""

    email: str = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)


class RegisterRequest(CreateStaffRequest):
    """Request model for citizen self-registration."""

    pass


class RefreshTokenRequest(BaseModel):
    """Request model for token refresh."""

    refresh_token: str = Field(..., min_length=1, description="Valid refresh token")

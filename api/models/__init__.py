# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the CityFix platform.
"""

# Base models
from .base import BaseEntity, DocumentModel, generate_object_id, utc_now

# Enumerations
from .enums import (
    IssueStatus,
    IssuePriority,
    UserRole,
    PaymentKind
)

# Core entities
from .entities import (
    Issue,
    TimelineEntry,
    User,
    VoteRecord,
    PaymentRecord,
    UserContext,
    SYSTEM_ACTOR
)

# Request models
from .requests import (
    IssuePath,
    EmailPath,
    CreateIssueRequest,
    UpdateIssueRequest,
    ChangeStatusRequest,
    AssignIssueRequest,
    IssueFilters,
    UpsertUserRequest,
    UpdateProfileRequest,
    CreateStaffRequest,
    BoostCheckoutRequest,
    ConfirmCheckoutRequest,
    LoginRequest,
    RegisterRequest,
    RefreshTokenRequest
)

__all__ = [
    # Base models
    "BaseEntity",
    "DocumentModel",
    "generate_object_id",
    "utc_now",

    # Enumerations
    "IssueStatus",
    "IssuePriority",
    "UserRole",
    "PaymentKind",

    # Core entities
    "Issue",
    "TimelineEntry",
    "User",
    "VoteRecord",
    "PaymentRecord",
    "UserContext",
    "SYSTEM_ACTOR",

    # Request models
    "IssuePath",
    "EmailPath",
    "CreateIssueRequest",
    "UpdateIssueRequest",
    "ChangeStatusRequest",
    "AssignIssueRequest",
    "IssueFilters",
    "UpsertUserRequest",
    "UpdateProfileRequest",
    "CreateStaffRequest",
    "BoostCheckoutRequest",
    "ConfirmCheckoutRequest",
    "LoginRequest",
    "RegisterRequest",
    "RefreshTokenRequest"
]

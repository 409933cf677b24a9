# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the CityFix platform.
"""

from enum import Enum


class IssueStatus(str, Enum):
    """Issue lifecycle status enumeration."""
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    WORKING = "Working"
    RESOLVED = "Resolved"
    CLOSED = "Closed"
    REJECTED = "Rejected"


class IssuePriority(str, Enum):
    """Issue priority levels. Only a confirmed boost raises an issue to HIGH."""
    NORMAL = "Normal"
    HIGH = "High"


class UserRole(str, Enum):
    """User role enumeration."""
    CITIZEN = "citizen"
    STAFF = "staff"
    ADMIN = "admin"


class PaymentKind(str, Enum):
    """What a confirmed payment unlocks."""
    BOOST = "boost"
    SUBSCRIPTION = "subscription"

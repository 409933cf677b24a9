# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - ledger store, engine services and external integrations.
"""

from .mongodb import MongoDBService, PersistenceError, DuplicateRecordError
from .timeline import TimelineRecorder
from .users import UserService
from .issues import IssueService
from .votes import VoteLedger
from .escalation import EscalationHandler
from .stats import StatsService
from .auth import AuthService, AuthenticationError, TokenValidationError
from .payments import PaymentProcessor, PaymentConfirmation, PaymentNotConfirmedError, PaymentProviderError

__all__ = [
    "MongoDBService",
    "PersistenceError",
    "DuplicateRecordError",
    "TimelineRecorder",
    "UserService",
    "IssueService",
    "VoteLedger",
    "EscalationHandler",
    "StatsService",
    "AuthService",
    "AuthenticationError",
    "TokenValidationError",
    "PaymentProcessor",
    "PaymentConfirmation",
    "PaymentNotConfirmedError",
    "PaymentProviderError"
]

# SPDX-License-Identifier: Apache-2.0

"""
Escalation handler: applies confirmed payments to issues and users.

Only the payment confirmation path calls into this module. Each call
mutates state first, then writes the audit entry, then appends the payment
record. Escalation is idempotent; the audit trail is not.
"""

import logging
from typing import Optional
from opentelemetry import trace

from domain import timeline as timeline_domain
from domain.results import ErrorCode, WorkflowResult
from models.base import utc_now
from models.entities import PaymentRecord
from models.enums import IssuePriority, PaymentKind
from .mongodb import MongoDBService, DuplicateRecordError, USERS, PAYMENTS, PAYMENT_SESSIONS
from .timeline import TimelineRecorder

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class EscalationHandler:
    """Raises issue priority and user premium status after confirmed payments."""

    def __init__(self, mongo_service: MongoDBService, timeline_recorder: TimelineRecorder,
                 currency: str = "usd"):
        self.mongo_service = mongo_service
        self.timeline_recorder = timeline_recorder
        self.currency = currency

    def _append_payment(self, record: PaymentRecord) -> None:
        self.mongo_service.insert(PAYMENTS, record.to_document())
        logger.info(
            "Payment recorded",
            extra={
                "payment_id": record.id,
                "kind": record.kind,
                "amount": record.amount,
                "payer": record.payer_email,
                "issue_id": record.issue_id
            }
        )

    def recorded_payment(self, session_id: str) -> Optional[PaymentRecord]:
        """Payment already recorded for a provider session, if any."""
        document = self.mongo_service.find_one(PAYMENTS, {"sessionId": session_id})
        return PaymentRecord.from_document(document) if document else None

    def claim_session(self, session_id: str) -> bool:
        """
        Reserve a provider session so it is applied at most once.

        Returns:
            False when another confirmation already holds the session
        """
        try:
            self.mongo_service.insert(PAYMENT_SESSIONS, {"sessionId": session_id, "claimedAt": utc_now()})
        except DuplicateRecordError:
            logger.info("Payment session already claimed", extra={"session_id": session_id})
            return False
        return True

    def release_session(self, session_id: str) -> None:
        """Drop a claim whose application did not go through."""
        self.mongo_service.delete_many(PAYMENT_SESSIONS, {"sessionId": session_id})
        logger.info("Payment session released", extra={"session_id": session_id})

    def apply_boost(self, issue_id: str, payer_email: str, confirmed_amount: int,
                    session_id: Optional[str] = None) -> WorkflowResult:
        """
        Raise an issue to High priority after a confirmed boost payment.

        Args:
            issue_id: Boosted issue
            payer_email: Who paid
            confirmed_amount: Paid amount in minor units
            session_id: Payment provider session, if any

        Returns:
            WorkflowResult with the payment record, or NotFound when the issue is gone
        """
        with tracer.start_as_current_span("escalation.apply_boost") as span:
            span.set_attributes({
                "issue.id": issue_id,
                "payment.payer": payer_email,
                "payment.amount": confirmed_amount
            })

            entry = timeline_domain.build_entry(timeline_domain.ISSUE_BOOSTED, payer_email)
            recorded = self.timeline_recorder.record_entry(
                issue_id,
                entry,
                fields={"priority": IssuePriority.HIGH.value, "updatedAt": utc_now()}
            )
            if not recorded.success:
                logger.error(
                    "Confirmed boost for missing issue",
                    extra={"issue_id": issue_id, "payer": payer_email, "session_id": session_id}
                )
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")

            record = PaymentRecord(
                payer_email=payer_email,
                amount=confirmed_amount,
                currency=self.currency,
                kind=PaymentKind.BOOST,
                issue_id=issue_id,
                session_id=session_id
            )
            self._append_payment(record)
            return WorkflowResult.ok(value=record)

    def apply_subscription(self, payer_email: str, confirmed_amount: int,
                           session_id: Optional[str] = None) -> WorkflowResult:
        """
        Mark a user premium after a confirmed subscription payment.

        Args:
            payer_email: Subscribing user
            confirmed_amount: Paid amount in minor units
            session_id: Payment provider session, if any

        Returns:
            WorkflowResult with the payment record, or NotFound when the user is gone
        """
        with tracer.start_as_current_span("escalation.apply_subscription") as span:
            span.set_attributes({"payment.payer": payer_email, "payment.amount": confirmed_amount})

            matched = self.mongo_service.update_fields(
                USERS,
                {"email": payer_email.lower()},
                {"isPremium": True, "updatedAt": utc_now()}
            )
            if not matched:
                logger.error(
                    "Confirmed subscription for missing user",
                    extra={"payer": payer_email, "session_id": session_id}
                )
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "User not found")

            record = PaymentRecord(
                payer_email=payer_email,
                amount=confirmed_amount,
                currency=self.currency,
                kind=PaymentKind.SUBSCRIPTION,
                session_id=session_id
            )
            self._append_payment(record)
            return WorkflowResult.ok(value=record)

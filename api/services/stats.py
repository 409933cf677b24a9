# SPDX-License-Identifier: Apache-2.0

"""
Dashboard statistics for citizens, staff and admins.
"""

import logging
from datetime import datetime, timezone
from typing import List, Dict, Any
from opentelemetry import trace

from models.base import utc_now
from models.entities import Issue, PaymentRecord
from models.enums import IssueStatus
from .mongodb import MongoDBService, ISSUES, PAYMENTS

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _as_utc(value: datetime) -> datetime:
    # Documents read back from MongoDB carry naive UTC datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class StatsService:
    """Read-only aggregates over issues and payments."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service

    def _status_counts(self, filters: Dict[str, Any]) -> Dict[str, int]:
        return {
            status.value: self.mongo_service.count(ISSUES, {**filters, "status": status.value})
            for status in IssueStatus
        }

    def citizen_stats(self, email: str) -> Dict[str, Any]:
        """Issue totals per status and payment count for one reporter."""
        with tracer.start_as_current_span("stats.citizen") as span:
            span.set_attribute("user.email", email)
            filters = {"reporterEmail": email.lower()}
            return {
                "total": self.mongo_service.count(ISSUES, filters),
                "by_status": self._status_counts(filters),
                "payments": self.mongo_service.count(PAYMENTS, {"payerEmail": email.lower()})
            }

    def staff_stats(self, staff_email: str) -> Dict[str, Any]:
        """Workload for one staff member, including issues touched today."""
        with tracer.start_as_current_span("stats.staff") as span:
            span.set_attribute("user.email", staff_email)
            documents = self.mongo_service.find(ISSUES, {"assignedTo": staff_email.lower()})
            issues = [Issue.from_document(doc) for doc in documents]

            by_status = {status.value: 0 for status in IssueStatus}
            for issue in issues:
                by_status[IssueStatus(issue.status).value] += 1

            start_of_day = utc_now().replace(hour=0, minute=0, second=0, microsecond=0)
            todays_tasks = sum(1 for issue in issues if _as_utc(issue.updated_at) >= start_of_day)

            return {
                "assigned": len(issues),
                "resolved": by_status[IssueStatus.RESOLVED.value],
                "closed": by_status[IssueStatus.CLOSED.value],
                "todays_tasks": todays_tasks,
                "by_status": by_status
            }

    def admin_stats(self) -> Dict[str, Any]:
        """Platform totals and the sum of all confirmed payments."""
        with tracer.start_as_current_span("stats.admin"):
            return {
                "total": self.mongo_service.count(ISSUES),
                "by_status": self._status_counts({}),
                "total_payments": self.mongo_service.sum_field(PAYMENTS, "amount")
            }

    def payment_ledger(self) -> List[PaymentRecord]:
        """All payment records, newest first."""
        documents = self.mongo_service.find(PAYMENTS, sort=[("createdAt", -1)])
        logger.debug(f"Loaded {len(documents)} payment records")
        return [PaymentRecord.from_document(doc) for doc in documents]

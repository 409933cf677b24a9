# SPDX-License-Identifier: Apache-2.0

"""
Vote ledger: one upvote per (issue, voter), never by the reporter.
"""

import logging
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from domain.votes import validate_upvote
from domain.results import ErrorCode, WorkflowResult
from models.entities import Issue, VoteRecord
from .mongodb import MongoDBService, DuplicateRecordError, ISSUES, VOTES

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class VoteLedger:
    """Deduplicated upvotes backed by a unique (issueId, voterEmail) index."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service

    def has_voted(self, issue_id: str, voter_email: str) -> bool:
        return self.mongo_service.find_one(
            VOTES,
            {"issueId": issue_id, "voterEmail": voter_email.lower()}
        ) is not None

    def upvote(self, issue_id: str, voter_email: str) -> WorkflowResult:
        """
        Record an upvote and increment the issue's count.

        The vote record is written first; the unique index serializes
        concurrent attempts so only one record per pair can exist. The count
        is incremented only after the record exists, so upvoteCount never
        exceeds the number of records.

        Args:
            issue_id: Issue to upvote
            voter_email: Verified voter identity

        Returns:
            WorkflowResult with the new count, or NotFound/SelfVote/AlreadyVoted
        """
        with tracer.start_as_current_span("votes.upvote") as span:
            span.set_attributes({"issue.id": issue_id, "voter.email": voter_email})

            document = self.mongo_service.find_by_id(ISSUES, issue_id)
            issue = Issue.from_document(document) if document else None
            result = validate_upvote(
                issue,
                voter_email,
                already_voted=issue is not None and self.has_voted(issue_id, voter_email)
            )
            if not result.success:
                span.set_status(Status(StatusCode.ERROR, result.error_code.value))
                return result

            record = VoteRecord(issue_id=issue_id, voter_email=voter_email)
            try:
                self.mongo_service.insert(VOTES, record.to_document())
            except DuplicateRecordError:
                span.set_status(Status(StatusCode.ERROR, ErrorCode.ALREADY_VOTED.value))
                return WorkflowResult.fail(ErrorCode.ALREADY_VOTED, "Already upvoted")

            if not self.mongo_service.increment(ISSUES, {"id": issue_id}, "upvoteCount", 1):
                # Issue deleted between the read and the increment; drop the orphan vote
                self.mongo_service.delete_many(VOTES, {"issueId": issue_id})
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")

            logger.info("Upvote recorded", extra={"issue_id": issue_id, "voter": record.voter_email})
            current = self.mongo_service.find_by_id(ISSUES, issue_id)
            upvote_count = current["upvoteCount"] if current else issue.upvote_count + 1
            return WorkflowResult.ok(value={"upvote_count": upvote_count})

    def count_votes(self, issue_id: str) -> int:
        return self.mongo_service.count(VOTES, {"issueId": issue_id})

    def reconcile_count(self, issue_id: str) -> WorkflowResult:
        """Resync an issue's upvoteCount with its live vote records."""
        with tracer.start_as_current_span("votes.reconcile") as span:
            span.set_attribute("issue.id", issue_id)
            actual = self.count_votes(issue_id)
            if not self.mongo_service.update_fields(ISSUES, {"id": issue_id}, {"upvoteCount": actual}):
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")
            logger.info("Upvote count reconciled", extra={"issue_id": issue_id, "upvote_count": actual})
            return WorkflowResult.ok(value={"upvote_count": actual})

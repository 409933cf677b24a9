# SPDX-License-Identifier: Apache-2.0

"""
Issue lifecycle service.

Orchestrates the pure state machine in domain.issues against the ledger
store. Status and assignment writes are compare-and-set on the value that
was validated, and each change is written together with its timeline entry.
"""

import logging
from typing import List, Dict, Any, Optional
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from domain import issues as issue_domain
from domain import timeline as timeline_domain
from domain.quota import can_file, FREE_ISSUE_LIMIT
from domain.results import ErrorCode, WorkflowResult
from models.entities import Issue, UserContext
from models.enums import IssueStatus
from models.requests import CreateIssueRequest, IssueFilters
from .mongodb import MongoDBService, ISSUES, VOTES
from .timeline import TimelineRecorder
from .users import UserService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _document_fields(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Map Issue attribute names to stored document keys."""
    return {Issue.model_fields[name].alias or name: value for name, value in updates.items()}


class IssueService:
    """Issue state machine backed by the ledger store."""

    def __init__(
        self,
        mongo_service: MongoDBService,
        timeline_recorder: TimelineRecorder,
        user_service: UserService,
        free_issue_limit: int = FREE_ISSUE_LIMIT
    ):
        self.mongo_service = mongo_service
        self.timeline_recorder = timeline_recorder
        self.user_service = user_service
        self.free_issue_limit = free_issue_limit

    # Reads

    def get_issue(self, issue_id: str) -> Optional[Issue]:
        """Load an issue by ID, None when absent."""
        document = self.mongo_service.find_by_id(ISSUES, issue_id)
        return Issue.from_document(document) if document else None

    def list_issues(self, filters: Optional[IssueFilters] = None) -> List[Issue]:
        """List issues newest first, with equality filters and free-text search."""
        filters = filters or IssueFilters()
        documents = self.mongo_service.find(
            ISSUES,
            filters.to_store_filters(),
            sort=[("createdAt", -1)]
        )
        issues = [Issue.from_document(doc) for doc in documents]
        return issue_domain.search_issues(issues, filters.search)

    def list_for_admin(self) -> List[Issue]:
        """All issues, High priority first, newest first within a priority."""
        documents = self.mongo_service.find(ISSUES)
        return issue_domain.sort_by_priority([Issue.from_document(doc) for doc in documents])

    def list_assigned(self, staff_email: str) -> List[Issue]:
        """Issues assigned to a staff member, High priority first."""
        documents = self.mongo_service.find(ISSUES, {"assignedTo": staff_email.lower()})
        return issue_domain.sort_by_priority([Issue.from_document(doc) for doc in documents])

    def count_by_reporter(self, email: str) -> int:
        return self.mongo_service.count(ISSUES, {"reporterEmail": email.lower()})

    # Lifecycle operations

    def create_issue(self, request: CreateIssueRequest, actor: UserContext) -> WorkflowResult:
        """
        File a new issue after the quota policy allows it.

        Args:
            request: Validated issue fields
            actor: Verified reporter

        Returns:
            WorkflowResult with the created issue, or Blocked/QuotaExceeded
        """
        with tracer.start_as_current_span("issue.create") as span:
            span.set_attribute("actor.email", actor.email)

            user = self.user_service.get_user(actor.email)
            existing = self.count_by_reporter(actor.email)
            decision = can_file(user, existing, self.free_issue_limit)
            if not decision.allowed:
                span.set_status(Status(StatusCode.ERROR, decision.reason.value))
                logger.warning(
                    "Issue creation denied by quota policy",
                    extra={
                        "reporter": actor.email,
                        "reason": decision.reason.value,
                        "existing_issues": existing
                    }
                )
                return WorkflowResult.fail(decision.reason, decision.message)

            if user is None:
                self.user_service.ensure_user(actor.email)

            issue = Issue(
                **request.model_dump(),
                reporter_email=actor.email,
                timeline=[timeline_domain.build_entry(timeline_domain.ISSUE_REPORTED, actor.email)]
            )
            self.mongo_service.insert(ISSUES, issue.to_document())

            span.set_attribute("issue.id", issue.id)
            logger.info(
                "Issue created",
                extra={"issue_id": issue.id, "reporter": actor.email, "category": issue.category}
            )
            return WorkflowResult.ok(issue)

    def transition_status(self, issue_id: str, new_status: str, actor: UserContext) -> WorkflowResult:
        """
        Move an issue to its next status and record it on the timeline.

        Args:
            issue_id: Issue to move
            new_status: Requested next status
            actor: Verified staff member or admin

        Returns:
            WorkflowResult with the updated issue or the failure
        """
        with tracer.start_as_current_span("issue.transition") as span:
            span.set_attributes({
                "issue.id": issue_id,
                "issue.requested_status": str(getattr(new_status, "value", new_status)),
                "actor.email": actor.email
            })

            issue = self.get_issue(issue_id)
            if issue is None:
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")

            result = issue_domain.transition_issue(issue, new_status, actor)
            if not result.success:
                span.set_status(Status(StatusCode.ERROR, result.error_code.value))
                return result

            updated = result.issue
            persisted = self._persist_change(
                issue_id,
                updated,
                {"status": updated.status},
                guard={"status": issue.status},
                conflict=ErrorCode.INVALID_TRANSITION,
                conflict_message="Issue status changed concurrently"
            )
            if not persisted.success:
                return persisted

            logger.info(
                "Issue status changed",
                extra={
                    "issue_id": issue_id,
                    "from_status": issue.status,
                    "to_status": updated.status,
                    "actor": actor.email
                }
            )
            return WorkflowResult.ok(updated)

    def edit_issue(self, issue_id: str, updates: Dict[str, Any], actor: UserContext) -> WorkflowResult:
        """Apply owner edits to a pending issue."""
        with tracer.start_as_current_span("issue.edit") as span:
            span.set_attributes({"issue.id": issue_id, "actor.email": actor.email})

            issue = self.get_issue(issue_id)
            if issue is None:
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")

            result = issue_domain.edit_issue(issue, updates, actor)
            if not result.success:
                return result

            updated = result.issue
            fields = _document_fields({name: getattr(updated, name) for name in updates})
            persisted = self._persist_change(
                issue_id,
                updated,
                fields,
                guard={"status": IssueStatus.PENDING.value},
                conflict=ErrorCode.NOT_EDITABLE,
                conflict_message="Only pending issues can be edited"
            )
            if not persisted.success:
                return persisted

            logger.info("Issue edited", extra={"issue_id": issue_id, "fields": sorted(updates)})
            return WorkflowResult.ok(updated)

    def delete_issue(self, issue_id: str, actor: UserContext) -> WorkflowResult:
        """Delete an issue owned by the actor and cascade its vote records."""
        with tracer.start_as_current_span("issue.delete") as span:
            span.set_attributes({"issue.id": issue_id, "actor.email": actor.email})

            issue = self.get_issue(issue_id)
            if issue is None:
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")

            validation = issue_domain.validate_deletion(issue, actor)
            if not validation.is_valid:
                return WorkflowResult.fail(validation.error_code, validation.errors[0])

            if not self.mongo_service.delete_one(ISSUES, {"id": issue_id}):
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")
            removed_votes = self.mongo_service.delete_many(VOTES, {"issueId": issue_id})

            logger.info(
                "Issue deleted",
                extra={"issue_id": issue_id, "actor": actor.email, "removed_votes": removed_votes}
            )
            return WorkflowResult.ok(issue, value={"removed_votes": removed_votes})

    def assign_issue(self, issue_id: str, staff_email: str, actor: UserContext) -> WorkflowResult:
        """Assign an issue to staff, once."""
        with tracer.start_as_current_span("issue.assign") as span:
            span.set_attributes({
                "issue.id": issue_id,
                "issue.assignee": staff_email,
                "actor.email": actor.email
            })

            issue = self.get_issue(issue_id)
            if issue is None:
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")

            result = issue_domain.assign_issue(issue, staff_email, actor)
            if not result.success:
                return result

            updated = result.issue
            persisted = self._persist_change(
                issue_id,
                updated,
                {"assignedTo": updated.assigned_to},
                guard={"assignedTo": None},
                conflict=ErrorCode.ALREADY_ASSIGNED,
                conflict_message="Already assigned"
            )
            if not persisted.success:
                return persisted

            logger.info(
                "Issue assigned",
                extra={"issue_id": issue_id, "staff": updated.assigned_to, "actor": actor.email}
            )
            return WorkflowResult.ok(updated)

    def reject_issue(self, issue_id: str, actor: UserContext) -> WorkflowResult:
        """Reject a pending issue."""
        with tracer.start_as_current_span("issue.reject") as span:
            span.set_attributes({"issue.id": issue_id, "actor.email": actor.email})

            issue = self.get_issue(issue_id)
            if issue is None:
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")

            result = issue_domain.reject_issue(issue, actor)
            if not result.success:
                return result

            updated = result.issue
            persisted = self._persist_change(
                issue_id,
                updated,
                {"status": updated.status},
                guard={"status": IssueStatus.PENDING.value},
                conflict=ErrorCode.INVALID_TRANSITION,
                conflict_message="Only pending issues can be rejected"
            )
            if not persisted.success:
                return persisted

            logger.info("Issue rejected", extra={"issue_id": issue_id, "actor": actor.email})
            return WorkflowResult.ok(updated)

    def _persist_change(
        self,
        issue_id: str,
        updated: Issue,
        fields: Dict[str, Any],
        guard: Dict[str, Any],
        conflict: ErrorCode,
        conflict_message: str
    ) -> WorkflowResult:
        """Write fields and the newest timeline entry in one guarded update."""
        fields = dict(fields)
        fields["updatedAt"] = updated.updated_at
        recorded = self.timeline_recorder.record_entry(
            issue_id,
            updated.timeline[0],
            fields=fields,
            guard=guard
        )
        if recorded.success:
            return recorded

        # Guard no longer holds, or the issue disappeared in between
        if self.mongo_service.find_by_id(ISSUES, issue_id) is None:
            return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")
        logger.warning(
            "Concurrent issue update detected",
            extra={"issue_id": issue_id, "guard": guard, "conflict": conflict.value}
        )
        return WorkflowResult.fail(conflict, conflict_message)

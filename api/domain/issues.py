# SPDX-License-Identifier: Apache-2.0

"""
Issue domain logic for lifecycle management.

This module contains pure functions for the issue state machine: status
transitions, owner edits, assignment, rejection, deletion checks, filtering
and HAL response transformation. Functions never touch the ledger store;
they return updated copies that the service layer persists.
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass

from models.entities import Issue, UserContext
from models.enums import IssueStatus, IssuePriority
from models.requests import EDITABLE_ISSUE_FIELDS
from domain import timeline
from domain.results import ErrorCode, WorkflowResult


# Legal next states for each status. Closed and Rejected are terminal.
ALLOWED_TRANSITIONS: Dict[IssueStatus, List[IssueStatus]] = {
    IssueStatus.PENDING: [IssueStatus.IN_PROGRESS, IssueStatus.REJECTED],
    IssueStatus.IN_PROGRESS: [IssueStatus.WORKING],
    IssueStatus.WORKING: [IssueStatus.RESOLVED],
    IssueStatus.RESOLVED: [IssueStatus.CLOSED],
    IssueStatus.CLOSED: [],
    IssueStatus.REJECTED: []
}


@dataclass
class ValidationResult:
    """Result of a lifecycle rule check."""
    is_valid: bool
    errors: List[str]
    error_code: Optional[ErrorCode] = None


def allowed_next_statuses(current_status: str) -> List[IssueStatus]:
    """Statuses reachable in one step from current_status."""
    return list(ALLOWED_TRANSITIONS.get(IssueStatus(current_status), []))


def validate_status_transition(
    current_status: str,
    new_status: str
) -> ValidationResult:
    """
    Validate issue status transition.

    Args:
        current_status: Current issue status
        new_status: Desired new status

    Returns:
        ValidationResult with validation status and errors
    """
    try:
        requested = IssueStatus(new_status)
    except ValueError:
        return ValidationResult(
            is_valid=False,
            errors=[f"Unknown status: {new_status}"],
            error_code=ErrorCode.INVALID_TRANSITION
        )

    if requested not in allowed_next_statuses(current_status):
        return ValidationResult(
            is_valid=False,
            errors=[f"Invalid status transition from {IssueStatus(current_status).value} to {requested.value}"],
            error_code=ErrorCode.INVALID_TRANSITION
        )
    return ValidationResult(is_valid=True, errors=[])


def transition_issue(
    issue: Issue,
    new_status: str,
    actor: UserContext
) -> WorkflowResult:
    """
    Move an issue to its next status.

    Staff may only move issues assigned to them; admins may move any issue.
    Rejection goes through reject_issue, so only admins may request it here.

    Args:
        issue: Issue as currently stored
        new_status: Requested next status
        actor: Verified caller

    Returns:
        WorkflowResult with the updated issue or the failure
    """
    if actor.is_staff():
        if not issue.is_assigned_to(actor.email):
            return WorkflowResult.fail(ErrorCode.NOT_ASSIGNEE, "Not your issue")
    elif not actor.is_admin():
        return WorkflowResult.fail(ErrorCode.FORBIDDEN, "Only staff can change issue status")

    if new_status == IssueStatus.REJECTED and not actor.is_admin():
        return WorkflowResult.fail(ErrorCode.FORBIDDEN, "Only admins can reject issues")

    validation = validate_status_transition(issue.status, new_status)
    if not validation.is_valid:
        return WorkflowResult.fail(validation.error_code, "Invalid status transition", validation.errors)

    status_value = IssueStatus(new_status).value
    updated = issue.model_copy(deep=True)
    updated.status = status_value
    updated.timeline = timeline.prepend_entry(
        updated.timeline,
        timeline.build_entry(timeline.status_changed(status_value), actor.email)
    )
    updated.update_timestamp()
    return WorkflowResult.ok(updated)


def edit_issue(
    issue: Issue,
    updates: Dict[str, Any],
    actor: UserContext
) -> WorkflowResult:
    """
    Apply owner edits to a pending issue.

    Args:
        issue: Issue as currently stored
        updates: Field updates keyed by attribute name
        actor: Verified caller

    Returns:
        WorkflowResult with the updated issue or the failure
    """
    if not issue.is_owned_by(actor.email):
        return WorkflowResult.fail(ErrorCode.NOT_EDITABLE, "Only the reporter can edit this issue")
    if not issue.can_edit(actor.email):
        return WorkflowResult.fail(ErrorCode.NOT_EDITABLE, "Only pending issues can be edited")

    unknown = sorted(set(updates) - set(EDITABLE_ISSUE_FIELDS))
    if unknown:
        return WorkflowResult.fail(
            ErrorCode.VALIDATION_FAILED,
            "Invalid edit",
            [f"Field cannot be edited: {name}" for name in unknown]
        )
    if not updates:
        return WorkflowResult.fail(ErrorCode.VALIDATION_FAILED, "Nothing to update")

    updated = issue.model_copy(deep=True)
    try:
        for name, value in updates.items():
            setattr(updated, name, value)
    except ValueError as e:
        return WorkflowResult.fail(ErrorCode.VALIDATION_FAILED, "Invalid edit", [str(e)])

    updated.timeline = timeline.prepend_entry(
        updated.timeline,
        timeline.build_entry(timeline.ISSUE_EDITED, actor.email)
    )
    updated.update_timestamp()
    return WorkflowResult.ok(updated)


def validate_deletion(issue: Issue, actor: UserContext) -> ValidationResult:
    """Only the reporter may delete, whatever the status."""
    if not issue.is_owned_by(actor.email):
        return ValidationResult(
            is_valid=False,
            errors=["Only the reporter can delete this issue"],
            error_code=ErrorCode.NOT_OWNER
        )
    return ValidationResult(is_valid=True, errors=[])


def assign_issue(
    issue: Issue,
    staff_email: str,
    actor: UserContext
) -> WorkflowResult:
    """
    Assign an issue to a staff member. Assignment happens at most once.

    Args:
        issue: Issue as currently stored
        staff_email: Staff member receiving the issue
        actor: Verified caller, must be an admin

    Returns:
        WorkflowResult with the updated issue or the failure
    """
    if not actor.is_admin():
        return WorkflowResult.fail(ErrorCode.FORBIDDEN, "Admin only action")
    if issue.assigned_to:
        return WorkflowResult.fail(ErrorCode.ALREADY_ASSIGNED, f"Already assigned to {issue.assigned_to}")
    if issue.is_terminal():
        return WorkflowResult.fail(ErrorCode.NOT_EDITABLE, f"Issue is {issue.status} and can no longer change")

    updated = issue.model_copy(deep=True)
    updated.assigned_to = staff_email.lower()
    updated.timeline = timeline.prepend_entry(
        updated.timeline,
        timeline.build_entry(timeline.assigned_to_staff(updated.assigned_to), actor.email)
    )
    updated.update_timestamp()
    return WorkflowResult.ok(updated)


def reject_issue(issue: Issue, actor: UserContext) -> WorkflowResult:
    """
    Reject a pending issue.

    Args:
        issue: Issue as currently stored
        actor: Verified caller, must be an admin

    Returns:
        WorkflowResult with the updated issue or the failure
    """
    if not actor.is_admin():
        return WorkflowResult.fail(ErrorCode.FORBIDDEN, "Admin only action")

    validation = validate_status_transition(issue.status, IssueStatus.REJECTED)
    if not validation.is_valid:
        return WorkflowResult.fail(
            validation.error_code,
            "Only pending issues can be rejected",
            validation.errors
        )

    updated = issue.model_copy(deep=True)
    updated.status = IssueStatus.REJECTED.value
    updated.timeline = timeline.prepend_entry(
        updated.timeline,
        timeline.build_entry(timeline.ISSUE_REJECTED, actor.email)
    )
    updated.update_timestamp()
    return WorkflowResult.ok(updated)


def search_issues(issues: List[Issue], search_term: Optional[str]) -> List[Issue]:
    """
    Search issues by title, description and location.

    Args:
        issues: List of issues to search
        search_term: Search term

    Returns:
        List of matching issues
    """
    if not search_term or not search_term.strip():
        return issues

    search_lower = search_term.strip().lower()

    return [
        issue for issue in issues
        if (search_lower in issue.title.lower() or
            search_lower in issue.description.lower() or
            search_lower in issue.location.lower())
    ]


def sort_by_priority(issues: List[Issue]) -> List[Issue]:
    """High priority first, newest first within a priority."""
    newest_first = sorted(issues, key=lambda issue: issue.created_at, reverse=True)
    return sorted(newest_first, key=lambda issue: issue.priority != IssuePriority.HIGH)


def build_issue_hal_response(
    issue: Issue,
    user_context: Optional[UserContext],
    base_url: str
) -> Dict[str, Any]:
    """
    Build HAL response for an issue with affordance links.

    Args:
        issue: Issue entity
        user_context: Caller, or None for anonymous reads
        base_url: Base URL for link generation

    Returns:
        HAL-formatted response dictionary
    """
    response = issue.model_dump(mode="json")
    issue_href = f"{base_url}/api/issues/{issue.id}"
    response["_links"] = {
        "self": {"href": issue_href},
        "collection": {"href": f"{base_url}/api/issues"}
    }

    if user_context is None:
        return response

    links = response["_links"]

    # Owner affordances
    if issue.can_edit(user_context.email):
        links["edit"] = {"href": issue_href, "method": "PATCH", "type": "application/json"}
    if issue.is_owned_by(user_context.email):
        links["delete"] = {"href": issue_href, "method": "DELETE"}
    else:
        links["upvote"] = {"href": f"{issue_href}/upvote", "method": "POST"}

    # Boost while priority can still be raised
    if issue.priority == IssuePriority.NORMAL and not issue.is_terminal():
        links["boost"] = {
            "href": f"{base_url}/api/payments/boost",
            "method": "POST",
            "type": "application/json"
        }

    # Admin moderation
    if user_context.is_admin():
        if not issue.assigned_to and not issue.is_terminal():
            links["assign"] = {"href": f"{base_url}/api/admin/issues/{issue.id}/assign", "method": "PATCH"}
        if issue.status == IssueStatus.PENDING:
            links["reject"] = {"href": f"{base_url}/api/admin/issues/{issue.id}/reject", "method": "PATCH"}

    # Assignee workflow
    if user_context.is_staff() and issue.is_assigned_to(user_context.email):
        next_statuses = [
            status.value for status in allowed_next_statuses(issue.status)
            if status != IssueStatus.REJECTED
        ]
        if next_statuses:
            links["status"] = {
                "href": f"{base_url}/api/staff/issues/{issue.id}/status",
                "method": "PATCH",
                "allowed": next_statuses
            }

    return response


def build_issue_collection_hal_response(
    issues: List[Issue],
    user_context: Optional[UserContext],
    base_url: str,
    collection_path: str = "/api/issues"
) -> Dict[str, Any]:
    """Build HAL collection response for issues."""
    return {
        "total": len(issues),
        "_embedded": {
            "issues": [
                build_issue_hal_response(issue, user_context, base_url)
                for issue in issues
            ]
        },
        "_links": {
            "self": {"href": f"{base_url}{collection_path}"}
        }
    }

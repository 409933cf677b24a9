# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Citizen issue endpoints: browse, report, edit, delete and upvote.
"""

from flask import current_app, g, jsonify
from flask_openapi3 import APIBlueprint, Tag
import logging

from domain.issues import build_issue_hal_response, build_issue_collection_hal_response
from domain.results import ErrorCode
from middleware.auth import require_auth, optional_auth
from middleware.error_handler import problem_response, workflow_error_response
from models.requests import IssuePath, IssueFilters, CreateIssueRequest, UpdateIssueRequest

logger = logging.getLogger(__name__)

issues_tag = Tag(name="Issues", description="Citizen issue reporting and voting")
issues_bp = APIBlueprint(
    'issues',
    __name__,
    url_prefix='/api/issues',
    abp_tags=[issues_tag]
)


def _render(issue, status: int = 200):
    return jsonify(build_issue_hal_response(issue, g.user_context, current_app.config['BASE_URL'])), status


@issues_bp.get('')
@optional_auth
def list_issues(query: IssueFilters):
    """List issues, newest first, with optional filters and search."""
    issues = current_app.issue_service.list_issues(query)
    return jsonify(build_issue_collection_hal_response(
        issues,
        g.user_context,
        current_app.config['BASE_URL']
    ))


@issues_bp.get('/<issue_id>')
@optional_auth
def get_issue(path: IssuePath):
    """Issue detail with its timeline."""
    issue = current_app.issue_service.get_issue(path.issue_id)
    if issue is None:
        return problem_response(ErrorCode.NOT_FOUND, "Issue not found")
    return _render(issue)


@issues_bp.post('')
@require_auth
def create_issue(body: CreateIssueRequest):
    """Report a new issue. Free accounts are limited by the quota policy."""
    result = current_app.issue_service.create_issue(body, g.user_context)
    if not result.success:
        return workflow_error_response(result)
    return _render(result.issue, 201)


@issues_bp.patch('/<issue_id>')
@require_auth
def edit_issue(path: IssuePath, body: UpdateIssueRequest):
    """Edit a pending issue you reported."""
    result = current_app.issue_service.edit_issue(path.issue_id, body.to_updates(), g.user_context)
    if not result.success:
        return workflow_error_response(result)
    return _render(result.issue)


@issues_bp.delete('/<issue_id>')
@require_auth
def delete_issue(path: IssuePath):
    """Delete an issue you reported, together with its votes."""
    result = current_app.issue_service.delete_issue(path.issue_id, g.user_context)
    if not result.success:
        return workflow_error_response(result)
    return jsonify({
        "deleted": True,
        "id": path.issue_id,
        "removed_votes": result.value["removed_votes"]
    })


@issues_bp.post('/<issue_id>/upvote')
@require_auth
def upvote_issue(path: IssuePath):
    """Upvote someone else's issue, once."""
    result = current_app.vote_ledger.upvote(path.issue_id, g.user_context.email)
    if not result.success:
        return workflow_error_response(result)
    return jsonify({"id": path.issue_id, "upvote_count": result.value["upvote_count"]})

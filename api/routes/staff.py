# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Staff endpoints: assigned work, status transitions and workload stats.
"""

from flask import current_app, g, jsonify
from flask_openapi3 import APIBlueprint, Tag
import logging

from domain.issues import build_issue_hal_response, build_issue_collection_hal_response
from middleware.auth import require_role
from middleware.error_handler import workflow_error_response
from models.enums import UserRole
from models.requests import IssuePath, ChangeStatusRequest

logger = logging.getLogger(__name__)

staff_tag = Tag(name="Staff", description="Assigned issue workflow")
staff_bp = APIBlueprint(
    'staff',
    __name__,
    url_prefix='/api/staff',
    abp_tags=[staff_tag]
)


@staff_bp.get('/issues')
@require_role(UserRole.STAFF)
def list_assigned_issues():
    """Issues assigned to the caller, High priority first."""
    issues = current_app.issue_service.list_assigned(g.user_context.email)
    return jsonify(build_issue_collection_hal_response(
        issues,
        g.user_context,
        current_app.config['BASE_URL'],
        collection_path="/api/staff/issues"
    ))


@staff_bp.patch('/issues/<issue_id>/status')
@require_role(UserRole.STAFF, UserRole.ADMIN)
def change_issue_status(path: IssuePath, body: ChangeStatusRequest):
    """Move an assigned issue to its next status."""
    result = current_app.issue_service.transition_status(path.issue_id, body.status, g.user_context)
    if not result.success:
        return workflow_error_response(result)
    return jsonify(build_issue_hal_response(result.issue, g.user_context, current_app.config['BASE_URL']))


@staff_bp.get('/stats')
@require_role(UserRole.STAFF)
def staff_stats():
    """Workload summary for the caller."""
    return jsonify(current_app.stats_service.staff_stats(g.user_context.email))

# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Admin endpoints: triage, moderation, staff management and platform stats.
"""

from flask import current_app, g, jsonify
from flask_openapi3 import APIBlueprint, Tag
import logging

from domain.issues import build_issue_hal_response, build_issue_collection_hal_response
from middleware.auth import require_role
from middleware.error_handler import workflow_error_response
from models.enums import UserRole
from models.requests import (
    IssuePath,
    EmailPath,
    AssignIssueRequest,
    CreateStaffRequest,
    UpdateProfileRequest
)

logger = logging.getLogger(__name__)

admin_tag = Tag(name="Admin", description="Issue triage, moderation and staff management")
admin_bp = APIBlueprint(
    'admin',
    __name__,
    url_prefix='/api/admin',
    abp_tags=[admin_tag]
)


def _render_issue(issue):
    return jsonify(build_issue_hal_response(issue, g.user_context, current_app.config['BASE_URL']))


# Issues

@admin_bp.get('/issues')
@require_role(UserRole.ADMIN)
def list_all_issues():
    """All issues, High priority first, newest first within a priority."""
    issues = current_app.issue_service.list_for_admin()
    return jsonify(build_issue_collection_hal_response(
        issues,
        g.user_context,
        current_app.config['BASE_URL'],
        collection_path="/api/admin/issues"
    ))


@admin_bp.patch('/issues/<issue_id>/assign')
@require_role(UserRole.ADMIN)
def assign_issue(path: IssuePath, body: AssignIssueRequest):
    """Assign an unassigned issue to a staff member."""
    result = current_app.issue_service.assign_issue(path.issue_id, body.staff_email, g.user_context)
    if not result.success:
        return workflow_error_response(result)
    return _render_issue(result.issue)


@admin_bp.patch('/issues/<issue_id>/reject')
@require_role(UserRole.ADMIN)
def reject_issue(path: IssuePath):
    """Reject a pending issue."""
    result = current_app.issue_service.reject_issue(path.issue_id, g.user_context)
    if not result.success:
        return workflow_error_response(result)
    return _render_issue(result.issue)


# Dashboard

@admin_bp.get('/stats')
@require_role(UserRole.ADMIN)
def admin_stats():
    return jsonify(current_app.stats_service.admin_stats())


@admin_bp.get('/payments')
@require_role(UserRole.ADMIN)
def list_payments():
    """Payment ledger, newest first."""
    payments = current_app.stats_service.payment_ledger()
    return jsonify({
        "total": len(payments),
        "payments": [payment.model_dump(mode="json") for payment in payments]
    })


# Citizens

@admin_bp.get('/users')
@require_role(UserRole.ADMIN)
def list_citizens():
    users = current_app.user_service.list_by_role(UserRole.CITIZEN)
    return jsonify({"total": len(users), "users": [user.to_public_dict() for user in users]})


def _set_blocked(email: str, blocked: bool):
    result = current_app.user_service.set_blocked(email, blocked)
    if not result.success:
        return workflow_error_response(result)
    logger.info(
        "Moderation action",
        extra={"admin": g.user_context.email, "target": email, "blocked": blocked}
    )
    return jsonify(result.value.to_public_dict())


@admin_bp.patch('/users/<email>/block')
@require_role(UserRole.ADMIN)
def block_user(path: EmailPath):
    """Block a user from filing issues."""
    return _set_blocked(path.email, True)


@admin_bp.patch('/users/<email>/unblock')
@require_role(UserRole.ADMIN)
def unblock_user(path: EmailPath):
    return _set_blocked(path.email, False)


# Staff

@admin_bp.post('/staff')
@require_role(UserRole.ADMIN)
def create_staff(body: CreateStaffRequest):
    """Create a staff account with an initial password."""
    password_hash = current_app.auth_service.hash_password(body.password)
    result = current_app.user_service.create_staff(
        body.email,
        body.name,
        password_hash,
        phone=body.phone,
        photo_url=body.photo_url
    )
    if not result.success:
        return workflow_error_response(result)
    return jsonify(result.value.to_public_dict()), 201


@admin_bp.get('/staff')
@require_role(UserRole.ADMIN)
def list_staff():
    staff = current_app.user_service.list_by_role(UserRole.STAFF)
    return jsonify({"total": len(staff), "staff": [member.to_public_dict() for member in staff]})


@admin_bp.patch('/staff/<email>')
@require_role(UserRole.ADMIN)
def update_staff(path: EmailPath, body: UpdateProfileRequest):
    result = current_app.user_service.update_staff(path.email, body.to_updates())
    if not result.success:
        return workflow_error_response(result)
    return jsonify(result.value.to_public_dict())


@admin_bp.delete('/staff/<email>')
@require_role(UserRole.ADMIN)
def delete_staff(path: EmailPath):
    """Remove a staff account. Its assigned issues keep the email."""
    result = current_app.user_service.delete_staff(path.email)
    if not result.success:
        return workflow_error_response(result)
    return jsonify({"deleted": True, "email": path.email})

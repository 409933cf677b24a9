# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
User endpoints: first-contact sync, profile, role and citizen dashboard.

Every route is scoped to the caller's own email; admins may read any user.
"""

from flask import current_app, g, jsonify
from flask_openapi3 import APIBlueprint, Tag
import logging

from domain.results import ErrorCode
from middleware.auth import require_auth
from middleware.error_handler import problem_response, workflow_error_response
from models.requests import EmailPath, UpsertUserRequest, UpdateProfileRequest

logger = logging.getLogger(__name__)

users_tag = Tag(name="Users", description="User records and citizen dashboard")
users_bp = APIBlueprint(
    'users',
    __name__,
    url_prefix='/api/users',
    abp_tags=[users_tag]
)


def _is_self(email: str) -> bool:
    return g.user_context.email == email


def _forbidden():
    return problem_response(ErrorCode.FORBIDDEN, "You can only access your own account")


@users_bp.post('')
@require_auth
def sync_user(body: UpsertUserRequest):
    """Create the caller's record on first contact, or refresh name and photo."""
    if not _is_self(body.email):
        return _forbidden()
    user = current_app.user_service.ensure_user(body.email, name=body.name, photo_url=body.photo_url)
    return jsonify(user.to_public_dict())


@users_bp.get('/<email>')
@require_auth
def get_user(path: EmailPath):
    if not (_is_self(path.email) or g.user_context.is_admin()):
        return _forbidden()
    user = current_app.user_service.get_user(path.email)
    if user is None:
        return problem_response(ErrorCode.NOT_FOUND, "User not found")
    return jsonify(user.to_public_dict())


@users_bp.patch('/<email>')
@require_auth
def update_profile(path: EmailPath, body: UpdateProfileRequest):
    """Update name, photo or phone on your own profile."""
    if not _is_self(path.email):
        return _forbidden()
    result = current_app.user_service.update_profile(path.email, body.to_updates())
    if not result.success:
        return workflow_error_response(result)
    return jsonify(result.value.to_public_dict())


@users_bp.get('/<email>/role')
@require_auth
def get_role(path: EmailPath):
    """Role lookup. Unknown users are provisioned as citizens."""
    if not (_is_self(path.email) or g.user_context.is_admin()):
        return _forbidden()
    role = current_app.user_service.get_role(path.email)
    return jsonify({"email": path.email, "role": role.value})


@users_bp.get('/<email>/stats')
@require_auth
def citizen_stats(path: EmailPath):
    """Issue counts per status and payments for your own account."""
    if not _is_self(path.email):
        return _forbidden()
    return jsonify(current_app.stats_service.citizen_stats(path.email))

# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Authentication endpoints for registration, login and token refresh.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain.results import ErrorCode
from middleware.error_handler import problem_response, workflow_error_response
from models.requests import LoginRequest, RegisterRequest, RefreshTokenRequest
from services.auth import TokenValidationError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

auth_tag = Tag(name="Authentication", description="User authentication and token management")
auth_bp = APIBlueprint(
    'auth',
    __name__,
    url_prefix='/api/auth',
    abp_tags=[auth_tag]
)


@auth_bp.post('/register')
def register(body: RegisterRequest):
    """Create a citizen account with a password and return tokens."""
    with tracer.start_as_current_span("auth.register", attributes={"auth.email": body.email}) as span:
        auth_service = current_app.auth_service
        result = current_app.user_service.register_citizen(
            body.email,
            body.name,
            auth_service.hash_password(body.password),
            phone=body.phone,
            photo_url=body.photo_url
        )
        if not result.success:
            span.set_status(Status(StatusCode.ERROR, result.error_code.value))
            return workflow_error_response(result)

        user = result.value
        return jsonify({
            "user": user.to_public_dict(),
            **auth_service.generate_tokens(user)
        }), 201


@auth_bp.post('/login')
def login(body: LoginRequest):
    """
    Authenticate with email and password and return JWT tokens.

    Unknown emails and wrong passwords get the same answer.
    """
    with tracer.start_as_current_span(
        "auth.login",
        attributes={"auth.email": body.email, "ip_address": request.remote_addr or ""}
    ) as span:
        user = current_app.user_service.get_user(body.email)
        if user is None or not current_app.auth_service.verify_password(body.password, user.password_hash):
            span.set_status(Status(StatusCode.ERROR, "Invalid credentials"))
            logger.warning(
                "Login attempt failed",
                extra={
                    "email": body.email,
                    "ip_address": request.remote_addr,
                    "user_found": user is not None
                }
            )
            return problem_response(ErrorCode.UNAUTHENTICATED, "Invalid email or password")

        tokens = current_app.auth_service.generate_tokens(user)
        logger.info("User logged in", extra={"email": user.email, "role": user.role})
        return jsonify({"user": user.to_public_dict(), **tokens})


@auth_bp.post('/refresh')
def refresh(body: RefreshTokenRequest):
    """Exchange a refresh token for a new access token."""
    try:
        tokens = current_app.auth_service.refresh_access_token(body.refresh_token)
    except TokenValidationError as e:
        return problem_response(ErrorCode.UNAUTHENTICATED, str(e))
    return jsonify(tokens)

# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and user context extraction.

The token proves who the caller is. What the caller may do comes from the
user record, which is provisioned as a default citizen on first contact.
"""

from functools import wraps
from flask import request, jsonify, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from models.entities import UserContext
from models.enums import UserRole
from services.auth import TokenValidationError
from middleware.error_handler import build_problem

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def _problem(problem_type: str, title: str, status: int, detail: str):
    return jsonify(build_problem(problem_type, title, status, detail)), status


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation and user context building for
    protected endpoints.
    """

    def __init__(self, auth_service, user_service):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
            user_service: User records, source of roles and blocked flags
        """
        self.auth_service = auth_service
        self.user_service = user_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None
        return None

    def build_user_context(self, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> UserContext:
        """
        Build user context from a validated token and the caller's user record.

        Args:
            token_payload: Decoded JWT payload
            request_info: Request metadata (IP, user agent)

        Returns:
            UserContext object for request processing
        """
        email = token_payload["sub"]
        user = self.user_service.ensure_user(email)

        return UserContext(
            email=user.email,
            role=user.role,
            name=user.name or token_payload.get("name"),
            token_payload=token_payload,
            ip_address=request_info.get("ip_address"),
            user_agent=request_info.get("user_agent")
        )

    def get_request_info(self) -> Dict[str, Any]:
        return {
            "ip_address": request.remote_addr,
            "user_agent": request.headers.get('User-Agent', '')
        }

    def authenticate(self) -> Optional[tuple]:
        """
        Validate the bearer token and store the caller in ``g.user_context``.

        Returns:
            None on success, otherwise a 401 problem response
        """
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            span.set_attribute("auth.operation", "validate_request")

            token = self.extract_token_from_request()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token", extra={"path": request.path})
                return _problem("authentication-required", "Unauthenticated", 401,
                                "Missing authorization token")

            try:
                token_payload = self.auth_service.validate_token(token, "access")
            except TokenValidationError as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {str(e)}", extra={"path": request.path})
                return _problem("invalid-token", "Unauthenticated", 401, str(e))

            user_context = self.build_user_context(token_payload, self.get_request_info())
            g.user_context = user_context

            span.set_attributes({
                "auth.result": "success",
                "user.email": user_context.email,
                "user.role": user_context.role
            })
            logger.debug(
                "Authentication successful",
                extra={"email": user_context.email, "role": user_context.role}
            )
            return None


def require_auth(f: Callable) -> Callable:
    """
    Decorator to require JWT authentication for Flask routes.

    The verified caller is available as ``g.user_context``.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        failure = current_app.auth_middleware.authenticate()
        if failure is not None:
            return failure
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: UserRole) -> Callable:
    """
    Decorator to require one of the given roles.

    Args:
        roles: Roles allowed to call the route

    Returns:
        Decorator function
    """
    allowed = {role.value for role in roles}

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        @require_auth
        def decorated_function(*args, **kwargs):
            user_context = g.user_context
            with tracer.start_as_current_span("auth.middleware.check_role") as span:
                span.set_attributes({
                    "auth.required_roles": sorted(allowed),
                    "user.email": user_context.email,
                    "user.role": user_context.role
                })

                if user_context.role not in allowed:
                    span.set_attribute("auth.role_result", "denied")
                    logger.warning(
                        "Authorization failed: role not allowed",
                        extra={
                            "email": user_context.email,
                            "role": user_context.role,
                            "required_roles": sorted(allowed)
                        }
                    )
                    return _problem("forbidden", "Forbidden", 403,
                                    f"Requires role: {', '.join(sorted(allowed))}")

                span.set_attribute("auth.role_result", "granted")
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def optional_auth(f: Callable) -> Callable:
    """Decorator for anonymous-friendly routes: sets ``g.user_context`` when a valid token is sent."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.user_context = None
        middleware = current_app.auth_middleware
        token = middleware.extract_token_from_request()
        if token:
            try:
                payload = middleware.auth_service.validate_token(token, "access")
            except TokenValidationError as e:
                logger.debug(f"Ignoring invalid token on public route: {str(e)}")
            else:
                g.user_context = middleware.build_user_context(payload, middleware.get_request_info())
        return f(*args, **kwargs)

    return decorated_function

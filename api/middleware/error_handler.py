# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with RFC 7807 problem responses.

Engine failures arrive as WorkflowResult values and are mapped here; HTTP
errors and exceptions that escape a route are caught by the registered
Flask handlers.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, List, Optional
from opentelemetry import trace
import logging

from domain.results import ErrorCode, WorkflowResult
from services.mongodb import PersistenceError
from services.payments import PaymentNotConfirmedError, PaymentProviderError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

PROBLEM_BASE_URL = "https://api.cityfix.org/problems"

ERROR_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.NOT_OWNER: 403,
    ErrorCode.NOT_ASSIGNEE: 403,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.BLOCKED: 403,
    ErrorCode.QUOTA_EXCEEDED: 403,
    ErrorCode.ALREADY_VOTED: 409,
    ErrorCode.ALREADY_ASSIGNED: 409,
    ErrorCode.INVALID_TRANSITION: 400,
    ErrorCode.NOT_EDITABLE: 400,
    ErrorCode.SELF_VOTE: 400,
    ErrorCode.VALIDATION_FAILED: 400,
    ErrorCode.PAYMENT_NOT_CONFIRMED: 402,
    ErrorCode.PERSISTENCE_FAILURE: 503
}

# Problem type slugs for plain HTTP errors
HTTP_PROBLEM_TYPES = {
    400: ("bad-request", "Bad Request"),
    401: ("authentication-required", "Authentication Required"),
    403: ("insufficient-permissions", "Insufficient Permissions"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    409: ("resource-conflict", "Resource Conflict"),
    422: ("validation-error", "Validation Error")
}


def _slug(code: ErrorCode) -> str:
    """NotAssignee -> not-assignee."""
    out = []
    for index, char in enumerate(code.value):
        if char.isupper() and index:
            out.append("-")
        out.append(char.lower())
    return "".join(out)


def build_problem(
    problem_type: str,
    title: str,
    status: int,
    detail: str,
    errors: Optional[List[str]] = None
) -> Dict[str, Any]:
    """RFC 7807 problem document."""
    problem = {
        "type": f"{PROBLEM_BASE_URL}/{problem_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.path
    }
    if errors:
        problem["errors"] = errors
    return problem


def problem_response(code: ErrorCode, detail: str, errors: Optional[List[str]] = None):
    """Flask response for an engine error code."""
    status = ERROR_STATUS[code]
    return jsonify(build_problem(_slug(code), code.value, status, detail, errors)), status


def workflow_error_response(result: WorkflowResult):
    """Flask response for a failed WorkflowResult."""
    code = ErrorCode(result.error_code)
    logger.info(
        f"Workflow rejected: {code.value}",
        extra={
            "error_code": code.value,
            "detail": result.error_message,
            "path": request.path,
            "method": request.method
        }
    )
    return problem_response(code, result.error_message, result.validation_errors)


class ErrorHandlerMiddleware:
    """Centralized error handling with problem responses."""

    def __init__(self, app: Flask):
        self.app = app
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            if error.code >= 500:
                return self.handle_server_error(error.code, "Server Error", error.description)
            return self.handle_client_error(error)

        @self.app.errorhandler(PersistenceError)
        def handle_persistence_error(error: PersistenceError):
            return self.handle_server_error(503, "Ledger Store Unavailable", str(error), error)

        @self.app.errorhandler(PaymentProviderError)
        def handle_payment_provider_error(error: PaymentProviderError):
            return self.handle_server_error(502, "Payment Provider Error", str(error), error)

        @self.app.errorhandler(PaymentNotConfirmedError)
        def handle_payment_not_confirmed(error: PaymentNotConfirmedError):
            logger.warning(
                "Payment confirmation refused",
                extra={"detail": str(error), "path": request.path}
            )
            return problem_response(ErrorCode.PAYMENT_NOT_CONFIRMED, str(error))

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error: Exception):
            return self.handle_unexpected_error(error)

    def handle_client_error(self, error: HTTPException):
        """Handle client errors (4xx status codes)."""
        problem_type, title = HTTP_PROBLEM_TYPES.get(error.code, ("client-error", error.name))
        detail = str(error.description) if error.description else title

        logger.warning(
            f"Client error: {title}",
            extra={
                "error_type": problem_type,
                "status_code": error.code,
                "detail": detail,
                "path": request.path,
                "method": request.method,
                "ip_address": request.remote_addr
            }
        )
        return jsonify(build_problem(problem_type, title, error.code, detail)), error.code

    def handle_server_error(self, status: int, title: str, detail: str, error: Exception = None):
        """Handle server errors (5xx status codes)."""
        with tracer.start_as_current_span("error_handler.server_error") as span:
            span.set_attributes({
                "error.status": status,
                "http.method": request.method,
                "http.path": request.path
            })
            if error is not None:
                span.record_exception(error)

            logger.error(
                f"Server error: {title}",
                extra={
                    "status_code": status,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                },
                exc_info=error is not None
            )

            if self.app.config.get('ENVIRONMENT') == 'production':
                detail = "An internal server error occurred"

            problem_type = "persistence-failure" if status == 503 else "server-error"
            return jsonify(build_problem(problem_type, title, status, detail)), status

    def handle_unexpected_error(self, error: Exception):
        """Handle unexpected exceptions not caught by specific handlers."""
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            return jsonify(build_problem("internal-server-error", "Internal Server Error", 500, detail)), 500

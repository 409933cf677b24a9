# SPDX-License-Identifier: Apache-2.0

"""
CityFix API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support, wires the
issue lifecycle engine to its ledger store and collaborators, and registers
middleware and routes.

Run locally with ``python app.py`` or serve ``app:create_app()`` with a WSGI
server.
"""

import os
import logging
from typing import Any, Dict, Optional
from flask import jsonify, make_response, request
from flask_openapi3 import OpenAPI, Info, Tag
from pydantic import ValidationError

from observability.config import setup_observability
from observability.middleware import add_observability_middleware
from middleware.auth import AuthMiddleware
from middleware.cors import configure_cors
from middleware.error_handler import ErrorHandlerMiddleware, PROBLEM_BASE_URL
from services.mongodb import MongoDBService
from services.auth import AuthService
from services.payments import PaymentProcessor
from services.timeline import TimelineRecorder
from services.users import UserService
from services.issues import IssueService
from services.votes import VoteLedger
from services.escalation import EscalationHandler
from services.stats import StatsService

logger = logging.getLogger(__name__)

info = Info(
    title="CityFix API",
    version="1.0.0",
    description="Civic issue reporting with staff workflow, upvotes and paid escalation"
)


def load_config() -> Dict[str, Any]:
    """Environment configuration with development defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/cityfix_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'cityfix_dev'),
        'STRIPE_SECRET_KEY': os.getenv('STRIPE_SECRET_KEY', ''),
        'FRONTEND_URL': os.getenv('FRONTEND_URL', 'http://localhost:5173'),
        'BOOST_PRICE_CENTS': int(os.getenv('BOOST_PRICE_CENTS', '10000')),
        'SUBSCRIPTION_PRICE_CENTS': int(os.getenv('SUBSCRIPTION_PRICE_CENTS', '100000')),
        'PAYMENT_CURRENCY': os.getenv('PAYMENT_CURRENCY', 'usd'),
        'FREE_ISSUE_LIMIT': int(os.getenv('FREE_ISSUE_LIMIT', '3')),
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true',
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000').rstrip('/')
    }


def validation_error_response(e: ValidationError):
    """Answer request validation failures with a ValidationFailed problem."""
    errors = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in e.errors()
    ]
    logger.info("Request validation failed", extra={"path": request.path, "errors": errors})
    return make_response(jsonify({
        "type": f"{PROBLEM_BASE_URL}/validation-failed",
        "title": "ValidationFailed",
        "status": 400,
        "detail": "Request validation failed",
        "instance": request.path,
        "errors": errors
    }), 400)


def create_app(
    mongodb_service: Optional[MongoDBService] = None,
    auth_service: Optional[AuthService] = None,
    payment_processor: Optional[PaymentProcessor] = None,
    config: Optional[Dict[str, Any]] = None
) -> OpenAPI:
    """
    Build the Flask application.

    Args:
        mongodb_service: Ledger store; built from MONGODB_URI when omitted
        auth_service: Identity verifier; built from JWT_* keys when omitted
        payment_processor: Stripe checkout; built from STRIPE_* settings when omitted
        config: Overrides applied on top of the environment configuration

    Returns:
        Configured OpenAPI (Flask) application
    """
    settings = load_config()
    settings.update(config or {})

    tracing = settings['OTEL_ENABLED'] and setup_observability()

    app = OpenAPI(
        __name__,
        info=info,
        validation_error_status=400,
        validation_error_callback=validation_error_response
    )
    app.config.update(settings)

    add_observability_middleware(app, instrument=bool(tracing))

    # Ledger store and collaborators
    mongodb_service = mongodb_service or MongoDBService(
        settings['MONGODB_URI'],
        settings['MONGODB_DATABASE']
    )
    auth_service = auth_service or AuthService()
    payment_processor = payment_processor or PaymentProcessor(
        secret_key=settings['STRIPE_SECRET_KEY'],
        frontend_url=settings['FRONTEND_URL'],
        currency=settings['PAYMENT_CURRENCY'],
        boost_price=settings['BOOST_PRICE_CENTS'],
        subscription_price=settings['SUBSCRIPTION_PRICE_CENTS']
    )

    # Engine services
    timeline_recorder = TimelineRecorder(mongodb_service)
    user_service = UserService(mongodb_service)
    issue_service = IssueService(
        mongodb_service,
        timeline_recorder,
        user_service,
        free_issue_limit=settings['FREE_ISSUE_LIMIT']
    )
    vote_ledger = VoteLedger(mongodb_service)
    escalation_handler = EscalationHandler(
        mongodb_service,
        timeline_recorder,
        currency=settings['PAYMENT_CURRENCY']
    )
    stats_service = StatsService(mongodb_service)

    # Middleware
    ErrorHandlerMiddleware(app)
    configure_cors(app)

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.auth_service = auth_service
    app.payment_processor = payment_processor
    app.timeline_recorder = timeline_recorder
    app.user_service = user_service
    app.issue_service = issue_service
    app.vote_ledger = vote_ledger
    app.escalation_handler = escalation_handler
    app.stats_service = stats_service
    app.auth_middleware = AuthMiddleware(auth_service, user_service)

    # Register routes
    from routes.auth import auth_bp
    from routes.issues import issues_bp
    from routes.staff import staff_bp
    from routes.admin import admin_bp
    from routes.users import users_bp
    from routes.payments import payments_bp

    app.register_api(auth_bp)
    app.register_api(issues_bp)
    app.register_api(staff_bp)
    app.register_api(admin_bp)
    app.register_api(users_bp)
    app.register_api(payments_bp)

    health_tag = Tag(name="Health", description="System health and status")

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Report ledger store reachability."""
        store = mongodb_service.health_check()
        healthy = store['status'] == 'healthy'
        body = {
            "status": "healthy" if healthy else "unhealthy",
            "service": "cityfix-api",
            "version": info.version,
            "environment": app.config['ENVIRONMENT'],
            "dependencies": {"mongodb": store},
            "_links": {"self": {"href": f"{app.config['BASE_URL']}/api/healthz"}}
        }
        return jsonify(body), 200 if healthy else 503

    logger.info(
        "CityFix API initialized",
        extra={"environment": app.config['ENVIRONMENT'], "tracing": bool(tracing)}
    )
    return app


if __name__ == '__main__':
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', '5000')),
        debug=application.config['DEBUG']
    )

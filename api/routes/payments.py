# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Payment endpoints: hosted checkout initiation and the confirmation path.

Initiation never changes engine state. Confirmation retrieves the provider
session and, when paid, hands it to the escalation handler. A session that
was already recorded, or is claimed by a concurrent confirmation, is
acknowledged without being applied again.
"""

from flask import current_app, g, jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.results import ErrorCode
from middleware.auth import require_auth
from middleware.error_handler import problem_response, workflow_error_response
from models.enums import PaymentKind
from models.requests import BoostCheckoutRequest, ConfirmCheckoutRequest
from services.mongodb import PersistenceError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

payments_tag = Tag(name="Payments", description="Issue boosts and premium subscriptions")
payments_bp = APIBlueprint(
    'payments',
    __name__,
    url_prefix='/api/payments',
    abp_tags=[payments_tag]
)


def _payment_response(record, already_applied: bool):
    return jsonify({
        "success": True,
        "already_applied": already_applied,
        "payment": record.model_dump(mode="json")
    })


@payments_bp.post('/boost')
@require_auth
def start_boost_checkout(body: BoostCheckoutRequest):
    """Start a hosted checkout to boost an issue to High priority."""
    issue = current_app.issue_service.get_issue(body.issue_id)
    if issue is None:
        return problem_response(ErrorCode.NOT_FOUND, "Issue not found")

    url = current_app.payment_processor.create_boost_checkout(issue.id, g.user_context.email)
    return jsonify({"url": url})


@payments_bp.post('/subscribe')
@require_auth
def start_subscription_checkout():
    """Start a hosted checkout for the premium subscription."""
    user = current_app.user_service.ensure_user(g.user_context.email)
    if user.is_premium:
        return problem_response(ErrorCode.FORBIDDEN, "Already premium user")

    url = current_app.payment_processor.create_subscription_checkout(user.email)
    return jsonify({"url": url})


def _apply_once(session_id: str, apply):
    """Apply a confirmed session unless another confirmation already claimed it."""
    handler = current_app.escalation_handler
    if not handler.claim_session(session_id):
        existing = handler.recorded_payment(session_id)
        if existing is not None:
            return _payment_response(existing, already_applied=True)
        # Claimed by a confirmation that is still applying it
        return jsonify({"success": True, "already_applied": True, "payment": None})

    try:
        result = apply()
    except PersistenceError:
        handler.release_session(session_id)
        raise

    if not result.success:
        handler.release_session(session_id)
        return workflow_error_response(result)
    return _payment_response(result.value, already_applied=False)


@payments_bp.post('/boost/confirm')
@require_auth
def confirm_boost(body: ConfirmCheckoutRequest):
    """Confirm a paid boost checkout and raise the issue's priority."""
    with tracer.start_as_current_span("payments.confirm_boost") as span:
        span.set_attribute("payment.session_id", body.session_id)

        existing = current_app.escalation_handler.recorded_payment(body.session_id)
        if existing is not None:
            return _payment_response(existing, already_applied=True)

        confirmation = current_app.payment_processor.confirm_session(body.session_id, PaymentKind.BOOST)
        return _apply_once(confirmation.session_id, lambda: current_app.escalation_handler.apply_boost(
            confirmation.issue_id,
            confirmation.payer_email,
            confirmation.amount,
            session_id=confirmation.session_id
        ))


@payments_bp.post('/subscribe/confirm')
@require_auth
def confirm_subscription(body: ConfirmCheckoutRequest):
    """Confirm a paid subscription checkout and mark the payer premium."""
    with tracer.start_as_current_span("payments.confirm_subscription") as span:
        span.set_attribute("payment.session_id", body.session_id)

        existing = current_app.escalation_handler.recorded_payment(body.session_id)
        if existing is not None:
            return _payment_response(existing, already_applied=True)

        confirmation = current_app.payment_processor.confirm_session(body.session_id, PaymentKind.SUBSCRIPTION)
        return _apply_once(confirmation.session_id, lambda: current_app.escalation_handler.apply_subscription(
            confirmation.payer_email,
            confirmation.amount,
            session_id=confirmation.session_id
        ))

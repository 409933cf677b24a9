# SPDX-License-Identifier: Apache-2.0

"""
Payment processor backed by Stripe hosted checkout.

Initiation creates a checkout session carrying the boost or subscription
metadata. Confirmation retrieves the session and reports whether it was
paid; it never changes issue or user state itself.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional
import stripe
from opentelemetry import trace

from models.enums import PaymentKind

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class PaymentNotConfirmedError(Exception):
    """Raised when a checkout session is not paid or does not match the expected purchase."""
    pass


class PaymentProviderError(Exception):
    """Raised when the payment provider cannot be reached or rejects a request."""
    pass


@dataclass(frozen=True)
class PaymentConfirmation:
    """A completed checkout as reported by the provider."""
    session_id: str
    kind: PaymentKind
    payer_email: str
    amount: int
    issue_id: Optional[str] = None


class PaymentProcessor:
    """Stripe checkout integration."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        frontend_url: Optional[str] = None,
        currency: Optional[str] = None,
        boost_price: Optional[int] = None,
        subscription_price: Optional[int] = None
    ):
        self.secret_key = secret_key or os.getenv('STRIPE_SECRET_KEY', '')
        self.frontend_url = (frontend_url or os.getenv('FRONTEND_URL', 'http://localhost:5173')).rstrip('/')
        self.currency = currency or os.getenv('PAYMENT_CURRENCY', 'usd')
        # Prices in minor units
        self.boost_price = boost_price or int(os.getenv('BOOST_PRICE_CENTS', '10000'))
        self.subscription_price = subscription_price or int(os.getenv('SUBSCRIPTION_PRICE_CENTS', '100000'))

        if not self.secret_key:
            logger.warning("No STRIPE_SECRET_KEY configured, checkout calls will fail")

    def _create_session(self, product_name: str, amount: int, customer_email: str,
                        metadata: dict, success_path: str, cancel_path: str) -> str:
        try:
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                mode="payment",
                payment_method_types=["card"],
                customer_email=customer_email,
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "unit_amount": amount,
                        "product_data": {"name": product_name}
                    },
                    "quantity": 1
                }],
                metadata=metadata,
                success_url=f"{self.frontend_url}{success_path}?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.frontend_url}{cancel_path}"
            )
        except stripe.StripeError as e:
            logger.error(f"Checkout session creation failed: {e}", extra={"metadata": metadata})
            raise PaymentProviderError("Payment provider unavailable") from e

        logger.info("Checkout session created", extra={"session_id": session.id, "metadata": metadata})
        return session.url

    def create_boost_checkout(self, issue_id: str, payer_email: str) -> str:
        """Start a hosted checkout for boosting an issue. Returns the checkout URL."""
        with tracer.start_as_current_span("payments.boost_checkout") as span:
            span.set_attributes({"issue.id": issue_id, "payment.payer": payer_email})
            return self._create_session(
                f"Boost Issue {issue_id}",
                self.boost_price,
                payer_email,
                {"kind": PaymentKind.BOOST.value, "issueId": issue_id, "payerEmail": payer_email},
                "/boost-success",
                "/issues"
            )

    def create_subscription_checkout(self, email: str) -> str:
        """Start a hosted checkout for the premium subscription. Returns the checkout URL."""
        with tracer.start_as_current_span("payments.subscription_checkout") as span:
            span.set_attribute("payment.payer", email)
            return self._create_session(
                "CityFix Premium Subscription",
                self.subscription_price,
                email,
                {"kind": PaymentKind.SUBSCRIPTION.value, "payerEmail": email},
                "/subscribe-success",
                "/dashboard/citizen-profile"
            )

    def confirm_session(self, session_id: str, expected_kind: PaymentKind) -> PaymentConfirmation:
        """
        Retrieve a checkout session and confirm it was paid.

        Args:
            session_id: Checkout session identifier
            expected_kind: Purchase the caller is confirming

        Returns:
            PaymentConfirmation for a paid session

        Raises:
            PaymentNotConfirmedError: session unpaid or for a different purchase
            PaymentProviderError: provider unreachable
        """
        with tracer.start_as_current_span("payments.confirm") as span:
            span.set_attributes({"payment.session_id": session_id, "payment.kind": expected_kind.value})
            try:
                session = stripe.checkout.Session.retrieve(session_id, api_key=self.secret_key)
            except stripe.InvalidRequestError as e:
                raise PaymentNotConfirmedError(f"Unknown checkout session: {session_id}") from e
            except stripe.StripeError as e:
                logger.error(f"Checkout session retrieval failed: {e}", extra={"session_id": session_id})
                raise PaymentProviderError("Payment provider unavailable") from e

            if session.payment_status != "paid":
                raise PaymentNotConfirmedError("Payment not completed")

            metadata = dict(session.metadata or {})
            if metadata.get("kind") != expected_kind.value:
                raise PaymentNotConfirmedError("Checkout session is for a different purchase")

            payer_email = metadata.get("payerEmail")
            issue_id = metadata.get("issueId")
            if not payer_email or (expected_kind == PaymentKind.BOOST and not issue_id):
                raise PaymentNotConfirmedError("Checkout session metadata incomplete")

            return PaymentConfirmation(
                session_id=session_id,
                kind=expected_kind,
                payer_email=payer_email,
                amount=int(session.amount_total or 0),
                issue_id=issue_id
            )

# backend/baybook/services/stripe_service.py
"""
Stripe adapter for the booking engine.

Only refunds are issued from here; charges are created by the checkout
flow outside this package. The adapter is a blocking call with no retry of
its own beyond Stripe's network-level retry.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Protocol

import stripe

from ..core.config import settings
from ..core.exceptions import RefundFailedException, ServiceException

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def create_refund(
        self,
        payment_intent_id: str,
        *,
        amount_cents: Optional[int] = None,
        reason: str = "requested_by_customer",
        metadata: Optional[Mapping[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> str:
        """Refund a charge and return the gateway refund id."""
        ...


class StripeService:
    """Payment gateway backed by the Stripe API."""

    def __init__(self, api_key: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self.stripe_configured = False

        key = api_key
        if key is None and settings.stripe_secret_key is not None:
            key = settings.stripe_secret_key.get_secret_value()

        if key:
            stripe.api_key = key
            stripe.max_network_retries = 1
            stripe.default_http_client = stripe.RequestsClient(
                timeout=settings.stripe_timeout_seconds
            )
            self.stripe_configured = True
            self.logger.info("Stripe service configured successfully")
        else:
            self.logger.warning("Stripe secret key not configured - refunds are unavailable")

    def _check_stripe_configured(self) -> None:
        """Check if Stripe is properly configured before making API calls."""
        if not self.stripe_configured:
            raise ServiceException(
                "Stripe service not configured. "
                "Please check STRIPE_SECRET_KEY environment variable."
            )

    def create_refund(
        self,
        payment_intent_id: str,
        *,
        amount_cents: Optional[int] = None,
        reason: str = "requested_by_customer",
        metadata: Optional[Mapping[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> str:
        """
        Refund a payment intent in full or in part.

        Raises:
            ServiceException: Stripe is not configured
            RefundFailedException: Stripe rejected or could not process the refund
        """
        self._check_stripe_configured()

        params: Dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "reason": reason,
            "metadata": dict(metadata or {}),
        }
        if amount_cents is not None:
            params["amount"] = int(amount_cents)
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            refund = stripe.Refund.create(**params)
        except stripe.StripeError as exc:
            self.logger.error(
                "Stripe error refunding payment intent %s: %s", payment_intent_id, str(exc)
            )
            raise RefundFailedException(payment_intent_id, str(exc)) from exc

        refund_id = str(getattr(refund, "id", "") or "")
        self.logger.info(
            "Refund %s created for payment intent %s", refund_id, payment_intent_id
        )
        return refund_id

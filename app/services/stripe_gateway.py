"""Stripe API integration."""

import json
import logging
from typing import Any

import stripe

from app.config import settings
from app.services.errors import StripeApiError, StripeNotConfiguredError

logger = logging.getLogger(__name__)


class InvalidWebhookPayload(ValueError):
    """Raised when a webhook body is unsigned, tampered with or not JSON."""


class StripeGateway:
    """Thin wrapper around the Stripe SDK.

    Objects are returned as plain dicts so handlers treat webhook payloads and
    API lookups the same way.
    """

    def is_configured(self) -> bool:
        return bool(settings.stripe_secret_key)

    def is_webhook_configured(self) -> bool:
        return bool(settings.stripe_webhook_secret)

    def _ensure_key(self) -> None:
        if not self.is_configured():
            raise StripeNotConfiguredError("Stripe is not configured")
        stripe.api_key = settings.stripe_secret_key

    # ── Webhooks ─────────────────────────────────────────

    def verify_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Check the Stripe-Signature header and return the parsed event."""
        if not self.is_webhook_configured():
            raise StripeNotConfiguredError("Stripe webhook secret is not configured")
        if not signature:
            raise InvalidWebhookPayload("Missing Stripe-Signature header")
        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidWebhookPayload("Body is not valid UTF-8") from exc
        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                settings.stripe_webhook_secret,
                settings.stripe_webhook_tolerance,
            )
        except stripe.SignatureVerificationError as exc:
            raise InvalidWebhookPayload("Invalid signature") from exc
        try:
            event = json.loads(body)
        except json.JSONDecodeError as exc:
            raise InvalidWebhookPayload("Invalid JSON") from exc
        if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
            raise InvalidWebhookPayload("Not a Stripe event")
        return event

    # ── Lookups ──────────────────────────────────────────

    def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        self._ensure_key()
        try:
            subscription = stripe.Subscription.retrieve(subscription_id)
        except stripe.StripeError as exc:
            logger.error("Stripe retrieve_subscription failed: %s", exc)
            raise StripeApiError(f"Could not retrieve subscription {subscription_id}") from exc
        return subscription.to_dict()

    def retrieve_customer(self, customer_id: str) -> dict[str, Any]:
        self._ensure_key()
        try:
            customer = stripe.Customer.retrieve(customer_id)
        except stripe.StripeError as exc:
            logger.error("Stripe retrieve_customer failed: %s", exc)
            raise StripeApiError(f"Could not retrieve customer {customer_id}") from exc
        return customer.to_dict()

    # ── Checkout ─────────────────────────────────────────

    def create_customer(self, email: str, user_id: str) -> dict[str, Any]:
        self._ensure_key()
        try:
            customer = stripe.Customer.create(email=email, metadata={"user_id": user_id})
        except stripe.StripeError as exc:
            logger.error("Stripe create_customer failed: %s", exc)
            raise StripeApiError("Could not create Stripe customer") from exc
        logger.info("Created Stripe customer %s for user %s", customer.id, user_id)
        return customer.to_dict()

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        user_id: str,
        line_items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> dict[str, Any]:
        """Subscription checkout; the user id rides on the session and the subscription."""
        self._ensure_key()
        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                client_reference_id=user_id,
                payment_method_types=["card"],
                line_items=line_items,
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                subscription_data={"metadata": metadata},
                allow_promotion_codes=True,
                billing_address_collection="required",
                customer_update={"address": "auto", "name": "auto"},
            )
        except stripe.StripeError as exc:
            logger.error("Stripe create_checkout_session failed: %s", exc)
            raise StripeApiError("Could not create checkout session") from exc
        return session.to_dict()

    # ── Payment methods ──────────────────────────────────

    def set_default_payment_method(
        self, customer_id: str, payment_method_id: str
    ) -> None:
        self._ensure_key()
        try:
            stripe.Customer.modify(
                customer_id,
                invoice_settings={"default_payment_method": payment_method_id},
            )
        except stripe.StripeError as exc:
            logger.error("Stripe set_default_payment_method failed: %s", exc)
            raise StripeApiError("Could not update default payment method") from exc
        logger.info(
            "Set default payment method %s for customer %s",
            payment_method_id,
            customer_id,
        )

    def detach_payment_method(self, payment_method_id: str) -> None:
        self._ensure_key()
        try:
            stripe.PaymentMethod.detach(payment_method_id)
        except stripe.StripeError as exc:
            logger.error("Stripe detach_payment_method failed: %s", exc)
            raise StripeApiError("Could not detach payment method") from exc
        logger.info("Detached payment method %s", payment_method_id)


stripe_gateway = StripeGateway()

"""Apply Stripe object state to the relational store.

Every method here mutates the session without committing. The caller commits
once per event, so the mirror rows, the user summary and the
``needs_document_sync`` flag always land together. The Firestore document is
rebuilt from the committed user row afterwards (see ``app.services.sync``).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from app.models.billing import (
    StripeCheckoutSession,
    StripeCustomer,
    StripeInvoice,
    StripePaymentMethod,
    StripeSubscription,
)
from app.models.demo import Demo
from app.models.user import SubscriptionStatus, User
from app.services.common import as_utc, from_timestamp
from app.services.identity import IdentityResolver, customer_id_of
from app.services.plans import resolve_plan_for_db
from app.services.stripe_gateway import StripeGateway, stripe_gateway

logger = logging.getLogger(__name__)

FEATURED_DEMO_DAYS = 30

_STATUS_MAP = {
    "trialing": SubscriptionStatus.trial,
    "active": SubscriptionStatus.active,
    "past_due": SubscriptionStatus.past_due,
    "unpaid": SubscriptionStatus.past_due,
}


def user_status_for(stripe_status: str | None) -> SubscriptionStatus:
    """Stripe subscription status to the status users see.

    Anything that does not grant access (canceled, incomplete, paused, ...)
    is ``inactive``.
    """
    return _STATUS_MAP.get(stripe_status or "", SubscriptionStatus.inactive)


def _first_item(subscription: dict[str, Any]) -> dict[str, Any]:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def subscription_price_id(subscription: dict[str, Any]) -> str | None:
    item = _first_item(subscription)
    price = item.get("price") or (subscription.get("plan") or {})
    if isinstance(price, str):
        return price
    return price.get("id")


def subscription_period(subscription: dict[str, Any]) -> tuple[datetime | None, datetime | None]:
    # Newer API versions report the period on the subscription item.
    item = _first_item(subscription)
    start = subscription.get("current_period_start") or item.get("current_period_start")
    end = subscription.get("current_period_end") or item.get("current_period_end")
    return from_timestamp(start), from_timestamp(end)


def invoice_subscription_id(invoice: dict[str, Any]) -> str | None:
    subscription = invoice.get("subscription")
    if subscription is None:
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        subscription = details.get("subscription")
    if isinstance(subscription, dict):
        return subscription.get("id")
    return subscription


def invoice_period(invoice: dict[str, Any]) -> tuple[datetime | None, datetime | None]:
    # The invoice-level period covers the previous cycle for subscription
    # invoices; the line item carries the period being paid for.
    lines = (invoice.get("lines") or {}).get("data") or []
    for line in lines:
        period = line.get("period") or {}
        if period.get("start"):
            return from_timestamp(period["start"]), from_timestamp(period.get("end"))
    return from_timestamp(invoice.get("period_start")), from_timestamp(invoice.get("period_end"))


class Projector:
    def __init__(self, db: Session, gateway: StripeGateway = stripe_gateway) -> None:
        self.db = db
        self.gateway = gateway
        self.identity = IdentityResolver(db, gateway)

    # ── Customers ────────────────────────────────────────

    def apply_customer(self, customer: dict[str, Any]) -> User:
        user = self.identity.resolve(customer)
        mapping = self.db.get(StripeCustomer, customer["id"])
        if customer.get("email"):
            mapping.email = customer["email"].lower()
        default_pm = (customer.get("invoice_settings") or {}).get("default_payment_method")
        if isinstance(default_pm, dict):
            default_pm = default_pm.get("id")
        if default_pm and default_pm != mapping.default_payment_method:
            self.set_default_flag(mapping, default_pm)
        return user

    # ── Subscriptions ────────────────────────────────────

    def apply_subscription(
        self, subscription: dict[str, Any], event_created: datetime | None = None
    ) -> User:
        user = self.identity.resolve(subscription)
        row = self.db.get(StripeSubscription, subscription["id"])
        if self._is_stale(row, event_created):
            logger.info(
                "Skipping stale update for subscription %s", subscription["id"],
                extra={"user_id": user.id},
            )
            return user

        stripe_status = subscription.get("status") or "incomplete"
        status = user_status_for(stripe_status)
        price_id = subscription_price_id(subscription)
        plan = resolve_plan_for_db(self.db, price_id) if status is not SubscriptionStatus.inactive else None
        period_start, period_end = subscription_period(subscription)

        if row is None:
            row = StripeSubscription(id=subscription["id"], user_id=user.id)
            self.db.add(row)
        row.user_id = user.id
        row.customer_id = customer_id_of(subscription)
        row.status = stripe_status
        row.price_id = price_id
        if plan is not None:
            row.plan = plan.name
        row.current_period_start = period_start
        row.current_period_end = period_end
        row.cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
        row.canceled_at = from_timestamp(subscription.get("canceled_at"))
        row.ended_at = from_timestamp(subscription.get("ended_at"))
        row.trial_end = from_timestamp(subscription.get("trial_end"))
        row.last_event_at = event_created or datetime.now(UTC)

        if status is SubscriptionStatus.inactive and user.stripe_subscription_id != row.id:
            # An old subscription ending must not revoke the current one.
            logger.info("Subscription %s is not current for user %s", row.id, user.id)
            return user

        user.stripe_subscription_id = row.id
        user.stripe_subscription_status = stripe_status
        user.stripe_current_period_end = period_end
        user.subscription_status = status
        user.trial_ends_at = row.trial_end
        if plan is None:
            user.subscription_plan = None
            user.events_quota = 0
        else:
            user.subscription_plan = plan.name
            user.events_quota = plan.events_quota
            self._reset_usage(user, period_start)
        user.mark_for_sync()
        logger.info(
            "Subscription %s is %s (%s) for user %s",
            row.id,
            stripe_status,
            user.subscription_plan,
            user.id,
        )
        return user

    def apply_subscription_deleted(
        self, subscription: dict[str, Any], event_created: datetime | None = None
    ) -> User:
        user = self.identity.resolve(subscription)
        row = self.db.get(StripeSubscription, subscription["id"])
        if row is None:
            row = StripeSubscription(id=subscription["id"], user_id=user.id)
            self.db.add(row)
        row.customer_id = customer_id_of(subscription)
        row.status = "canceled"
        row.price_id = subscription_price_id(subscription) or row.price_id
        row.canceled_at = from_timestamp(subscription.get("canceled_at")) or row.canceled_at
        row.ended_at = from_timestamp(subscription.get("ended_at")) or datetime.now(UTC)
        row.last_event_at = event_created or datetime.now(UTC)

        if not self._is_current(user, row.id):
            logger.info("Deleted subscription %s was not current for user %s", row.id, user.id)
            return user

        user.subscription_status = SubscriptionStatus.inactive
        user.subscription_plan = None
        user.events_quota = 0
        user.stripe_subscription_id = None
        user.stripe_subscription_status = "canceled"
        user.mark_for_sync()
        logger.info("Subscription %s canceled for user %s", row.id, user.id)
        return user

    # ── Invoices ─────────────────────────────────────────

    def apply_invoice_paid(self, invoice: dict[str, Any]) -> User:
        user = self.identity.resolve(invoice)
        row = self._upsert_invoice(invoice, user)
        if not row.subscription_id or not self._invoice_applies(user, row.subscription_id):
            return user

        changed = self._reset_usage(user, row.period_start)
        if user.subscription_status is SubscriptionStatus.past_due:
            user.subscription_status = SubscriptionStatus.active
            user.stripe_subscription_status = "active"
            changed = True
        if row.period_end and row.period_end != as_utc(user.stripe_current_period_end):
            user.stripe_current_period_end = row.period_end
            changed = True
        if changed:
            user.mark_for_sync()
        return user

    def apply_invoice_failed(self, invoice: dict[str, Any]) -> User:
        user = self.identity.resolve(invoice)
        row = self._upsert_invoice(invoice, user)
        if not row.subscription_id or not self._invoice_applies(user, row.subscription_id):
            return user
        if user.subscription_status is not SubscriptionStatus.past_due:
            user.subscription_status = SubscriptionStatus.past_due
            user.stripe_subscription_status = "past_due"
            user.mark_for_sync()
            logger.info("User %s is past due (invoice %s)", user.id, row.id)
        return user

    def _upsert_invoice(self, invoice: dict[str, Any], user: User) -> StripeInvoice:
        row = self.db.get(StripeInvoice, invoice["id"])
        if row is None:
            row = StripeInvoice(id=invoice["id"], user_id=user.id)
            self.db.add(row)
        period_start, period_end = invoice_period(invoice)
        row.user_id = user.id
        row.customer_id = customer_id_of(invoice)
        row.subscription_id = invoice_subscription_id(invoice)
        row.status = invoice.get("status")
        row.amount_due = invoice.get("amount_due") or 0
        row.amount_paid = invoice.get("amount_paid") or 0
        row.currency = invoice.get("currency")
        row.hosted_invoice_url = invoice.get("hosted_invoice_url")
        row.period_start = period_start
        row.period_end = period_end
        row.attempt_count = invoice.get("attempt_count") or 0
        return row

    # ── Checkout ─────────────────────────────────────────

    def apply_checkout_completed(
        self, session: dict[str, Any], event_created: datetime | None = None
    ) -> User:
        user = self.identity.resolve(session, include_client_reference=True)
        # Later lookups in this event must see the customer mapping.
        self.db.flush()
        subscription_id = session.get("subscription")
        if isinstance(subscription_id, dict):
            subscription_id = subscription_id.get("id")

        row = self.db.get(StripeCheckoutSession, session["id"])
        if row is None:
            row = StripeCheckoutSession(id=session["id"], user_id=user.id)
            self.db.add(row)
        row.user_id = user.id
        row.customer_id = customer_id_of(session)
        row.subscription_id = subscription_id
        row.mode = session.get("mode")
        row.status = session.get("status")
        row.payment_status = session.get("payment_status")
        row.metadata_ = session.get("metadata") or None

        self._activate_featured_demo(session.get("metadata") or {})

        if subscription_id:
            subscription = self.gateway.retrieve_subscription(subscription_id)
            self.apply_subscription(subscription, event_created)
        return user

    def _activate_featured_demo(self, metadata: dict[str, Any]) -> None:
        demo_id = metadata.get("demoId") or metadata.get("demo_id")
        feature = metadata.get("featureType") or metadata.get("feature_type")
        if not demo_id or feature != "featured_demo":
            return
        demo = self.db.get(Demo, str(demo_id))
        if demo is None:
            logger.warning("Featured demo checkout for unknown demo %s", demo_id)
            return
        demo.is_featured = True
        demo.featured_until = datetime.now(UTC) + timedelta(days=FEATURED_DEMO_DAYS)
        logger.info("Demo %s featured until %s", demo.id, demo.featured_until)

    # ── Payment methods ──────────────────────────────────

    def apply_payment_method_attached(self, payment_method: dict[str, Any]) -> User | None:
        customer_id = customer_id_of(payment_method)
        if not customer_id:
            logger.info("Payment method %s has no customer", payment_method.get("id"))
            return None
        user = self.identity.resolve(payment_method)
        self.db.flush()
        mapping = self.db.get(StripeCustomer, customer_id)

        row = self.db.get(StripePaymentMethod, payment_method["id"])
        if row is None:
            row = StripePaymentMethod(id=payment_method["id"], customer_id=customer_id)
            self.db.add(row)
        card = payment_method.get("card") or {}
        row.customer_id = customer_id
        row.type = payment_method.get("type") or "card"
        row.card_brand = card.get("brand")
        row.card_last4 = card.get("last4")
        row.card_exp_month = card.get("exp_month")
        row.card_exp_year = card.get("exp_year")
        self.db.flush()

        if not mapping.default_payment_method or mapping.default_payment_method == row.id:
            self.set_default_flag(mapping, row.id)
        return user

    def apply_payment_method_detached(self, payment_method: dict[str, Any]) -> User | None:
        row = self.db.get(StripePaymentMethod, payment_method["id"])
        if row is None:
            return None
        mapping = self.db.get(StripeCustomer, row.customer_id)
        was_default = row.is_default
        self.db.delete(row)
        self.db.flush()
        if was_default and mapping is not None:
            promoted = self.promote_default(mapping)
            logger.info(
                "Default payment method %s removed; promoted %s",
                payment_method["id"],
                promoted.id if promoted else None,
            )
        return self.db.get(User, mapping.user_id) if mapping else None

    def promote_default(self, mapping: StripeCustomer) -> StripePaymentMethod | None:
        """Make the newest remaining method the customer's default."""
        candidate = (
            self.db.query(StripePaymentMethod)
            .filter(StripePaymentMethod.customer_id == mapping.id)
            .order_by(StripePaymentMethod.created_at.desc())
            .first()
        )
        self.set_default_flag(mapping, candidate.id if candidate else None)
        return candidate

    def set_default_flag(self, mapping: StripeCustomer, payment_method_id: str | None) -> None:
        mapping.default_payment_method = payment_method_id
        methods = (
            self.db.query(StripePaymentMethod)
            .filter(StripePaymentMethod.customer_id == mapping.id)
            .all()
        )
        for method in methods:
            method.is_default = method.id == payment_method_id

    # ── Helpers ──────────────────────────────────────────

    @staticmethod
    def _is_stale(row: StripeSubscription | None, event_created: datetime | None) -> bool:
        if row is None or event_created is None or row.last_event_at is None:
            return False
        return event_created < as_utc(row.last_event_at)

    @staticmethod
    def _is_current(user: User, subscription_id: str) -> bool:
        return user.stripe_subscription_id in (None, subscription_id)

    def _invoice_applies(self, user: User, subscription_id: str) -> bool:
        """Invoices only move a user whose subscription is still live.

        With no current subscription on the user, an invoice may still belong
        to one whose created event has not arrived yet, but never to one that
        was already canceled or to a user whose access was revoked.
        """
        if user.stripe_subscription_id is not None:
            return user.stripe_subscription_id == subscription_id
        if user.subscription_status is SubscriptionStatus.inactive:
            return False
        row = self.db.get(StripeSubscription, subscription_id)
        return row is None or row.status != "canceled"

    @staticmethod
    def _reset_usage(user: User, period_start: datetime | None) -> bool:
        """Zero the usage counter once per billing period."""
        if period_start is None:
            return False
        current = as_utc(user.usage_period_start)
        if current is not None and period_start <= current:
            return False
        user.events_used = 0
        user.usage_period_start = period_start
        return True

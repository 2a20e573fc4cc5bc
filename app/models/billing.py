"""Relational mirror of Stripe billing objects.

Rows are keyed by the Stripe object id so every write is an upsert.
"""
import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base, TimestampMixin

# ── Enums ────────────────────────────────────────────────


class WebhookEventStatus(str, enum.Enum):
    pending = "pending"
    processed = "processed"
    ignored = "ignored"
    failed = "failed"
    dead_lettered = "dead_lettered"


# ── Customers ────────────────────────────────────────────


class StripeCustomer(TimestampMixin, Base):
    __tablename__ = "stripe_customers"

    # Stripe customer id (cus_...)
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    email: Mapped[str | None] = mapped_column(String(255))
    default_payment_method: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    user = relationship("User")
    payment_methods = relationship("StripePaymentMethod", back_populates="customer")


# ── Subscriptions ────────────────────────────────────────


class StripeSubscription(TimestampMixin, Base):
    __tablename__ = "stripe_subscriptions"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    customer_id: Mapped[str | None] = mapped_column(String(255), index=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    # Raw Stripe status: trialing, active, past_due, canceled, ...
    status: Mapped[str] = mapped_column(String(40), nullable=False)
    price_id: Mapped[str | None] = mapped_column(String(255))
    plan: Mapped[str | None] = mapped_column(String(40))
    current_period_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False)
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    trial_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # Creation time of the newest event applied to this row
    last_event_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


# ── Invoices ─────────────────────────────────────────────


class StripeInvoice(TimestampMixin, Base):
    __tablename__ = "stripe_invoices"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    customer_id: Mapped[str | None] = mapped_column(String(255), index=True)
    subscription_id: Mapped[str | None] = mapped_column(String(255))
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[str | None] = mapped_column(String(40))
    amount_due: Mapped[int] = mapped_column(Integer, default=0)
    amount_paid: Mapped[int] = mapped_column(Integer, default=0)
    currency: Mapped[str | None] = mapped_column(String(3))
    hosted_invoice_url: Mapped[str | None] = mapped_column(String(1024))
    period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    attempt_count: Mapped[int] = mapped_column(Integer, default=0)


# ── Payment methods ──────────────────────────────────────


class StripePaymentMethod(TimestampMixin, Base):
    __tablename__ = "stripe_payment_methods"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    customer_id: Mapped[str] = mapped_column(
        ForeignKey("stripe_customers.id"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(40), default="card")
    card_brand: Mapped[str | None] = mapped_column(String(40))
    card_last4: Mapped[str | None] = mapped_column(String(4))
    card_exp_month: Mapped[int | None] = mapped_column(Integer)
    card_exp_year: Mapped[int | None] = mapped_column(Integer)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

    customer = relationship("StripeCustomer", back_populates="payment_methods")


# ── Checkout ─────────────────────────────────────────────


class StripeCheckoutSession(TimestampMixin, Base):
    __tablename__ = "stripe_checkout_sessions"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    customer_id: Mapped[str | None] = mapped_column(String(255))
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    subscription_id: Mapped[str | None] = mapped_column(String(255))
    mode: Mapped[str | None] = mapped_column(String(40))
    status: Mapped[str | None] = mapped_column(String(40))
    payment_status: Mapped[str | None] = mapped_column(String(40))
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)


# ── Price catalog overrides ──────────────────────────────


class StripePrice(TimestampMixin, Base):
    __tablename__ = "stripe_prices"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    plan: Mapped[str] = mapped_column(String(40), nullable=False)
    events_quota: Mapped[int] = mapped_column(Integer, nullable=False)
    interval: Mapped[str | None] = mapped_column(String(16))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# ── Webhook inbox ────────────────────────────────────────


class WebhookEvent(TimestampMixin, Base):
    __tablename__ = "webhook_events"
    __table_args__ = (UniqueConstraint("event_id", name="uq_webhook_events_event_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    provider: Mapped[str] = mapped_column(String(80), default="stripe")
    event_type: Mapped[str] = mapped_column(String(120), nullable=False)
    event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON)
    status: Mapped[WebhookEventStatus] = mapped_column(
        Enum(WebhookEventStatus), default=WebhookEventStatus.pending
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text)
    event_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def mark(self, status: WebhookEventStatus, error: str | None = None) -> None:
        self.status = status
        self.error_message = error
        if status in (WebhookEventStatus.processed, WebhookEventStatus.ignored):
            self.processed_at = datetime.now(UTC)

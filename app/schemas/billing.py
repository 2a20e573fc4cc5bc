from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.billing import WebhookEventStatus

# ── Customers ────────────────────────────────────────────


class StripeCustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    user_id: str
    email: str | None = None
    default_payment_method: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ── Subscriptions ────────────────────────────────────────


class StripeSubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    customer_id: str | None = None
    user_id: str
    status: str
    price_id: str | None = None
    plan: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool
    canceled_at: datetime | None = None
    ended_at: datetime | None = None
    trial_end: datetime | None = None
    created_at: datetime
    updated_at: datetime


# ── Invoices ─────────────────────────────────────────────


class StripeInvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    customer_id: str | None = None
    subscription_id: str | None = None
    user_id: str
    status: str | None = None
    amount_due: int
    amount_paid: int
    currency: str | None = None
    hosted_invoice_url: str | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    attempt_count: int
    created_at: datetime


# ── Payment methods ──────────────────────────────────────


class StripePaymentMethodRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    customer_id: str
    type: str
    card_brand: str | None = None
    card_last4: str | None = None
    card_exp_month: int | None = None
    card_exp_year: int | None = None
    is_default: bool
    created_at: datetime


# ── Webhooks ─────────────────────────────────────────────


class WebhookEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    provider: str
    event_id: str
    event_type: str
    status: WebhookEventStatus
    attempts: int
    error_message: str | None = None
    event_created_at: datetime | None = None
    processed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class WebhookAck(BaseModel):
    received: bool = True
    event_id: str
    status: str
    duplicate: bool = False
    user_id: str | None = None
    error: str | None = Field(default=None, description="Set for dead-lettered events")


# ── Checkout ─────────────────────────────────────────────


class CheckoutSessionCreate(BaseModel):
    user_id: str = Field(min_length=1)
    price_id: str = Field(min_length=1)
    success_url: str = Field(min_length=1)
    cancel_url: str = Field(min_length=1)
    add_ons: list[str] = Field(default_factory=list, description="Extra price ids, one of each")
    metadata: dict[str, str] = Field(default_factory=dict)


class CheckoutSessionRead(BaseModel):
    session_id: str
    url: str | None = None
    customer_id: str

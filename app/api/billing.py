from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.billing import (
    CheckoutSessionCreate,
    CheckoutSessionRead,
    StripeCustomerRead,
    StripeInvoiceRead,
    StripePaymentMethodRead,
    StripeSubscriptionRead,
)
from app.schemas.common import ListResponse
from app.services import billing as billing_service

router = APIRouter(tags=["billing"])


# ── Customers ────────────────────────────────────────────


@router.get("/customers/{item_id}", response_model=StripeCustomerRead)
def get_customer(item_id: str, db: Session = Depends(get_db)):
    return billing_service.customers.get(db, item_id)


@router.get("/customers", response_model=ListResponse[StripeCustomerRead])
def list_customers(
    user_id: str | None = None,
    email: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return billing_service.customers.list_response(
        db, user_id, email, is_active, order_by, order_dir, limit, offset
    )


# ── Subscriptions ────────────────────────────────────────


@router.get("/subscriptions/{item_id}", response_model=StripeSubscriptionRead)
def get_subscription(item_id: str, db: Session = Depends(get_db)):
    return billing_service.subscriptions.get(db, item_id)


@router.get("/subscriptions", response_model=ListResponse[StripeSubscriptionRead])
def list_subscriptions(
    user_id: str | None = None,
    customer_id: str | None = None,
    status: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return billing_service.subscriptions.list_response(
        db, user_id, customer_id, status, order_by, order_dir, limit, offset
    )


# ── Invoices ─────────────────────────────────────────────


@router.get("/invoices/{item_id}", response_model=StripeInvoiceRead)
def get_invoice(item_id: str, db: Session = Depends(get_db)):
    return billing_service.invoices.get(db, item_id)


@router.get("/invoices", response_model=ListResponse[StripeInvoiceRead])
def list_invoices(
    user_id: str | None = None,
    subscription_id: str | None = None,
    status: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return billing_service.invoices.list_response(
        db, user_id, subscription_id, status, order_by, order_dir, limit, offset
    )


# ── Payment Methods ──────────────────────────────────────


@router.get("/payment-methods/{item_id}", response_model=StripePaymentMethodRead)
def get_payment_method(item_id: str, db: Session = Depends(get_db)):
    return billing_service.payment_methods.get(db, item_id)


@router.get("/payment-methods", response_model=ListResponse[StripePaymentMethodRead])
def list_payment_methods(
    customer_id: str | None = None,
    user_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return billing_service.payment_methods.list_response(
        db, customer_id, user_id, order_by, order_dir, limit, offset
    )


@router.post(
    "/payment-methods/{item_id}/default", response_model=StripePaymentMethodRead
)
def set_default_payment_method(item_id: str, db: Session = Depends(get_db)):
    return billing_service.payment_methods.set_default(db, item_id)


@router.delete("/payment-methods/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment_method(item_id: str, db: Session = Depends(get_db)) -> None:
    billing_service.payment_methods.delete(db, item_id)


# ── Checkout ─────────────────────────────────────────────


@router.post(
    "/checkout-sessions",
    response_model=CheckoutSessionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_checkout_session(payload: CheckoutSessionCreate, db: Session = Depends(get_db)):
    return billing_service.checkout_sessions.create(db, payload)

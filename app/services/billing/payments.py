"""Payment method reads plus the two write-back operations.

Stripe is updated first; local rows follow only when Stripe accepted the
change, so a failed API call leaves both sides as they were.
"""
import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.billing import StripeCustomer, StripePaymentMethod
from app.services.common import apply_ordering, apply_pagination
from app.services.projector import Projector
from app.services.response import ListResponseMixin
from app.services.stripe_gateway import StripeGateway, stripe_gateway

logger = logging.getLogger(__name__)


class PaymentMethods(ListResponseMixin):
    @staticmethod
    def get(db: Session, item_id: str) -> StripePaymentMethod:
        item = db.get(StripePaymentMethod, item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Payment method not found")
        return item

    @staticmethod
    def list(
        db: Session,
        customer_id: str | None,
        user_id: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> tuple[list[StripePaymentMethod], int]:
        query = db.query(StripePaymentMethod)
        if customer_id:
            query = query.filter(StripePaymentMethod.customer_id == customer_id)
        if user_id:
            query = query.join(StripeCustomer).filter(StripeCustomer.user_id == user_id)
        total = query.count()
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": StripePaymentMethod.created_at},
        )
        items = list(apply_pagination(query, limit, offset).all())
        return items, total

    @staticmethod
    def set_default(
        db: Session, item_id: str, gateway: StripeGateway = stripe_gateway
    ) -> StripePaymentMethod:
        item = PaymentMethods.get(db, item_id)
        gateway.set_default_payment_method(item.customer_id, item.id)
        mapping = db.get(StripeCustomer, item.customer_id)
        Projector(db, gateway).set_default_flag(mapping, item.id)
        db.commit()
        db.refresh(item)
        logger.info("Default payment method for %s is now %s", mapping.id, item.id)
        return item

    @staticmethod
    def delete(db: Session, item_id: str, gateway: StripeGateway = stripe_gateway) -> None:
        item = PaymentMethods.get(db, item_id)
        mapping = db.get(StripeCustomer, item.customer_id)
        was_default = item.is_default
        gateway.detach_payment_method(item.id)
        db.delete(item)
        db.flush()
        if was_default and mapping is not None:
            promoted = Projector(db, gateway).promote_default(mapping)
            if promoted is not None:
                gateway.set_default_payment_method(mapping.id, promoted.id)
        db.commit()
        logger.info("Deleted payment method %s", item_id)


payment_methods = PaymentMethods()

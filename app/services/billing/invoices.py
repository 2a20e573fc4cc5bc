import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.billing import StripeInvoice
from app.services.common import apply_ordering, apply_pagination
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Invoices(ListResponseMixin):
    @staticmethod
    def get(db: Session, item_id: str) -> StripeInvoice:
        item = db.get(StripeInvoice, item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Invoice not found")
        return item

    @staticmethod
    def list(
        db: Session,
        user_id: str | None,
        subscription_id: str | None,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> tuple[list[StripeInvoice], int]:
        query = db.query(StripeInvoice)
        if user_id:
            query = query.filter(StripeInvoice.user_id == user_id)
        if subscription_id:
            query = query.filter(StripeInvoice.subscription_id == subscription_id)
        if status:
            query = query.filter(StripeInvoice.status == status)
        total = query.count()
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": StripeInvoice.created_at, "period_start": StripeInvoice.period_start},
        )
        items = list(apply_pagination(query, limit, offset).all())
        return items, total


invoices = Invoices()

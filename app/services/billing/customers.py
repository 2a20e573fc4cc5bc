import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.billing import StripeCustomer
from app.services.common import apply_ordering, apply_pagination
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Customers(ListResponseMixin):
    @staticmethod
    def get(db: Session, item_id: str) -> StripeCustomer:
        item = db.get(StripeCustomer, item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Customer not found")
        return item

    @staticmethod
    def list(
        db: Session,
        user_id: str | None,
        email: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> tuple[list[StripeCustomer], int]:
        query = db.query(StripeCustomer)
        if user_id:
            query = query.filter(StripeCustomer.user_id == user_id)
        if email:
            query = query.filter(StripeCustomer.email.ilike(f"%{email}%"))
        if is_active is not None:
            query = query.filter(StripeCustomer.is_active == is_active)
        total = query.count()
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": StripeCustomer.created_at, "email": StripeCustomer.email},
        )
        items = list(apply_pagination(query, limit, offset).all())
        return items, total


customers = Customers()

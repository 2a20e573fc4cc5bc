import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.billing import StripeSubscription
from app.services.common import apply_ordering, apply_pagination
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Subscriptions(ListResponseMixin):
    @staticmethod
    def get(db: Session, item_id: str) -> StripeSubscription:
        item = db.get(StripeSubscription, item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Subscription not found")
        return item

    @staticmethod
    def list(
        db: Session,
        user_id: str | None,
        customer_id: str | None,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> tuple[list[StripeSubscription], int]:
        query = db.query(StripeSubscription)
        if user_id:
            query = query.filter(StripeSubscription.user_id == user_id)
        if customer_id:
            query = query.filter(StripeSubscription.customer_id == customer_id)
        if status:
            query = query.filter(StripeSubscription.status == status)
        total = query.count()
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": StripeSubscription.created_at,
                "current_period_end": StripeSubscription.current_period_end,
            },
        )
        items = list(apply_pagination(query, limit, offset).all())
        return items, total


subscriptions = Subscriptions()

"""Subscription checkout sessions.

Every session and the subscription it creates carry ``metadata.user_id``, so
the webhooks that follow resolve the user on the first rung.
"""
import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.billing import StripeCheckoutSession
from app.models.user import User
from app.schemas.billing import CheckoutSessionCreate, CheckoutSessionRead
from app.services.identity import IdentityResolver
from app.services.plans import resolve_plan_for_db
from app.services.stripe_gateway import StripeGateway, stripe_gateway

logger = logging.getLogger(__name__)


class CheckoutSessions:
    @staticmethod
    def create(
        db: Session,
        payload: CheckoutSessionCreate,
        gateway: StripeGateway = stripe_gateway,
    ) -> CheckoutSessionRead:
        user = db.get(User, payload.user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        # Refuse prices the webhook side could not map to a plan.
        plan = resolve_plan_for_db(db, payload.price_id)

        customer_id = user.stripe_customer_id
        if not customer_id:
            customer = gateway.create_customer(user.email, user.id)
            customer_id = customer["id"]
            IdentityResolver(db, gateway).link_customer(customer_id, user, email=user.email)
            db.commit()

        metadata = {**payload.metadata, "user_id": user.id, "user_email": user.email}
        line_items = [{"price": payload.price_id, "quantity": 1}]
        line_items += [{"price": price, "quantity": 1} for price in payload.add_ons]
        session = gateway.create_checkout_session(
            customer_id=customer_id,
            user_id=user.id,
            line_items=line_items,
            success_url=payload.success_url,
            cancel_url=payload.cancel_url,
            metadata=metadata,
        )

        db.add(
            StripeCheckoutSession(
                id=session["id"],
                customer_id=customer_id,
                user_id=user.id,
                mode=session.get("mode") or "subscription",
                status=session.get("status") or "open",
                payment_status=session.get("payment_status"),
                metadata_=metadata,
            )
        )
        db.commit()
        logger.info(
            "Created checkout session %s for user %s (%s)",
            session["id"],
            user.id,
            plan.name,
        )
        return CheckoutSessionRead(
            session_id=session["id"], url=session.get("url"), customer_id=customer_id
        )


checkout_sessions = CheckoutSessions()

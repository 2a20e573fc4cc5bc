"""Map Stripe objects to internal users.

Resolution order, first match wins:

1. explicit metadata on the object (``user_id``, ``userId``, ``firebase_uid``),
   plus ``client_reference_id`` on checkout sessions;
2. the ``stripe_customers`` mapping, then ``users.stripe_customer_id``;
3. the customer's email against ``users.email``.

A successful resolution links the Stripe customer to the user so later events
for the same customer resolve at step 2. Failure raises
``IdentityResolutionError``; no placeholder users are ever created.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.billing import StripeCustomer
from app.models.user import User
from app.services.errors import IdentityResolutionError
from app.services.stripe_gateway import StripeGateway, stripe_gateway

logger = logging.getLogger(__name__)

METADATA_KEYS = ("user_id", "userId", "firebase_uid")


def customer_id_of(obj: dict[str, Any]) -> str | None:
    if obj.get("object") == "customer":
        return obj.get("id")
    customer = obj.get("customer")
    if isinstance(customer, dict):
        return customer.get("id")
    return customer or None


def email_of(obj: dict[str, Any]) -> str | None:
    candidates = [
        obj.get("email"),
        obj.get("customer_email"),
        (obj.get("customer_details") or {}).get("email"),
        (obj.get("billing_details") or {}).get("email"),
    ]
    for value in candidates:
        if value:
            return str(value).strip().lower()
    return None


def metadata_user_id(obj: dict[str, Any], *, include_client_reference: bool = False) -> str | None:
    metadata = obj.get("metadata") or {}
    for key in METADATA_KEYS:
        if metadata.get(key):
            return str(metadata[key])
    if include_client_reference and obj.get("client_reference_id"):
        return str(obj["client_reference_id"])
    return None


class IdentityResolver:
    def __init__(self, db: Session, gateway: StripeGateway = stripe_gateway) -> None:
        self.db = db
        self.gateway = gateway

    def resolve(self, obj: dict[str, Any], *, include_client_reference: bool = False) -> User:
        customer_id = customer_id_of(obj)

        user = self._by_metadata(obj, include_client_reference)
        rung = "metadata"
        if user is None:
            user = self._by_customer_mapping(customer_id)
            rung = "customer"
        if user is None:
            user = self._by_email(obj, customer_id)
            rung = "email"
        if user is None:
            raise IdentityResolutionError(
                "Could not resolve a user for Stripe object",
                {
                    "object": obj.get("object"),
                    "id": obj.get("id"),
                    "customer": customer_id,
                },
            )

        logger.debug(
            "Resolved %s %s to user %s via %s",
            obj.get("object"),
            obj.get("id"),
            user.id,
            rung,
        )
        if customer_id:
            self.link_customer(customer_id, user, email=email_of(obj))
        return user

    def _by_metadata(self, obj: dict[str, Any], include_client_reference: bool) -> User | None:
        user_id = metadata_user_id(obj, include_client_reference=include_client_reference)
        if not user_id:
            return None
        user = self.db.get(User, user_id)
        if user is None:
            logger.warning("Metadata references unknown user %s", user_id)
        return user

    def _by_customer_mapping(self, customer_id: str | None) -> User | None:
        if not customer_id:
            return None
        mapping = self.db.get(StripeCustomer, customer_id)
        if mapping is not None:
            return self.db.get(User, mapping.user_id)
        return (
            self.db.query(User)
            .filter(User.stripe_customer_id == customer_id)
            .first()
        )

    def _by_email(self, obj: dict[str, Any], customer_id: str | None) -> User | None:
        email = email_of(obj)
        if not email and customer_id and self.gateway.is_configured():
            customer = self.gateway.retrieve_customer(customer_id)
            email = email_of(customer)
        if not email:
            return None
        return (
            self.db.query(User)
            .filter(func.lower(User.email) == email)
            .first()
        )

    def link_customer(
        self, customer_id: str, user: User, *, email: str | None = None
    ) -> StripeCustomer:
        """Create or repoint the customer mapping. Does not commit."""
        mapping = self.db.get(StripeCustomer, customer_id)
        if mapping is None:
            mapping = StripeCustomer(id=customer_id, user_id=user.id, email=email or user.email)
            self.db.add(mapping)
            self.db.flush()
            logger.info("Linked Stripe customer %s to user %s", customer_id, user.id)
        elif mapping.user_id != user.id:
            logger.warning(
                "Repointing Stripe customer %s from user %s to %s",
                customer_id,
                mapping.user_id,
                user.id,
            )
            mapping.user_id = user.id
        if email and not mapping.email:
            mapping.email = email
        if user.stripe_customer_id != customer_id:
            user.stripe_customer_id = customer_id
            user.mark_for_sync()
        return mapping

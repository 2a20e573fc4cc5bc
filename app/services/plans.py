"""Price id to plan tier and event quota.

The static catalog covers the prices created in the Stripe dashboard. Rows in
``stripe_prices`` add new prices or override a catalog entry without a deploy.
An unknown price is an error: guessing a tier would silently under- or
over-provision quota.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.models.billing import StripePrice
from app.services.errors import UnknownPriceError


@dataclass(frozen=True)
class Plan:
    name: str
    events_quota: int


STARTER = Plan("starter", 3)
PROFESSIONAL = Plan("professional", 8)
ENTERPRISE = Plan("enterprise", 15)
TEAM = Plan("team", 10)

PLAN_CATALOG: dict[str, Plan] = {
    "price_starter_monthly": STARTER,
    "price_starter_yearly": STARTER,
    "price_professional_monthly": PROFESSIONAL,
    "price_professional_yearly": PROFESSIONAL,
    "price_enterprise_monthly": ENTERPRISE,
    "price_enterprise_yearly": ENTERPRISE,
    "price_team_monthly": TEAM,
    "price_team_yearly": TEAM,
}

NO_PLAN = Plan("none", 0)


def resolve_plan(price_id: str | None, overrides: dict[str, Plan] | None = None) -> Plan:
    """Pure lookup; raises UnknownPriceError for anything not configured."""
    if not price_id:
        raise UnknownPriceError(price_id)
    if overrides and price_id in overrides:
        return overrides[price_id]
    plan = PLAN_CATALOG.get(price_id)
    if plan is None:
        raise UnknownPriceError(price_id)
    return plan


def load_overrides(db: Session) -> dict[str, Plan]:
    rows = db.query(StripePrice).filter(StripePrice.is_active.is_(True)).all()
    return {row.id: Plan(row.plan, row.events_quota) for row in rows}


def resolve_plan_for_db(db: Session, price_id: str | None) -> Plan:
    return resolve_plan(price_id, load_overrides(db))

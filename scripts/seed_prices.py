"""Seed stripe_prices with the built-in catalog, plus any extra live prices."""

import argparse

from dotenv import load_dotenv

from app.db import SessionLocal
from app.models.billing import StripePrice
from app.services.plans import PLAN_CATALOG


def parse_args():
    parser = argparse.ArgumentParser(description="Seed Stripe price to plan mappings.")
    parser.add_argument(
        "--price",
        action="append",
        default=[],
        metavar="PRICE_ID:PLAN:QUOTA",
        help="Extra price mapping, e.g. price_1Pxyz:professional:8. Repeatable.",
    )
    parser.add_argument(
        "--deactivate",
        action="append",
        default=[],
        metavar="PRICE_ID",
        help="Stop honouring an extra price id; catalog prices always resolve. Repeatable.",
    )
    return parser.parse_args()


def _parse_mapping(raw):
    try:
        price_id, plan, quota = raw.split(":")
        return price_id, plan, int(quota)
    except ValueError as exc:
        raise SystemExit(f"Invalid --price value {raw!r}; expected PRICE_ID:PLAN:QUOTA") from exc


def _interval(price_id):
    if price_id.endswith("_monthly"):
        return "month"
    if price_id.endswith("_yearly"):
        return "year"
    return None


def _ensure_price(db, price_id, plan, quota):
    price = db.get(StripePrice, price_id)
    if not price:
        price = StripePrice(id=price_id, plan=plan, events_quota=quota, interval=_interval(price_id))
        db.add(price)
    else:
        price.plan = plan
        price.events_quota = quota
        price.is_active = True
    return price


def main():
    load_dotenv()
    args = parse_args()
    db = SessionLocal()
    try:
        for price_id, plan in PLAN_CATALOG.items():
            _ensure_price(db, price_id, plan.name, plan.events_quota)
        for raw in args.price:
            _ensure_price(db, *_parse_mapping(raw))
        for price_id in args.deactivate:
            price = db.get(StripePrice, price_id)
            if price:
                price.is_active = False
        db.commit()
        print(f"Price seed complete ({db.query(StripePrice).count()} prices).")
    finally:
        db.close()


if __name__ == "__main__":
    main()

import pytest

from app.models.billing import StripePrice
from app.services.errors import UnknownPriceError
from app.services.plans import (
    PLAN_CATALOG,
    Plan,
    load_overrides,
    resolve_plan,
    resolve_plan_for_db,
)


class TestResolvePlan:
    @pytest.mark.parametrize(
        "price_id,name,quota",
        [
            ("price_starter_monthly", "starter", 3),
            ("price_professional_monthly", "professional", 8),
            ("price_professional_yearly", "professional", 8),
            ("price_enterprise_yearly", "enterprise", 15),
            ("price_team_monthly", "team", 10),
        ],
    )
    def test_catalog_prices(self, price_id, name, quota):
        plan = resolve_plan(price_id)
        assert plan.name == name
        assert plan.events_quota == quota

    def test_unknown_price_raises(self):
        with pytest.raises(UnknownPriceError) as exc_info:
            resolve_plan("price_mystery")
        assert exc_info.value.price_id == "price_mystery"
        assert exc_info.value.retryable is False

    def test_missing_price_raises(self):
        with pytest.raises(UnknownPriceError):
            resolve_plan(None)

    def test_override_wins_over_catalog(self):
        overrides = {"price_starter_monthly": Plan("starter", 5)}
        assert resolve_plan("price_starter_monthly", overrides).events_quota == 5

    def test_catalog_is_not_mutated_by_overrides(self):
        resolve_plan("price_new", {"price_new": Plan("team", 12)})
        assert "price_new" not in PLAN_CATALOG


class TestPriceOverrides:
    def test_active_rows_extend_catalog(self, db_session, unique_id):
        price_id = unique_id("price")
        db_session.add(StripePrice(id=price_id, plan="enterprise", events_quota=40))
        db_session.commit()

        plan = resolve_plan_for_db(db_session, price_id)
        assert plan == Plan("enterprise", 40)

    def test_inactive_rows_are_ignored(self, db_session, unique_id):
        price_id = unique_id("price")
        db_session.add(
            StripePrice(id=price_id, plan="team", events_quota=10, is_active=False)
        )
        db_session.commit()

        assert price_id not in load_overrides(db_session)
        with pytest.raises(UnknownPriceError):
            resolve_plan_for_db(db_session, price_id)

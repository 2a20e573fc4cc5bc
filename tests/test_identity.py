import pytest

from app.models.billing import StripeCustomer
from app.services.errors import IdentityResolutionError
from app.services.identity import (
    IdentityResolver,
    customer_id_of,
    email_of,
    metadata_user_id,
)


class _UnconfiguredGateway:
    def is_configured(self) -> bool:
        return False


class TestHelpers:
    def test_customer_id_of_customer_object(self):
        assert customer_id_of({"object": "customer", "id": "cus_1"}) == "cus_1"

    def test_customer_id_of_expanded_customer(self):
        assert customer_id_of({"customer": {"id": "cus_2"}}) == "cus_2"

    def test_customer_id_of_missing(self):
        assert customer_id_of({"customer": None}) is None

    def test_email_is_normalized(self):
        assert email_of({"customer_details": {"email": " Ada@Example.COM "}}) == "ada@example.com"

    def test_metadata_keys(self):
        assert metadata_user_id({"metadata": {"userId": "u1"}}) == "u1"
        assert metadata_user_id({"metadata": {"firebase_uid": "u2"}}) == "u2"

    def test_client_reference_only_when_requested(self):
        session = {"client_reference_id": "u3", "metadata": {}}
        assert metadata_user_id(session) is None
        assert metadata_user_id(session, include_client_reference=True) == "u3"


class TestIdentityResolver:
    def test_metadata_wins(self, db_session, make_user, unique_id):
        owner = make_user()
        other = make_user()
        obj = {
            "object": "subscription",
            "id": unique_id("sub"),
            "customer": unique_id("cus"),
            "metadata": {"user_id": owner.id},
            "email": other.email,
        }
        resolved = IdentityResolver(db_session, _UnconfiguredGateway()).resolve(obj)
        assert resolved.id == owner.id

    def test_customer_mapping(self, db_session, customer, user):
        obj = {"object": "invoice", "id": "in_1", "customer": customer.id}
        resolved = IdentityResolver(db_session, _UnconfiguredGateway()).resolve(obj)
        assert resolved.id == user.id

    def test_users_stripe_customer_id_without_mapping(self, db_session, make_user, unique_id):
        cus_id = unique_id("cus")
        user = make_user(stripe_customer_id=cus_id)
        obj = {"object": "invoice", "id": "in_2", "customer": cus_id}

        resolved = IdentityResolver(db_session, _UnconfiguredGateway()).resolve(obj)
        db_session.commit()

        assert resolved.id == user.id
        assert db_session.get(StripeCustomer, cus_id).user_id == user.id

    def test_email_match_is_case_insensitive(self, db_session, make_user, unique_id):
        user = make_user(email="casey@example.com")
        cus_id = unique_id("cus")
        obj = {"object": "customer", "id": cus_id, "email": "Casey@Example.com"}

        resolved = IdentityResolver(db_session, _UnconfiguredGateway()).resolve(obj)
        db_session.commit()
        db_session.refresh(user)

        assert resolved.id == user.id
        assert user.stripe_customer_id == cus_id
        assert user.needs_document_sync is True

    def test_email_fetched_from_stripe_customer(self, db_session, make_user, gateway, unique_id):
        user = make_user()
        cus_id = unique_id("cus")
        gateway.customers[cus_id] = {"id": cus_id, "object": "customer", "email": user.email}
        obj = {"object": "subscription", "id": unique_id("sub"), "customer": cus_id}

        resolved = IdentityResolver(db_session, gateway).resolve(obj)
        assert resolved.id == user.id
        assert ("retrieve_customer", cus_id) in gateway.calls

    def test_unresolvable_raises_without_creating_users(self, db_session, unique_id):
        obj = {
            "object": "subscription",
            "id": unique_id("sub"),
            "customer": unique_id("cus"),
            "email": "nobody@example.com",
        }
        with pytest.raises(IdentityResolutionError) as exc_info:
            IdentityResolver(db_session, _UnconfiguredGateway()).resolve(obj)
        assert exc_info.value.details["customer"] == obj["customer"]
        db_session.rollback()

    def test_mapping_repointed_to_metadata_user(self, db_session, customer, make_user):
        new_owner = make_user()
        obj = {
            "object": "subscription",
            "id": "sub_repoint",
            "customer": customer.id,
            "metadata": {"user_id": new_owner.id},
        }
        IdentityResolver(db_session, _UnconfiguredGateway()).resolve(obj)
        db_session.commit()
        db_session.refresh(customer)
        assert customer.user_id == new_owner.id

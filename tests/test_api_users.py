from app.models.user import SubscriptionStatus


class TestUserSync:
    def test_creates_user_and_document(self, client, admin_headers, store, unique_id):
        uid = unique_id("uid")
        resp = client.post(
            "/users/sync",
            json={"id": uid, "email": "New.Person@Example.com", "name": "New Person"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["email"] == "new.person@example.com"
        assert body["subscription_status"] == "trial"
        assert body["needs_document_sync"] is False
        assert store.documents[uid]["displayName"] == "New Person"

    def test_update_never_touches_subscription(self, client, admin_headers, make_user):
        user = make_user(
            subscription_status=SubscriptionStatus.active,
            subscription_plan="team",
            events_quota=10,
        )
        resp = client.post(
            "/users/sync",
            json={"id": user.id, "email": user.email, "name": "Renamed", "role": "admin"},
            headers=admin_headers,
        )

        body = resp.json()
        assert body["name"] == "Renamed"
        assert body["role"] == "admin"
        assert body["subscription_plan"] == "team"
        assert body["events_quota"] == 10

    def test_email_clash(self, client, admin_headers, make_user, unique_id):
        existing = make_user()
        resp = client.post(
            "/users/sync",
            json={"id": unique_id("uid"), "email": existing.email.upper()},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_invalid_email(self, client, admin_headers):
        resp = client.post("/users/sync", json={"id": "x", "email": "nope"}, headers=admin_headers)
        assert resp.status_code == 422
        assert resp.json()["code"] == "validation_error"


class TestUserReads:
    def test_get_user(self, client, admin_headers, user):
        resp = client.get(f"/users/{user.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["id"] == user.id

    def test_get_missing_user(self, client, admin_headers):
        assert client.get("/users/uid_missing", headers=admin_headers).status_code == 404

    def test_list_by_status(self, client, admin_headers, make_user):
        user = make_user(subscription_status=SubscriptionStatus.past_due)
        resp = client.get(
            "/users",
            params={"subscription_status": "past_due", "limit": 200},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        items = resp.json()["items"]
        assert user.id in [item["id"] for item in items]
        assert all(item["subscription_status"] == "past_due" for item in items)

    def test_list_rejects_unknown_status(self, client, admin_headers):
        resp = client.get("/users", params={"subscription_status": "gold"}, headers=admin_headers)
        assert resp.status_code == 400

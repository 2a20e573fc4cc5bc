import hashlib
import hmac
import json
import sys
import time
import uuid
from datetime import UTC, datetime
from types import ModuleType
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import DateTime, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

# Create a test engine BEFORE any app imports
_test_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Create a mock for the app.db module that uses our test engine
class TestBase(DeclarativeBase):
    pass


_TestSessionLocal = sessionmaker(bind=_test_engine, autoflush=False, autocommit=False)


class TimestampMixin:
    """Mixin that adds created_at / updated_at columns to any model."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


mock_db_module = ModuleType('app.db')
mock_db_module.Base = TestBase
mock_db_module.TimestampMixin = TimestampMixin
mock_db_module.SessionLocal = _TestSessionLocal
mock_db_module.get_engine = lambda: _test_engine

# Also mock app.config to prevent .env loading
mock_config_module = ModuleType('app.config')

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_TOKEN = "test-admin-token"


class MockSettings:
    database_url = "sqlite+pysqlite:///:memory:"
    redis_url = "redis://localhost:6379/0"
    db_pool_size = 5
    db_max_overflow = 10
    db_pool_timeout = 30
    db_pool_recycle = 1800
    environment = "development"
    is_development = True
    stripe_secret_key = ""
    stripe_webhook_secret = WEBHOOK_SECRET
    stripe_webhook_tolerance = 300
    firebase_service_account = ""
    firestore_users_collection = "users"
    google_client_email = ""
    google_private_key = ""
    google_calendar_id = "primary"
    admin_api_token = ADMIN_TOKEN
    sync_batch_size = 10
    webhook_max_attempts = 5
    cors_origins = ""


mock_config_module.settings = MockSettings()
mock_config_module.Settings = MockSettings
mock_config_module.validate_settings = lambda s: []

# Insert mocks before any app imports
sys.modules['app.config'] = mock_config_module
sys.modules['app.db'] = mock_db_module

# Now import the models - they'll use our mocked db module
from app.models.billing import StripeCustomer  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.document_store import DocumentStore  # noqa: E402
from app.services.errors import DocumentStoreError  # noqa: E402
import app.models  # noqa: E402,F401

# Create all tables
TestBase.metadata.create_all(_test_engine)

Base = TestBase


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed stand-in for Firestore that honours merge semantics."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.fail = False
        self.writes = 0

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        if self.fail:
            raise DocumentStoreError("Firestore unavailable")
        doc = self.documents.get(user_id)
        return dict(doc) if doc is not None else None

    def merge_user(self, user_id: str, data: dict[str, Any]) -> None:
        if self.fail:
            raise DocumentStoreError("Firestore unavailable")
        self.documents.setdefault(user_id, {}).update(data)
        self.writes += 1


class FakeGateway:
    """Records Stripe calls instead of making them."""

    def __init__(self, subscriptions: dict[str, dict] | None = None) -> None:
        self.subscriptions = subscriptions or {}
        self.customers: dict[str, dict] = {}
        self.calls: list[tuple] = []

    def is_configured(self) -> bool:
        return True

    def is_webhook_configured(self) -> bool:
        return True

    def retrieve_subscription(self, subscription_id: str) -> dict:
        self.calls.append(("retrieve_subscription", subscription_id))
        return self.subscriptions[subscription_id]

    def retrieve_customer(self, customer_id: str) -> dict:
        self.calls.append(("retrieve_customer", customer_id))
        return self.customers.get(customer_id, {"id": customer_id, "object": "customer"})

    def set_default_payment_method(self, customer_id: str, payment_method_id: str) -> None:
        self.calls.append(("set_default_payment_method", customer_id, payment_method_id))

    def detach_payment_method(self, payment_method_id: str) -> None:
        self.calls.append(("detach_payment_method", payment_method_id))


@pytest.fixture(scope="session")
def engine():
    return _test_engine


@pytest.fixture()
def db_session(engine):
    """Create a database session for testing.

    Uses the same connection as the StaticPool engine to ensure
    all operations see the same data.
    """
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


def _unique_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:14]}"


@pytest.fixture()
def make_user(db_session):
    def _make_user(**fields: Any) -> User:
        fields.setdefault("id", _unique_id("uid"))
        fields.setdefault("email", _unique_email())
        user = User(**fields)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def user(make_user):
    return make_user(name="Test User")


@pytest.fixture()
def customer(db_session, user):
    mapping = StripeCustomer(id=_unique_id("cus"), user_id=user.id, email=user.email)
    db_session.add(mapping)
    user.stripe_customer_id = mapping.id
    db_session.commit()
    db_session.refresh(mapping)
    return mapping


@pytest.fixture()
def store():
    return InMemoryDocumentStore()


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def unique_id():
    return _unique_id


@pytest.fixture()
def make_event():
    def _make_event(event_type: str, obj: dict, *, created: int | None = None, event_id: str | None = None) -> dict:
        return {
            "id": event_id or _unique_id("evt"),
            "object": "event",
            "type": event_type,
            "created": created or int(time.time()),
            "data": {"object": obj},
        }

    return _make_event


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    ts = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={ts},v1={signature}"


# ============ FastAPI Test Client Fixtures ============


@pytest.fixture()
def client(db_session, store):
    """Create a test client with database and document store overrides."""
    from app.api.deps import get_db as api_get_db
    from app.api.deps import get_store as api_get_store
    from app.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[api_get_db] = override_get_db
    app.dependency_overrides[api_get_store] = lambda: store

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}


@pytest.fixture()
def post_event(client):
    def _post_event(event: dict, *, secret: str = WEBHOOK_SECRET, signature: str | None = None):
        payload = json.dumps(event)
        header = signature if signature is not None else sign_payload(payload, secret)
        return client.post(
            "/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": header, "Content-Type": "application/json"},
        )

    return _post_event


@pytest.fixture()
def signer():
    return sign_payload

"""
Shared fixtures: in-memory SQLite database, users and an API test client.
"""
import pytest
from fastapi.testclient import TestClient

from resumeforge.core import config
from resumeforge.core.auth_dependency import get_db
from resumeforge.core.security import create_access_token
from resumeforge.db.base import Base
import resumeforge.db.models  # noqa: F401
from resumeforge.db.models.user import User
from resumeforge.db.models.subscription import Subscription
from resumeforge.services.billing_provider import get_billing_provider

from tests.helpers import StaticProvider, TestSessionLocal, test_engine


TEST_JWT_KEY = "test-signing-key"


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def test_user(db):
    """Create a test user."""
    user = User(
        auth_user_id="user_2abcAuthId",
        email="test@example.com",
        full_name="Test User",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def standard_subscription(db, test_user):
    """Webhook-synced standard plan row for the test user."""
    sub = Subscription(
        user_id=test_user.id,
        plan_type="standard",
        status="active",
        stripe_customer_id="cus_test",
        stripe_subscription_id="sub_test",
        stripe_price_id=config.STRIPE_PRICE_ID_STANDARD,
    )
    db.add(sub)
    db.commit()
    return sub


@pytest.fixture
def jwt_key(monkeypatch):
    """Configure a signing key so tokens can be minted and verified."""
    monkeypatch.setattr(config, "AUTH_JWT_KEY", TEST_JWT_KEY)
    monkeypatch.setattr(config, "AUTH_JWT_AUDIENCE", None)
    return TEST_JWT_KEY


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def app(db, jwt_key):
    """App wired to the test database; users default to no paid subscription."""
    from resumeforge.main import app

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_billing_provider] = lambda: StaticProvider(None)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers(jwt_key, test_user):
    token = create_access_token({"sub": test_user.auth_user_id, "email": test_user.email})
    return {"Authorization": f"Bearer {token}"}

"""
Test database, doubles and data builders shared by the test modules.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from resumeforge.db.models.usage import UsageEvent
from resumeforge.services.billing_provider import BillingProvider, ProviderSubscription


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class StaticProvider(BillingProvider):
    """Returns a fixed subscription (or none) for every user."""

    name = "static"

    def __init__(self, found: Optional[ProviderSubscription] = None):
        self.found = found
        self.calls = 0

    def find_active_subscription(self, db, identity):
        self.calls += 1
        return self.found


class FailingProvider(BillingProvider):
    """Simulates a billing provider outage."""

    name = "failing"

    def find_active_subscription(self, db, identity):
        raise RuntimeError("billing provider timed out")


def active_subscription(
    price_id: str,
    period_start: Optional[datetime] = None,
    period_end: Optional[datetime] = None
) -> ProviderSubscription:
    """Active subscription whose period covers the current time unless given."""
    now = datetime.now(timezone.utc)
    return ProviderSubscription(
        price_id=price_id,
        status="active",
        subscription_id="sub_test",
        customer_id="cus_test",
        current_period_start=period_start or now - timedelta(days=10),
        current_period_end=period_end or now + timedelta(days=20),
    )


def add_usage(db, user_ref: str, feature: str, amount: int, created_at: Optional[datetime] = None):
    created_at = created_at or datetime.now(timezone.utc)
    event = UsageEvent(
        user_id=user_ref,
        feature=feature,
        amount=amount,
        created_at=created_at,
        month_key=UsageEvent.get_month_key(created_at),
    )
    db.add(event)
    db.commit()
    return event

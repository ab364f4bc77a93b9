from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from resumeforge.db.base import Base


class Subscription(Base):
    """
    Paid subscription record, kept in sync by Stripe webhooks.

    Users without a row are on the implicit free tier. Used credits are not
    stored here; they are always summed from usage_events.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)

    plan_type = Column(String, default="free", nullable=False)  # free | basic | standard | pro
    status = Column(String, default="inactive", nullable=False)  # active | past_due | inactive | canceled

    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)
    stripe_price_id = Column(String, nullable=True)

    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.sql import func
from datetime import datetime, timezone
from resumeforge.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsageEvent(Base):
    """
    Append-only ledger of credit-charging actions.
    
    user_id holds the internal user UUID when one exists, otherwise the raw
    identity-provider id (by convention, not a foreign key). Rows are never
    updated or deleted; used credits are always derived by summing them over
    a created_at window (the billing period, or the calendar month on the
    free tier).
    """
    __tablename__ = "usage_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    feature = Column(String, nullable=False, index=True)  # key of FEATURE_COSTS
    amount = Column(Integer, default=1, nullable=False)  # credits charged
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False, index=True
    )
    month_key = Column(String(7), nullable=False, index=True)  # "YYYY-MM" of created_at, for reporting

    __table_args__ = (
        Index('idx_usage_user_month', 'user_id', 'month_key'),
        Index('idx_usage_user_created', 'user_id', 'created_at'),
    )

    @staticmethod
    def get_month_key(date: datetime = None) -> str:
        """Generate month_key string in YYYY-MM format."""
        if date is None:
            date = datetime.now(timezone.utc)
        return date.strftime("%Y-%m")

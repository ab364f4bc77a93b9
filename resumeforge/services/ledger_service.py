"""
Credit ledger service.

Reads and appends usage events. Used credits are always derived from the
ledger by summing events whose created_at falls in a usage window; nothing
else stores a running counter.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Optional, Sequence

from sqlalchemy import DateTime, Integer, String, func, insert, literal, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from resumeforge.db.models.user import User
from resumeforge.db.models.usage import UsageEvent

logger = logging.getLogger(__name__)


def resolve_user_refs(db: Session, user_identifier: str) -> List[str]:
    """
    Get every identifier a user's usage events may be stored under.
    
    The internal UUID comes first (matched directly, then looked up by the
    identity-provider id); the raw identifier is always included. Lookup
    failures are tolerated and fall back to the raw identifier alone.
    
    Args:
        db: Database session
        user_identifier: Internal UUID or identity-provider user id
        
    Returns:
        Non-empty list of identifiers, the first one used for new events
    """
    refs: List[str] = []
    try:
        user = db.query(User).filter(User.id == user_identifier).first()
        if user is None:
            user = db.query(User).filter(User.auth_user_id == user_identifier).first()
        if user is not None:
            refs.append(user.id)
            if user.auth_user_id not in refs:
                refs.append(user.auth_user_id)
        else:
            logger.debug(f"No internal user for identifier={user_identifier}, using it directly")
    except SQLAlchemyError as e:
        logger.warning(f"User UUID lookup failed, using raw identifier={user_identifier}: {e}")
        db.rollback()
    
    if user_identifier not in refs:
        refs.append(user_identifier)
    return refs


class UsageWindow(NamedTuple):
    """Half-open [start, end) range of created_at that usage is summed over."""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def month_window(now: datetime) -> UsageWindow:
    """The calendar month containing now."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return UsageWindow(start, end)


def _window_filter(user_refs: Sequence[str], window: UsageWindow):
    return (
        UsageEvent.user_id.in_(list(user_refs)),
        UsageEvent.created_at >= window.start,
        UsageEvent.created_at < window.end,
    )


def get_used_credits(db: Session, user_refs: Sequence[str], window: UsageWindow) -> int:
    """Sum of credits charged to a user inside the window."""
    total = db.query(
        func.coalesce(func.sum(UsageEvent.amount), 0)
    ).filter(*_window_filter(user_refs, window)).scalar()
    return int(total or 0)


def get_usage_breakdown(db: Session, user_refs: Sequence[str], window: UsageWindow) -> Dict[str, int]:
    """Per-feature credit totals inside the window."""
    rows = db.query(
        UsageEvent.feature,
        func.sum(UsageEvent.amount).label("total")
    ).filter(
        *_window_filter(user_refs, window)
    ).group_by(UsageEvent.feature).all()
    return {feature: int(total) for feature, total in rows}


def get_recent_usage(db: Session, user_refs: Sequence[str], limit: int = 10) -> List[UsageEvent]:
    """Most recent usage events, newest first."""
    return db.query(UsageEvent).filter(
        UsageEvent.user_id.in_(list(user_refs))
    ).order_by(UsageEvent.created_at.desc(), UsageEvent.id.desc()).limit(limit).all()


def lock_user_row(db: Session, user_id: str) -> Optional[User]:
    """
    Take a row lock on the user for the rest of the transaction.
    
    Serializes concurrent charges for the same user on backends that support
    SELECT ... FOR UPDATE; SQLite serializes writers on its own.
    """
    return db.query(User).filter(User.id == user_id).with_for_update().first()


def append_usage_event_if_within(
    db: Session,
    user_ref: str,
    user_refs: Sequence[str],
    feature: str,
    amount: int,
    total: int,
    window: UsageWindow,
    now: Optional[datetime] = None
) -> bool:
    """
    Append one usage event only if it keeps the window's usage within total.
    
    The balance check and the write are a single INSERT ... SELECT ... WHERE
    statement, so two requests can never both spend the same credits. The
    event is stamped with now, which must fall inside the window.
    
    Returns:
        True if the event was written, False if the balance did not cover it
    """
    now = now or datetime.now(timezone.utc)
    used_subquery = (
        select(func.coalesce(func.sum(UsageEvent.amount), 0))
        .where(*_window_filter(user_refs, window))
        .scalar_subquery()
    )
    source = select(
        literal(user_ref, String),
        literal(feature, String),
        literal(amount, Integer),
        literal(now, DateTime(timezone=True)),
        literal(UsageEvent.get_month_key(now), String),
    ).where(used_subquery + amount <= total)
    
    statement = insert(UsageEvent).from_select(
        ["user_id", "feature", "amount", "created_at", "month_key"],
        source
    )
    
    result = db.execute(statement)
    db.commit()
    written = result.rowcount == 1
    
    if written:
        logger.info(
            f"Usage event appended: user_ref={user_ref}, feature={feature}, "
            f"amount={amount}, window_start={window.start.isoformat()}"
        )
    else:
        logger.warning(
            f"Usage event rejected by balance check: user_ref={user_ref}, "
            f"feature={feature}, amount={amount}, total={total}"
        )
    return written

"""
Credit service: balance resolution and credit consumption.

Combines the user's plan (from the billing provider) with the usage ledger
to produce a balance, and charges features against it. Billing provider and
ledger failures fail open to the free tier; the outcome says so explicitly
through Resolution instead of hiding it.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from resumeforge.core.credit_costs import get_credit_cost
from resumeforge.core.exceptions import CreditLedgerError, InvalidCreditAmountError
from resumeforge.core.plan_catalog import (
    FALLBACK_PAID_PLAN,
    PLANS,
    PRICE_ID_TO_PLAN,
    Plan,
    get_plan_from_price_id,
)
from resumeforge.services.billing_provider import (
    BillingProvider,
    ProviderSubscription,
    build_billing_identity,
    get_billing_provider,
)
from resumeforge.services.ledger_service import (
    UsageWindow,
    append_usage_event_if_within,
    get_recent_usage,
    get_usage_breakdown,
    get_used_credits,
    lock_user_row,
    month_window,
    resolve_user_refs,
)

logger = logging.getLogger(__name__)


class Resolution(str, Enum):
    RESOLVED = "resolved"
    DEGRADED = "degraded"  # billing provider failed, free tier applied
    FAILED = "failed"  # ledger unreadable, free tier applied with 0 used


@dataclass
class CreditBalance:
    total: int
    used: int
    remaining: int
    plan: str
    plan_name: str
    status: str
    is_active: bool
    resolution: Resolution = Resolution.RESOLVED
    error: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    window: Optional[UsageWindow] = None
    resolved_at: Optional[datetime] = None
    user_refs: List[str] = field(default_factory=list)

    def to_subscription_payload(self) -> Dict[str, Any]:
        """Shape expected by the frontend's subscription cache."""
        return {
            "plan": self.plan,
            "planName": self.plan_name,
            "totalCredits": self.total,
            "usedCredits": self.used,
            "remainingCredits": self.remaining,
            "isActive": self.is_active,
            "status": self.status,
            "resolution": self.resolution.value,
            "currentPeriodStart": self.period_start.isoformat() if self.period_start else None,
            "currentPeriodEnd": self.period_end.isoformat() if self.period_end else None,
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }


@dataclass
class ConsumptionResult:
    success: bool
    feature: str
    charged: int
    required: int
    remaining: int
    message: str
    balance: CreditBalance


def _plan_for_subscription(found: ProviderSubscription) -> Plan:
    """Known price first, then a plan the source already named, then the paid fallback."""
    if found.price_id and found.price_id in PRICE_ID_TO_PLAN:
        return PLANS[PRICE_ID_TO_PLAN[found.price_id]]
    if found.plan_id in PLANS and found.plan_id != "free":
        return PLANS[found.plan_id]
    if found.price_id:
        logger.warning(f"Unknown price_id={found.price_id}, falling back to {FALLBACK_PAID_PLAN}")
    return get_plan_from_price_id(found.price_id) or PLANS[FALLBACK_PAID_PLAN]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _usage_window(found: Optional[ProviderSubscription], now: datetime) -> UsageWindow:
    """
    Billing period of a paid subscription, or the calendar month.

    A stored period that no longer contains now (a renewal webhook was
    missed) falls back to the calendar month.
    """
    if found is not None:
        start = _as_utc(found.current_period_start)
        end = _as_utc(found.current_period_end)
        if start and end and start <= now < end:
            return UsageWindow(start, end)
        logger.debug(f"Billing period {start} - {end} does not cover {now}, using calendar month")
    return month_window(now)


def resolve_balance(
    db: Session,
    user_identifier: str,
    provider: Optional[BillingProvider] = None,
    now: Optional[datetime] = None
) -> CreditBalance:
    """
    Resolve a user's credit balance.

    No paid subscription means the free tier, reported as status "inactive".
    A paid subscription maps its price to a plan (unknown prices get the
    fallback paid plan). Used credits are the ledger sum over the current
    billing period, or over the calendar month on the free tier.

    Never raises for provider or ledger failures. Both fall back to the free
    tier:
    - provider failure -> usage still read from the ledger, Resolution.DEGRADED
    - ledger failure -> 0 used, Resolution.FAILED

    Args:
        db: Database session
        user_identifier: Internal UUID or identity-provider user id
        provider: Billing provider (defaults to the configured one)
        now: Clock override

    Returns:
        CreditBalance
    """
    now = _as_utc(now) or datetime.now(timezone.utc)
    user_refs = resolve_user_refs(db, user_identifier)
    identity = build_billing_identity(db, user_identifier)

    resolution = Resolution.RESOLVED
    error = None
    found = None

    try:
        provider = provider or get_billing_provider()
        found = provider.find_active_subscription(db, identity)
    except Exception as e:
        # Fail open: a billing outage must not lock users out of the free tier
        logger.error(f"Billing provider lookup failed for user={user_identifier}, using free tier: {e}")
        resolution = Resolution.DEGRADED
        error = f"billing provider unavailable: {e}"
        found = None

    if found is not None and found.status == "active":
        plan = _plan_for_subscription(found)
        status = "active"
    else:
        found = None
        plan = PLANS["free"]
        status = "inactive"
    window = _usage_window(found, now)

    try:
        used = get_used_credits(db, user_refs, window)
    except SQLAlchemyError as e:
        logger.error(f"Ledger query failed for user={user_identifier}, using free tier with 0 used: {e}")
        db.rollback()
        used = 0
        plan = PLANS["free"]
        status = "inactive"
        window = month_window(now)
        resolution = Resolution.FAILED
        error = f"ledger unavailable: {e}"

    remaining = max(0, plan.credits - used)

    balance = CreditBalance(
        total=plan.credits,
        used=used,
        remaining=remaining,
        plan=plan.id,
        plan_name=plan.name,
        status=status,
        is_active=status == "active" and remaining >= 0,
        resolution=resolution,
        error=error,
        period_start=window.start,
        period_end=window.end,
        window=window,
        resolved_at=now,
        user_refs=user_refs,
    )

    logger.debug(
        f"Balance resolved: user={user_identifier}, plan={balance.plan}, total={balance.total}, "
        f"used={balance.used}, remaining={balance.remaining}, resolution={resolution.value}"
    )
    return balance


def resolve_cost(feature: str, amount: Optional[int] = None) -> int:
    """
    Credits to charge for one use of a feature.

    Raises:
        UnknownFeatureError: feature unknown and no explicit amount
        InvalidCreditAmountError: amount is not a positive integer
    """
    if amount is None:
        return get_credit_cost(feature)
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidCreditAmountError(amount)
    return amount


def consume_credits(
    db: Session,
    user_identifier: str,
    feature: str,
    amount: Optional[int] = None,
    provider: Optional[BillingProvider] = None,
    now: Optional[datetime] = None
) -> ConsumptionResult:
    """
    Charge a user for one use of a feature.

    The balance is re-resolved, then exactly one usage event is appended by a
    conditional insert that re-checks the ledger in the same statement.
    Requests are not deduplicated: submitting the same request twice charges
    twice.

    Args:
        db: Database session
        user_identifier: Internal UUID or identity-provider user id
        feature: Feature name
        amount: Credits to charge (defaults to the feature's cost)
        provider: Billing provider override
        now: Clock override, also the timestamp of the new event

    Returns:
        ConsumptionResult; success=False with unchanged remaining when the
        balance does not cover the cost

    Raises:
        UnknownFeatureError, InvalidCreditAmountError: bad input
        CreditLedgerError: the ledger could not be read or written
    """
    cost = resolve_cost(feature, amount)
    balance = resolve_balance(db, user_identifier, provider, now)

    if balance.resolution == Resolution.FAILED:
        raise CreditLedgerError(balance.error or "ledger unavailable")

    if balance.remaining < cost:
        logger.warning(
            f"Insufficient credits: user={user_identifier}, feature={feature}, "
            f"required={cost}, remaining={balance.remaining}, plan={balance.plan}"
        )
        return ConsumptionResult(
            success=False,
            feature=feature,
            charged=0,
            required=cost,
            remaining=balance.remaining,
            message=f"Insufficient credits. Need {cost}, have {balance.remaining}",
            balance=balance,
        )

    user_ref = balance.user_refs[0]
    try:
        lock_user_row(db, user_ref)
        written = append_usage_event_if_within(
            db,
            user_ref=user_ref,
            user_refs=balance.user_refs,
            feature=feature,
            amount=cost,
            total=balance.total,
            window=balance.window,
            now=balance.resolved_at,
        )
        used_now = get_used_credits(db, balance.user_refs, balance.window)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Ledger write failed: user={user_identifier}, feature={feature}: {e}")
        raise CreditLedgerError(f"ledger write failed: {e}") from e

    updated = replace(balance, used=used_now, remaining=max(0, balance.total - used_now))

    if not written:
        # Another request spent the balance between our read and our write
        return ConsumptionResult(
            success=False,
            feature=feature,
            charged=0,
            required=cost,
            remaining=updated.remaining,
            message=f"Insufficient credits. Need {cost}, have {updated.remaining}",
            balance=updated,
        )

    logger.info(
        f"Credits consumed: user={user_identifier}, feature={feature}, charged={cost}, "
        f"used={updated.used}/{updated.total}, remaining={updated.remaining}"
    )
    return ConsumptionResult(
        success=True,
        feature=feature,
        charged=cost,
        required=cost,
        remaining=updated.remaining,
        message=f"Successfully deducted {cost} credits",
        balance=updated,
    )


def check_credits(
    db: Session,
    user_identifier: str,
    feature: str,
    amount: Optional[int] = None,
    provider: Optional[BillingProvider] = None
) -> Dict[str, Any]:
    """Read-only affordability check; never writes to the ledger."""
    cost = resolve_cost(feature, amount)
    balance = resolve_balance(db, user_identifier, provider)
    return {
        "feature": feature,
        "hasEnough": balance.remaining >= cost,
        "requiredCredits": cost,
        "remainingCredits": balance.remaining,
        "subscription": balance.to_subscription_payload(),
    }


def get_credit_overview(
    db: Session,
    user_identifier: str,
    provider: Optional[BillingProvider] = None,
    recent_limit: int = 10
) -> Dict[str, Any]:
    """Balance, plan details and usage analytics for GET /api/user/credits."""
    balance = resolve_balance(db, user_identifier, provider)
    plan = PLANS[balance.plan]

    usage_by_action: Dict[str, int] = {}
    recent_usage: List[Dict[str, Any]] = []
    if balance.resolution != Resolution.FAILED:
        try:
            usage_by_action = get_usage_breakdown(db, balance.user_refs, balance.window)
            recent_usage = [
                {
                    "feature": event.feature,
                    "credits": event.amount,
                    "createdAt": event.created_at.isoformat() if event.created_at else None,
                }
                for event in get_recent_usage(db, balance.user_refs, recent_limit)
            ]
        except SQLAlchemyError as e:
            logger.warning(f"Usage analytics unavailable for user={user_identifier}: {e}")
            db.rollback()

    return {
        "subscription": balance.to_subscription_payload(),
        "plan": {
            "id": plan.id,
            "name": plan.name,
            "price": plan.price,
            "credits": plan.credits,
            "features": list(plan.features),
        },
        "analytics": {
            "totalUsed": balance.used,
            "usageByAction": usage_by_action,
            "recentUsage": recent_usage,
        },
    }

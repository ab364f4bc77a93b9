"""
Credit balance and consumption endpoints.

Errors use the flat {"error": ...} body the frontend cache already parses.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from resumeforge.core import config
from resumeforge.core.auth_dependency import get_db, get_current_user_obj
from resumeforge.core.credit_costs import FEATURE_COSTS, FEATURE_DESCRIPTIONS
from resumeforge.core.exceptions import (
    BillingProviderError,
    CreditLedgerError,
    InvalidCreditAmountError,
    UnknownFeatureError,
)
from resumeforge.core.plan_catalog import PLAN_ORDER, PLANS
from resumeforge.db.models.user import User
from resumeforge.schemas.credits import (
    CheckCreditsRequest,
    CheckCreditsResponse,
    ConsumeCreditsRequest,
    ConsumeCreditsResponse,
    CreditErrorResponse,
    CreditOverviewResponse,
    PlanCatalogResponse,
    SyncCreditsResponse,
)
from resumeforge.services.billing_provider import (
    BillingProvider,
    DatabaseBillingProvider,
    StripeBillingProvider,
    get_billing_provider,
)
from resumeforge.services.billing_service import sync_subscription_from_provider
from resumeforge.services.credit_service import (
    check_credits,
    consume_credits,
    get_credit_overview,
    resolve_balance,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user/credits", tags=["Credits"])
plans_router = APIRouter(prefix="/api/plans", tags=["Plans"])


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


@router.get("", response_model=CreditOverviewResponse)
def get_credits(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    provider=Depends(get_billing_provider),
):
    """
    Get the authenticated user's credit balance, plan and usage this month.
    
    Never fails on billing-provider outages: the subscription's `resolution`
    field reports `degraded` when the free-tier default was applied.
    """
    overview = get_credit_overview(db, user.id, provider)
    logger.debug(
        f"Credits requested: user_id={user.id}, plan={overview['subscription']['plan']}, "
        f"remaining={overview['subscription']['remainingCredits']}"
    )
    return overview


@router.post(
    "/consume",
    response_model=ConsumeCreditsResponse,
    responses={
        400: {"model": CreditErrorResponse},
        402: {"model": CreditErrorResponse},
        500: {"model": CreditErrorResponse},
    },
)
def consume(
    body: ConsumeCreditsRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    provider=Depends(get_billing_provider),
):
    """
    Charge the authenticated user for one use of a feature.
    
    Not idempotent: every successful call appends one usage event.
    """
    try:
        result = consume_credits(db, user.id, body.feature, body.amount, provider)
    except (UnknownFeatureError, InvalidCreditAmountError) as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except CreditLedgerError as e:
        logger.error(f"Credit consumption failed: user_id={user.id}, feature={body.feature}: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Credit ledger unavailable")
    
    if not result.success:
        return error_response(
            status.HTTP_402_PAYMENT_REQUIRED,
            result.message,
            remainingCredits=result.remaining,
            requiredCredits=result.required,
        )
    
    return {
        "success": True,
        "message": result.message,
        "subscription": result.balance.to_subscription_payload(),
    }


@router.post(
    "/check",
    response_model=CheckCreditsResponse,
    responses={400: {"model": CreditErrorResponse}},
)
def check(
    body: CheckCreditsRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    provider=Depends(get_billing_provider),
):
    """Check whether the user can afford a feature without charging."""
    try:
        return check_credits(db, user.id, body.feature, body.amount, provider)
    except (UnknownFeatureError, InvalidCreditAmountError) as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))


def get_sync_provider() -> Optional[BillingProvider]:
    """Live Stripe lookup for /sync, or None when Stripe is not configured."""
    if not config.STRIPE_SECRET_KEY:
        return None
    return StripeBillingProvider()


@router.post(
    "/sync",
    response_model=SyncCreditsResponse,
    responses={
        502: {"model": CreditErrorResponse},
        503: {"model": CreditErrorResponse},
    },
)
def sync(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    provider: Optional[BillingProvider] = Depends(get_sync_provider),
):
    """
    Re-sync the stored subscription from Stripe.
    
    Recovers from missed webhooks when credits are read from the database.
    The returned balance is resolved from the freshly synced record.
    """
    if provider is None:
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Stripe not configured")
    
    try:
        record = sync_subscription_from_provider(db, user, provider)
    except BillingProviderError as e:
        logger.error(f"Subscription sync failed: user_id={user.id}: {e}")
        return error_response(
            status.HTTP_502_BAD_GATEWAY, "Payment provider unavailable. Please try again later."
        )
    
    balance = resolve_balance(db, user.id, DatabaseBillingProvider())
    if record is not None:
        message = "Subscription synced with Stripe"
    else:
        message = "No active subscription found; using current credit balance"
    return {
        "success": True,
        "syncPerformed": record is not None,
        "message": message,
        "subscription": balance.to_subscription_payload(),
    }


@plans_router.get("", response_model=PlanCatalogResponse)
def list_plans():
    """Public plan catalog and per-feature credit costs."""
    return {
        "plans": [
            {
                "id": PLANS[plan_id].id,
                "name": PLANS[plan_id].name,
                "price": PLANS[plan_id].price,
                "credits": PLANS[plan_id].credits,
                "features": list(PLANS[plan_id].features),
            }
            for plan_id in PLAN_ORDER
        ],
        "featureCosts": [
            {"feature": feature, "credits": cost, "description": FEATURE_DESCRIPTIONS.get(feature, "")}
            for feature, cost in FEATURE_COSTS.items()
        ],
    }

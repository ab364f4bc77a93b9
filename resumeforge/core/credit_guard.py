"""
Credit enforcement dependency for AI features.

require_credits() authenticates the user and hands the route a CreditCharge.
Dependencies resolve before the request body is validated, so the charge
itself runs when the route calls it, never for a request FastAPI rejects.
"""
import logging
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from resumeforge.core.auth_dependency import get_db, get_current_user_obj
from resumeforge.core.config import FRONTEND_URL
from resumeforge.core.exceptions import CreditLedgerError
from resumeforge.db.models.user import User
from resumeforge.services.billing_provider import BillingProvider, get_billing_provider
from resumeforge.services.credit_service import ConsumptionResult, consume_credits

logger = logging.getLogger(__name__)


def insufficient_credits_detail(result: ConsumptionResult) -> dict:
    return {
        "error": "insufficient_credits",
        "message": result.message,
        "feature": result.feature,
        "plan": result.balance.plan,
        "requiredCredits": result.required,
        "remainingCredits": result.remaining,
        "upgrade_url": f"{FRONTEND_URL}/dashboard/plans",
    }


class CreditCharge:
    """One pending charge of a feature's cost for the current user."""

    def __init__(self, db: Session, user: User, feature: str, provider: BillingProvider):
        self.db = db
        self.user = user
        self.feature = feature
        self.provider = provider

    def __call__(self) -> ConsumptionResult:
        """
        Charge the feature.
        
        Returns:
            ConsumptionResult of the successful charge
            
        Raises:
            HTTPException 402: Balance does not cover the feature
            HTTPException 500: Ledger unavailable
        """
        try:
            result = consume_credits(self.db, self.user.id, self.feature, provider=self.provider)
        except CreditLedgerError as e:
            logger.error(f"Credit charge failed: user_id={self.user.id}, feature={self.feature}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"error": "Credit ledger unavailable"},
            )
        
        if not result.success:
            raise HTTPException(
                status_code=status.HTTP_402_PAYMENT_REQUIRED,
                detail=insufficient_credits_detail(result),
            )
        
        return result


def require_credits(feature: str):
    """
    Dependency factory for credit-gated routes.
    
    Args:
        feature: Feature name (key of FEATURE_COSTS)
    
    Returns:
        Dependency yielding a CreditCharge; 401 if unauthenticated
    """
    def credit_checker(
        user: User = Depends(get_current_user_obj),
        db: Session = Depends(get_db),
        provider: BillingProvider = Depends(get_billing_provider),
    ) -> CreditCharge:
        return CreditCharge(db, user, feature, provider)
    
    return credit_checker

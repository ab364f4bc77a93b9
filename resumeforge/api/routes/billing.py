"""
Stripe checkout and webhook endpoints.
"""
import logging
import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from resumeforge.core.auth_dependency import get_db, get_current_user_obj
from resumeforge.core.exceptions import WebhookVerificationError
from resumeforge.db.models.user import User
from resumeforge.schemas.billing import (
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    WebhookAck,
)
from resumeforge.services import stripe_service
from resumeforge.services.billing_service import process_webhook_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["Billing"])


@router.post("/create-checkout-session", response_model=CreateCheckoutSessionResponse)
def create_checkout_session(
    body: CreateCheckoutSessionRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """Start a Stripe Checkout session for the requested plan."""
    try:
        session = stripe_service.create_checkout_session(
            user, body.plan, body.success_url, body.cancel_url, db
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": str(e)})
    except stripe.error.StripeError as e:
        logger.error(f"Stripe error creating checkout session: user_id={user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Payment provider unavailable. Please try again later."},
        )
    
    return {"checkout_url": session.url, "session_id": session.id}


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Receive Stripe events.
    
    Signature failures return 400. Events that reference an unknown user or
    subscription are acknowledged (Stripe would otherwise retry forever) and
    logged. Anything else propagates as 500 so Stripe retries.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    
    try:
        event = stripe_service.verify_webhook(payload, signature)
    except WebhookVerificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": str(e)})
    
    event_type = event["type"]
    try:
        handled = process_webhook_event(event, db)
    except ValueError as e:
        logger.warning(f"Webhook {event_type} could not be applied: {e}")
        handled = False
    
    return {"received": True, "event_type": event_type, "handled": handled}

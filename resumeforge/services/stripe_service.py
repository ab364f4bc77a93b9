"""
Stripe service for checkout sessions and webhook verification.
"""
import logging
from typing import Optional

import stripe
from sqlalchemy.orm import Session

from resumeforge.core.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from resumeforge.core.exceptions import WebhookVerificationError
from resumeforge.core.plan_catalog import get_price_id_from_plan
from resumeforge.db.models.subscription import Subscription
from resumeforge.db.models.user import User
from resumeforge.services.billing_provider import stripe_to_dict

logger = logging.getLogger(__name__)

# Initialize Stripe client
if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY
else:
    logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")


def get_or_create_customer_id(user: User, db: Session) -> str:
    """
    Get the user's Stripe customer ID, creating the customer if needed.
    
    The customer carries auth_user_id in its metadata so it can be found by
    metadata search when the stored reference is missing.
    """
    subscription = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    if subscription and subscription.stripe_customer_id:
        return subscription.stripe_customer_id
    
    customer = stripe.Customer.create(
        email=user.email,
        name=user.full_name,
        metadata={"user_id": user.id, "auth_user_id": user.auth_user_id}
    )
    
    if not subscription:
        subscription = Subscription(user_id=user.id, plan_type="free", status="inactive")
        db.add(subscription)
    subscription.stripe_customer_id = customer.id
    db.commit()
    
    logger.info(f"Created Stripe customer: customer_id={customer.id}, user_id={user.id}")
    return customer.id


def create_checkout_session(
    user: User,
    plan: str,
    success_url: str,
    cancel_url: str,
    db: Session
):
    """
    Create a Stripe checkout session for a subscription.
    
    Args:
        user: User object
        plan: Plan ID (basic, standard or pro)
        success_url: URL to redirect after successful payment
        cancel_url: URL to redirect if payment is canceled
        db: Database session
        
    Returns:
        Stripe checkout session object
        
    Raises:
        ValueError: unknown plan or Stripe not configured
    """
    if not STRIPE_SECRET_KEY:
        raise ValueError("Stripe not configured - STRIPE_SECRET_KEY required")
    
    price_id = get_price_id_from_plan(plan)
    if not price_id:
        raise ValueError(f"Invalid plan type: {plan}. Must be 'basic', 'standard' or 'pro'")
    
    customer_id = get_or_create_customer_id(user, db)
    metadata = {
        "user_id": user.id,
        "auth_user_id": user.auth_user_id,
        "plan": plan
    }
    
    session = stripe.checkout.Session.create(
        customer=customer_id,
        payment_method_types=["card"],
        mode="subscription",
        line_items=[{
            "price": price_id,
            "quantity": 1,
        }],
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata,
        subscription_data={"metadata": metadata},
        allow_promotion_codes=True,
    )
    
    logger.info(f"Created checkout session: session_id={session.id}, user_id={user.id}, plan={plan}")
    
    return session


def retrieve_subscription(subscription_id: str) -> Optional[dict]:
    """Fetch a subscription from Stripe as a plain dict, or None if the call fails."""
    try:
        return stripe_to_dict(stripe.Subscription.retrieve(subscription_id))
    except stripe.error.StripeError as e:
        logger.warning(f"Failed to retrieve subscription from Stripe: subscription_id={subscription_id}: {e}")
        return None


def verify_webhook(request_body: bytes, signature: Optional[str]) -> dict:
    """
    Verify and parse Stripe webhook event.
    
    Args:
        request_body: Raw request body bytes
        signature: Stripe-Signature header value
    
    Returns:
        The event as a plain dict
    
    Raises:
        WebhookVerificationError: If webhook verification fails
    """
    if not STRIPE_WEBHOOK_SECRET:
        raise WebhookVerificationError("STRIPE_WEBHOOK_SECRET not configured")
    if not signature:
        raise WebhookVerificationError("Missing Stripe-Signature header")
    
    try:
        event = stripe_to_dict(stripe.Webhook.construct_event(
            request_body, signature, STRIPE_WEBHOOK_SECRET
        ))
        logger.info(f"Verified webhook event: {event.get('type')}, id={event.get('id')}")
        return event
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise WebhookVerificationError(f"Invalid webhook payload: {e}")
    except stripe.error.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise WebhookVerificationError(f"Invalid signature: {e}")

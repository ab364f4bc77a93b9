"""
Billing webhook processing.

Maps Stripe events onto the subscriptions table. Records are keyed by the
Stripe subscription/customer IDs and the user ID carried in event metadata.
"""
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from resumeforge.core.logging_config import sanitize_log_data
from resumeforge.core.plan_catalog import PLANS, get_plan_from_price_id
from resumeforge.db.models.subscription import Subscription
from resumeforge.db.models.user import User
from resumeforge.services.billing_provider import (
    BillingProvider,
    ProviderSubscription,
    build_billing_identity,
    provider_subscription_from_stripe,
    stripe_to_dict,
    timestamp_to_datetime,
)
from resumeforge.services.stripe_service import retrieve_subscription

logger = logging.getLogger(__name__)


def _find_user(db: Session, metadata: Dict, customer_email: Optional[str] = None) -> Optional[User]:
    user_id = metadata.get("user_id")
    if user_id:
        user = db.query(User).filter(User.id == user_id).first()
        if user:
            return user
    auth_user_id = metadata.get("auth_user_id")
    if auth_user_id:
        user = db.query(User).filter(User.auth_user_id == auth_user_id).first()
        if user:
            return user
    if customer_email:
        return db.query(User).filter(User.email == customer_email).first()
    return None


def _find_subscription(
    db: Session,
    subscription_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    metadata: Optional[Dict] = None
) -> Optional[Subscription]:
    """Find a record by Stripe subscription ID, then customer ID, then metadata user."""
    if subscription_id:
        found = db.query(Subscription).filter(
            Subscription.stripe_subscription_id == subscription_id
        ).first()
        if found:
            return found
    if customer_id:
        found = db.query(Subscription).filter(
            Subscription.stripe_customer_id == customer_id
        ).first()
        if found:
            return found
    if metadata:
        user = _find_user(db, metadata)
        if user:
            return db.query(Subscription).filter(Subscription.user_id == user.id).first()
    return None


def _apply_provider_subscription(
    record: Subscription,
    found: ProviderSubscription,
    plan_hint: Optional[str] = None
) -> None:
    """Copy status, price, plan and period bounds onto the stored record."""
    record.stripe_subscription_id = found.subscription_id or record.stripe_subscription_id
    record.stripe_customer_id = found.customer_id or record.stripe_customer_id
    record.status = found.status
    record.current_period_start = found.current_period_start
    record.current_period_end = found.current_period_end
    
    if found.price_id:
        record.stripe_price_id = found.price_id
        plan = get_plan_from_price_id(found.price_id)
        if plan:
            record.plan_type = plan.id
    elif plan_hint in PLANS:
        record.plan_type = plan_hint


def _apply_stripe_subscription(record: Subscription, subscription_data, plan_hint: Optional[str] = None) -> None:
    _apply_provider_subscription(record, provider_subscription_from_stripe(subscription_data), plan_hint)


def handle_checkout_session_completed(event_data: Dict, db: Session) -> Subscription:
    """
    Handle checkout.session.completed webhook event.
    
    Args:
        event_data: Stripe event data object
        db: Database session
        
    Returns:
        Upserted subscription object
    """
    session_data = event_data.get("object", {})
    customer_id = session_data.get("customer")
    subscription_id = session_data.get("subscription")
    customer_email = session_data.get("customer_email") or (session_data.get("customer_details") or {}).get("email")
    metadata = session_data.get("metadata") or {}
    plan = metadata.get("plan")
    
    user = _find_user(db, metadata, customer_email)
    if not user:
        raise ValueError("Cannot identify user from checkout session")
    
    subscription = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    if not subscription:
        subscription = Subscription(user_id=user.id, plan_type="free", status="inactive")
        db.add(subscription)
    
    subscription.stripe_customer_id = customer_id
    subscription.stripe_subscription_id = subscription_id
    subscription.status = "active"
    if plan in PLANS:
        subscription.plan_type = plan
    
    if subscription_id:
        stripe_sub = retrieve_subscription(subscription_id)
        if stripe_sub:
            _apply_stripe_subscription(subscription, stripe_sub, plan_hint=plan)
    
    db.commit()
    db.refresh(subscription)
    
    logger.info(
        f"Checkout completed: user_id={user.id}, plan={subscription.plan_type}, "
        f"status={subscription.status}, subscription_id={subscription_id}"
    )
    return subscription


def handle_subscription_upsert(event_data: Dict, db: Session) -> Subscription:
    """
    Handle customer.subscription.created and customer.subscription.updated.
    
    Creates the record when the metadata identifies a user without one.
    """
    subscription_data = event_data.get("object", {})
    subscription_id = subscription_data.get("id")
    customer_id = subscription_data.get("customer")
    metadata = subscription_data.get("metadata") or {}
    
    record = _find_subscription(db, subscription_id, customer_id, metadata)
    if not record:
        user = _find_user(db, metadata)
        if not user:
            raise ValueError(f"Subscription record not found for subscription_id={subscription_id}")
        record = Subscription(user_id=user.id, plan_type="free", status="inactive")
        db.add(record)
    
    _apply_stripe_subscription(record, subscription_data, plan_hint=metadata.get("plan"))
    
    db.commit()
    db.refresh(record)
    
    logger.info(
        f"Subscription synced: user_id={record.user_id}, status={record.status}, "
        f"plan={record.plan_type}, subscription_id={subscription_id}"
    )
    return record


def handle_subscription_deleted(event_data: Dict, db: Session) -> Optional[str]:
    """
    Handle customer.subscription.deleted webhook event.
    
    Removes the record; the user reverts to the implicit free tier.
    
    Returns:
        ID of the user who was downgraded
    """
    subscription_data = event_data.get("object", {})
    subscription_id = subscription_data.get("id")
    
    record = _find_subscription(db, subscription_id=subscription_id)
    if not record:
        raise ValueError(f"Subscription not found for subscription_id={subscription_id}")
    
    user_id = record.user_id
    db.delete(record)
    db.commit()
    
    logger.info(f"Subscription deleted: user_id={user_id}, downgraded to free, subscription_id={subscription_id}")
    return user_id


def _invoice_subscription_id(invoice_data: Dict) -> Optional[str]:
    subscription_id = invoice_data.get("subscription")
    if subscription_id:
        return subscription_id
    # Newer API versions nest it under parent.subscription_details
    details = (invoice_data.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


def handle_invoice_payment_succeeded(event_data: Dict, db: Session) -> Optional[Subscription]:
    """
    Handle invoice.payment_succeeded webhook event.
    
    Keeps the subscription active and rolls the billing period forward.
    """
    invoice_data = event_data.get("object", {})
    subscription_id = _invoice_subscription_id(invoice_data)
    
    if not subscription_id:
        logger.warning("invoice.payment_succeeded: No subscription ID in invoice")
        return None
    
    record = _find_subscription(db, subscription_id, invoice_data.get("customer"))
    if not record:
        logger.warning(f"invoice.payment_succeeded: Subscription not found for subscription_id={subscription_id}")
        return None
    
    record.status = "active"
    lines = (invoice_data.get("lines") or {}).get("data") or []
    if lines:
        period = lines[0].get("period") or {}
        record.current_period_start = timestamp_to_datetime(period.get("start")) or record.current_period_start
        record.current_period_end = timestamp_to_datetime(period.get("end")) or record.current_period_end
    
    db.commit()
    
    logger.info(f"Invoice payment succeeded: user_id={record.user_id}, subscription_id={subscription_id}")
    return record


def handle_invoice_payment_failed(event_data: Dict, db: Session) -> Optional[Subscription]:
    """
    Handle invoice.payment_failed webhook event.
    
    Updates subscription status to past_due.
    """
    invoice_data = event_data.get("object", {})
    subscription_id = _invoice_subscription_id(invoice_data)
    
    if not subscription_id:
        logger.warning("invoice.payment_failed: No subscription ID in invoice")
        return None
    
    record = _find_subscription(db, subscription_id, invoice_data.get("customer"))
    if not record:
        logger.warning(f"invoice.payment_failed: Subscription not found for subscription_id={subscription_id}")
        return None
    
    record.status = "past_due"
    db.commit()
    
    logger.warning(f"Invoice payment failed: user_id={record.user_id}, subscription_id={subscription_id}")
    return record


WEBHOOK_HANDLERS: Dict[str, Callable[[Dict, Session], object]] = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_upsert,
    "customer.subscription.updated": handle_subscription_upsert,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
    "invoice.payment_failed": handle_invoice_payment_failed,
}


def process_webhook_event(event, db: Session) -> bool:
    """
    Dispatch a verified Stripe event to its handler.
    
    Returns:
        True if the event type is handled, False if it was ignored
        
    Raises:
        ValueError: the event references a user or subscription we do not know
    """
    event = stripe_to_dict(event)
    event_type = event["type"]
    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
        return False
    
    event_object = event["data"].get("object") or {}
    logger.debug(
        f"Processing {event_type}: "
        f"{sanitize_log_data(dict(event_object.get('metadata') or {}))}"
    )
    handler(event["data"], db)
    return True


def sync_subscription_from_provider(
    db: Session,
    user: User,
    provider: BillingProvider
) -> Optional[Subscription]:
    """
    Pull the user's live subscription and upsert the stored record.

    Recovers from missed webhooks when credits are resolved from the
    database. The stored record is left alone when the provider reports no
    active subscription.

    Returns:
        The synced record, or None when there was nothing to sync

    Raises:
        BillingProviderError: the provider could not be queried
    """
    found = provider.find_active_subscription(db, build_billing_identity(db, user.id))
    if found is None:
        logger.info(f"Subscription sync found no active subscription: user_id={user.id}")
        return None

    record = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    if not record:
        record = Subscription(user_id=user.id, plan_type="free", status="inactive")
        db.add(record)

    _apply_provider_subscription(record, found, plan_hint=found.plan_id)
    db.commit()
    db.refresh(record)

    logger.info(
        f"Subscription synced from {provider.name}: user_id={user.id}, plan={record.plan_type}, "
        f"status={record.status}, subscription_id={record.stripe_subscription_id}"
    )
    return record

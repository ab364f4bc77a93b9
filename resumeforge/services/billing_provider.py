"""
Billing provider adapters.

Answer one question for the credit resolver: does this user currently have
an active paid subscription, and at which price?

Stripe SDK objects are not dicts in current releases of the library, so
everything read from Stripe goes through stripe_to_dict() first.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from resumeforge.core import config
from resumeforge.core.exceptions import BillingProviderError
from resumeforge.db.models.subscription import Subscription
from resumeforge.db.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class BillingIdentity:
    """What the provider may use to find a user's customer record."""
    user_identifier: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    auth_user_id: Optional[str] = None
    customer_id: Optional[str] = None


@dataclass
class ProviderSubscription:
    """Provider-neutral view of an active paid subscription."""
    price_id: Optional[str]
    status: str
    subscription_id: Optional[str] = None
    customer_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    plan_id: Optional[str] = None  # set when the source already knows the plan


def stripe_to_dict(stripe_object) -> Dict[str, Any]:
    """Plain nested-dict copy of a Stripe SDK object; plain dicts pass through."""
    if stripe_object is None:
        return {}
    if isinstance(stripe_object, dict):
        return stripe_object
    return stripe_object.to_dict()


def timestamp_to_datetime(value) -> Optional[datetime]:
    """Convert a Stripe unix timestamp to an aware datetime."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _first_item(subscription_data: Dict[str, Any]) -> Dict[str, Any]:
    items = (subscription_data.get("items") or {}).get("data") or [{}]
    return items[0] or {}


def _period_bounds(subscription_data: Dict[str, Any]):
    """
    Read the billing period from a Stripe subscription.

    Newer API versions moved the period fields onto subscription items.
    """
    start = subscription_data.get("current_period_start")
    end = subscription_data.get("current_period_end")
    if start is None or end is None:
        item = _first_item(subscription_data)
        start = start or item.get("current_period_start")
        end = end or item.get("current_period_end")
    return timestamp_to_datetime(start), timestamp_to_datetime(end)


def provider_subscription_from_stripe(subscription) -> ProviderSubscription:
    """Build a ProviderSubscription from a Stripe Subscription or its dict form."""
    data = stripe_to_dict(subscription)
    period_start, period_end = _period_bounds(data)
    customer = data.get("customer")
    if isinstance(customer, dict):
        customer = customer.get("id")
    return ProviderSubscription(
        price_id=(_first_item(data).get("price") or {}).get("id"),
        status=data.get("status") or "inactive",
        subscription_id=data.get("id"),
        customer_id=customer,
        current_period_start=period_start,
        current_period_end=period_end,
    )


def search_literal(value: str) -> str:
    """Quote a value for the Stripe search query language."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def build_billing_identity(db: Session, user_identifier: str) -> BillingIdentity:
    """Collect the email, external id and stored customer id a provider can search by."""
    identity = BillingIdentity(user_identifier=user_identifier, auth_user_id=user_identifier)
    try:
        user = db.query(User).filter(
            (User.id == user_identifier) | (User.auth_user_id == user_identifier)
        ).first()
        if user is None:
            return identity
        identity.user_id = user.id
        identity.email = user.email
        identity.auth_user_id = user.auth_user_id
        subscription = db.query(Subscription).filter(Subscription.user_id == user.id).first()
        if subscription and subscription.stripe_customer_id:
            identity.customer_id = subscription.stripe_customer_id
    except SQLAlchemyError as e:
        logger.warning(f"Billing identity lookup failed for user={user_identifier}: {e}")
        db.rollback()
    return identity


class BillingProvider(ABC):
    """Abstract source of subscription truth."""

    name = "abstract"

    @abstractmethod
    def find_active_subscription(
        self,
        db: Session,
        identity: BillingIdentity
    ) -> Optional[ProviderSubscription]:
        """
        Find the user's active paid subscription.
        
        Returns:
            ProviderSubscription, or None when the user has no paid plan
            
        Raises:
            BillingProviderError: if the provider cannot be queried
        """
        pass


class StripeBillingProvider(BillingProvider):
    """Queries Stripe directly on every resolution."""

    name = "stripe"

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or config.STRIPE_SECRET_KEY
        if not self.api_key:
            raise ValueError("STRIPE_SECRET_KEY not configured")

    def _find_customer_id(self, identity: BillingIdentity) -> Optional[str]:
        if identity.customer_id:
            return identity.customer_id
        
        if identity.email:
            customers = stripe.Customer.list(email=identity.email, limit=10, api_key=self.api_key)
            if customers.data:
                logger.debug(f"Found Stripe customer by email for user={identity.user_identifier}")
                return customers.data[0].id
        
        auth_user_id = identity.auth_user_id or identity.user_identifier
        result = stripe.Customer.search(
            query=f"metadata['auth_user_id']:{search_literal(auth_user_id)}",
            limit=1,
            api_key=self.api_key,
        )
        if result.data:
            logger.debug(f"Found Stripe customer by metadata for user={identity.user_identifier}")
            return result.data[0].id
        return None

    def find_active_subscription(
        self,
        db: Session,
        identity: BillingIdentity
    ) -> Optional[ProviderSubscription]:
        try:
            customer_id = self._find_customer_id(identity)
            if not customer_id:
                logger.debug(f"No Stripe customer for user={identity.user_identifier}")
                return None
            
            subscriptions = stripe.Subscription.list(
                customer=customer_id,
                status="active",
                limit=1,
                api_key=self.api_key,
            )
        except stripe.error.StripeError as e:
            raise BillingProviderError(f"Stripe lookup failed: {e}") from e
        
        if not subscriptions.data:
            logger.debug(f"No active Stripe subscription for customer_id={customer_id}")
            return None
        
        found = provider_subscription_from_stripe(subscriptions.data[0])
        found.customer_id = found.customer_id or customer_id
        return found


class DatabaseBillingProvider(BillingProvider):
    """Reads the subscription table kept in sync by Stripe webhooks."""

    name = "database"

    def find_active_subscription(
        self,
        db: Session,
        identity: BillingIdentity
    ) -> Optional[ProviderSubscription]:
        if not identity.user_id:
            return None
        
        subscription = db.query(Subscription).filter(
            Subscription.user_id == identity.user_id
        ).first()
        
        if not subscription or subscription.status != "active" or subscription.plan_type == "free":
            return None
        
        return ProviderSubscription(
            price_id=subscription.stripe_price_id,
            status=subscription.status,
            subscription_id=subscription.stripe_subscription_id,
            customer_id=subscription.stripe_customer_id,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            plan_id=subscription.plan_type,
        )


def get_billing_provider() -> BillingProvider:
    """Pick the provider configured by BILLING_SOURCE."""
    if config.BILLING_SOURCE == "stripe" and config.STRIPE_SECRET_KEY:
        return StripeBillingProvider()
    return DatabaseBillingProvider()

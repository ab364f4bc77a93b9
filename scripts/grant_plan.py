"""
Script to put a user on a plan without going through Stripe checkout.

Only affects the database billing source (BILLING_SOURCE=database); with the
Stripe source the live subscription always wins.

Run: python -m scripts.grant_plan <email-or-auth-user-id> <plan>
"""
import sys
import logging

from resumeforge.core.plan_catalog import PLANS
from resumeforge.db.session import SessionLocal
from resumeforge.db.models.user import User
from resumeforge.db.models.subscription import Subscription

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def grant_plan(identifier: str, plan: str) -> bool:
    """Set the user's stored subscription to an active plan; free removes it."""
    if plan not in PLANS:
        logger.error(f"Unknown plan {plan}; expected one of {', '.join(PLANS)}")
        return False

    db = SessionLocal()
    try:
        user = db.query(User).filter(
            (User.email == identifier.lower()) | (User.auth_user_id == identifier)
        ).first()
        if not user:
            logger.error(f"User {identifier} not found. Users are created on their first authenticated request.")
            return False

        subscription = db.query(Subscription).filter(Subscription.user_id == user.id).first()

        if plan == "free":
            if subscription:
                db.delete(subscription)
                db.commit()
            logger.info(f"User {identifier} reverted to the free tier")
            return True

        if subscription:
            logger.info(f"Updating existing subscription from {subscription.plan_type} to {plan}")
        else:
            logger.info(f"Creating subscription for user {user.id} with {plan} plan")
            subscription = Subscription(user_id=user.id)
            db.add(subscription)

        subscription.plan_type = plan
        subscription.status = "active"
        subscription.stripe_price_id = PLANS[plan].price_id
        db.commit()
        logger.info(f"User {identifier} is now on {PLANS[plan].name} ({PLANS[plan].credits} credits/month)")
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating user: {e}", exc_info=True)
        return False
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python -m scripts.grant_plan <email-or-auth-user-id> <plan>")
        sys.exit(2)

    if not grant_plan(sys.argv[1], sys.argv[2]):
        print(f"\n[ERROR] Failed to set plan for {sys.argv[1]}")
        sys.exit(1)
    print(f"\n[SUCCESS] {sys.argv[1]} is now on the {sys.argv[2]} plan")

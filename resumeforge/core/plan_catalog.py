"""
Subscription plan catalog.

Static table of plans, their monthly credit allotment and feature access,
plus the mapping from Stripe price IDs to plans.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from resumeforge.core.config import (
    FREE_TIER_CREDITS,
    STRIPE_PRICE_ID_BASIC,
    STRIPE_PRICE_ID_STANDARD,
    STRIPE_PRICE_ID_PRO,
)


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    credits: int
    price: float
    features: Tuple[str, ...] = field(default_factory=tuple)
    price_id: Optional[str] = None

    def has_feature(self, feature: str) -> bool:
        return feature in self.features


FREE_FEATURES = ("resume_generation", "cover_letter", "ai_suggestions")
BASIC_FEATURES = FREE_FEATURES + ("job_tailoring", "salary_research")
STANDARD_FEATURES = BASIC_FEATURES + ("linkedin_optimization", "mock_interview")
PRO_FEATURES = STANDARD_FEATURES + ("personal_brand_strategy",)

PLANS: Dict[str, Plan] = {
    "free": Plan("free", "Free", FREE_TIER_CREDITS, 0.0, FREE_FEATURES),
    "basic": Plan("basic", "Basic", 10, 9.99, BASIC_FEATURES, STRIPE_PRICE_ID_BASIC),
    "standard": Plan("standard", "Standard", 50, 19.99, STANDARD_FEATURES, STRIPE_PRICE_ID_STANDARD),
    "pro": Plan("pro", "Pro", 200, 49.99, PRO_FEATURES, STRIPE_PRICE_ID_PRO),
}

# Plans in upgrade order
PLAN_ORDER: List[str] = ["free", "basic", "standard", "pro"]

# Paid subscriptions with an unrecognized price still get a paid tier
FALLBACK_PAID_PLAN = "basic"


def _build_price_mappings() -> Dict[str, str]:
    """Build price ID -> plan mapping, skipping unset and placeholder IDs."""
    price_to_plan: Dict[str, str] = {}
    for plan in PLANS.values():
        if plan.price_id and not plan.price_id.startswith("price_your_"):
            price_to_plan[plan.price_id] = plan.id
    return price_to_plan


PRICE_ID_TO_PLAN = _build_price_mappings()


def get_plan(plan_id: Optional[str]) -> Plan:
    """Get a plan by ID, defaulting to free for empty or unknown IDs."""
    plan_id = plan_id.lower() if plan_id else "free"
    return PLANS.get(plan_id, PLANS["free"])


def get_plan_from_price_id(price_id: Optional[str]) -> Optional[Plan]:
    """
    Get the plan a Stripe price ID pays for.
    
    Unknown price IDs resolve to the fallback paid plan rather than failing,
    so a customer on a retired or misconfigured price is never locked out.
    
    Returns:
        Plan, or None when no price ID was given
    """
    if not price_id:
        return None
    plan_id = PRICE_ID_TO_PLAN.get(price_id, FALLBACK_PAID_PLAN)
    return PLANS[plan_id]


def get_price_id_from_plan(plan_id: str) -> Optional[str]:
    """Get the Stripe price ID for a purchasable plan."""
    plan = PLANS.get(plan_id.lower()) if plan_id else None
    if not plan or not plan.price_id or plan.price_id.startswith("price_your_"):
        return None
    return plan.price_id


def plan_has_feature(plan_id: str, feature: str) -> bool:
    return get_plan(plan_id).has_feature(feature)


def cheapest_plan_with_feature(feature: str) -> Optional[Plan]:
    """Lowest tier that unlocks a feature (used for upgrade prompts)."""
    for plan_id in PLAN_ORDER:
        if PLANS[plan_id].has_feature(feature):
            return PLANS[plan_id]
    return None

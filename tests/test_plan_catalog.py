"""
Unit tests for the plan catalog and feature costs.
"""
import pytest

from resumeforge.core import config
from resumeforge.core.credit_costs import (
    FEATURE_COSTS,
    get_credit_cost,
    has_enough_credits,
    is_known_feature,
)
from resumeforge.core.exceptions import UnknownFeatureError
from resumeforge.core.plan_catalog import (
    PLANS,
    cheapest_plan_with_feature,
    get_plan,
    get_plan_from_price_id,
    get_price_id_from_plan,
    plan_has_feature,
)


def test_plan_allotments_and_prices():
    assert (PLANS["free"].credits, PLANS["free"].price) == (3, 0.0)
    assert (PLANS["basic"].credits, PLANS["basic"].price) == (10, 9.99)
    assert (PLANS["standard"].credits, PLANS["standard"].price) == (50, 19.99)
    assert (PLANS["pro"].credits, PLANS["pro"].price) == (200, 49.99)


def test_get_plan_unknown_returns_free():
    assert get_plan("enterprise").id == "free"
    assert get_plan(None).id == "free"
    assert get_plan("").id == "free"


def test_known_price_ids_map_to_their_plan():
    assert get_plan_from_price_id(config.STRIPE_PRICE_ID_BASIC).id == "basic"
    assert get_plan_from_price_id(config.STRIPE_PRICE_ID_STANDARD).id == "standard"
    assert get_plan_from_price_id(config.STRIPE_PRICE_ID_PRO).id == "pro"


def test_unknown_price_id_falls_back_to_basic():
    """A paying customer on a price we don't know still gets a paid plan."""
    assert get_plan_from_price_id("price_legacy_2024").id == "basic"


def test_missing_price_id_returns_none():
    assert get_plan_from_price_id(None) is None
    assert get_plan_from_price_id("") is None


def test_get_price_id_from_plan():
    assert get_price_id_from_plan("pro") == config.STRIPE_PRICE_ID_PRO
    assert get_price_id_from_plan("free") is None
    assert get_price_id_from_plan("enterprise") is None


def test_feature_access_grows_with_plan():
    assert plan_has_feature("free", "resume_generation")
    assert plan_has_feature("free", "ai_suggestions")
    assert not plan_has_feature("free", "job_tailoring")
    assert plan_has_feature("basic", "job_tailoring")
    assert not plan_has_feature("basic", "mock_interview")
    assert plan_has_feature("standard", "mock_interview")
    assert not plan_has_feature("standard", "personal_brand_strategy")
    assert plan_has_feature("pro", "personal_brand_strategy")


def test_cheapest_plan_with_feature():
    assert cheapest_plan_with_feature("cover_letter").id == "free"
    assert cheapest_plan_with_feature("linkedin_optimization").id == "standard"
    assert cheapest_plan_with_feature("not_a_feature") is None


def test_feature_costs():
    assert FEATURE_COSTS["resume_generation"] == 5
    assert FEATURE_COSTS["job_tailoring"] == 3
    assert FEATURE_COSTS["mock_interview"] == 6
    assert FEATURE_COSTS["personal_brand_strategy"] == 8
    assert get_credit_cost("cover_letter") == 3


def test_unknown_feature_cost_raises():
    assert not is_known_feature("teleportation")
    with pytest.raises(UnknownFeatureError):
        get_credit_cost("teleportation")


def test_has_enough_credits():
    assert has_enough_credits(3, "cover_letter")
    assert not has_enough_credits(2, "cover_letter")

"""
Credit cost per AI feature.

Single source of truth for what each paid action charges.
"""
from typing import Dict

from resumeforge.core.exceptions import UnknownFeatureError

FEATURE_COSTS: Dict[str, int] = {
    "resume_generation": 5,
    "job_tailoring": 3,
    "mock_interview": 6,
    "linkedin_optimization": 4,
    "salary_research": 2,
    "cover_letter": 3,
    "personal_brand_strategy": 8,
    "ai_suggestions": 1,
}

FEATURE_DESCRIPTIONS: Dict[str, str] = {
    "resume_generation": "AI-powered resume creation with templates",
    "job_tailoring": "Customize resume for specific job applications",
    "mock_interview": "AI-powered interview practice and feedback",
    "linkedin_optimization": "Optimize LinkedIn profile and content",
    "salary_research": "Salary research and negotiation strategies",
    "cover_letter": "Generate personalized cover letters",
    "personal_brand_strategy": "Comprehensive personal branding strategy",
    "ai_suggestions": "AI writing suggestions for individual resume fields",
}


def is_known_feature(feature: str) -> bool:
    return feature in FEATURE_COSTS


def get_credit_cost(feature: str) -> int:
    """
    Get the credit cost of a feature.
    
    Raises:
        UnknownFeatureError: if the feature is not in the catalog
    """
    try:
        return FEATURE_COSTS[feature]
    except KeyError:
        raise UnknownFeatureError(feature)


def has_enough_credits(remaining: int, feature: str) -> bool:
    """Check if a remaining balance covers one use of a feature."""
    return remaining >= get_credit_cost(feature)

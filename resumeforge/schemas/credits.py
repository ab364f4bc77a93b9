"""
Pydantic schemas for the credit endpoints.

Field names follow the camelCase contract the frontend already consumes.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class ConsumeCreditsRequest(BaseModel):
    """Request schema for POST /api/user/credits/consume."""
    feature: str = Field(..., min_length=1, description="Feature name, e.g. resume_generation")
    amount: Optional[int] = Field(None, description="Credits to charge (defaults to the feature cost)")
    
    class Config:
        json_schema_extra = {
            "example": {
                "feature": "cover_letter",
                "amount": 3
            }
        }


class CheckCreditsRequest(ConsumeCreditsRequest):
    """Request schema for POST /api/user/credits/check."""


class SubscriptionSnapshot(BaseModel):
    """Balance as seen by the client cache."""
    plan: str
    planName: str
    totalCredits: int
    usedCredits: int
    remainingCredits: int
    isActive: bool
    status: str
    resolution: str = Field(..., description="resolved, degraded or failed")
    currentPeriodStart: Optional[str] = None
    currentPeriodEnd: Optional[str] = None
    lastUpdated: Optional[str] = None


class PlanDetails(BaseModel):
    id: str
    name: str
    price: float
    credits: int
    features: List[str]


class UsageAnalytics(BaseModel):
    totalUsed: int
    usageByAction: Dict[str, int]
    recentUsage: List[dict]


class CreditOverviewResponse(BaseModel):
    """Response schema for GET /api/user/credits."""
    subscription: SubscriptionSnapshot
    plan: PlanDetails
    analytics: UsageAnalytics


class ConsumeCreditsResponse(BaseModel):
    """Response schema for a successful charge."""
    success: bool
    message: str
    subscription: SubscriptionSnapshot
    
    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Successfully deducted 3 credits",
                "subscription": {
                    "plan": "standard",
                    "planName": "Standard",
                    "totalCredits": 50,
                    "usedCredits": 13,
                    "remainingCredits": 37,
                    "isActive": True,
                    "status": "active",
                    "resolution": "resolved"
                }
            }
        }


class CheckCreditsResponse(BaseModel):
    feature: str
    hasEnough: bool
    requiredCredits: int
    remainingCredits: int
    subscription: SubscriptionSnapshot


class CreditErrorResponse(BaseModel):
    """Error response schema for credit operations."""
    success: bool = False
    error: str = Field(..., description="Error message")
    remainingCredits: Optional[int] = None
    requiredCredits: Optional[int] = None
    
    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "error": "Insufficient credits. Need 3, have 2",
                "remainingCredits": 2,
                "requiredCredits": 3
            }
        }


class FeatureCost(BaseModel):
    feature: str
    credits: int
    description: str


class PlanCatalogResponse(BaseModel):
    """Response schema for GET /api/plans."""
    plans: List[PlanDetails]
    featureCosts: List[FeatureCost]


class SyncCreditsResponse(BaseModel):
    """Response schema for POST /api/user/credits/sync."""
    success: bool
    syncPerformed: bool
    message: str
    subscription: SubscriptionSnapshot

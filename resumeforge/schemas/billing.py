"""
Pydantic schemas for billing endpoints.
"""
from pydantic import BaseModel, Field


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating checkout session."""
    plan: str = Field(..., description="Plan type: 'basic', 'standard' or 'pro'", pattern="^(basic|standard|pro)$")
    success_url: str = Field(..., description="URL to redirect after successful payment")
    cancel_url: str = Field(..., description="URL to redirect if payment is canceled")
    
    class Config:
        json_schema_extra = {
            "example": {
                "plan": "standard",
                "success_url": "http://localhost:3000/dashboard/payment-success",
                "cancel_url": "http://localhost:3000/dashboard/plans?canceled=true"
            }
        }


class CreateCheckoutSessionResponse(BaseModel):
    """Response schema for checkout session creation."""
    checkout_url: str = Field(..., description="Stripe checkout session URL")
    session_id: str = Field(..., description="Stripe checkout session ID")


class WebhookAck(BaseModel):
    received: bool = True
    event_type: str
    handled: bool

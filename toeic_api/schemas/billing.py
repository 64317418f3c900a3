"""
Pydantic schemas for billing endpoints.
"""
from typing import Optional
from pydantic import BaseModel, Field


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating checkout session."""
    plan_id: str = Field(..., alias="planId", min_length=1, max_length=64, description="Subscription plan id")
    success_url: Optional[str] = Field(None, alias="successUrl", max_length=2000, description="Redirect after payment")
    cancel_url: Optional[str] = Field(None, alias="cancelUrl", max_length=2000, description="Redirect if canceled")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "planId": "premium_monthly",
                "successUrl": "https://chattoeic.com/account?success=true",
                "cancelUrl": "https://chattoeic.com/pricing?canceled=true"
            }
        }


class CreatePortalSessionRequest(BaseModel):
    """Request schema for creating portal session."""
    return_url: Optional[str] = Field(None, alias="returnUrl", max_length=2000, description="URL to return to")

    class Config:
        populate_by_name = True

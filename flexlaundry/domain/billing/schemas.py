"""Billing domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, field_validator


class CheckoutRequest(BaseModel):
    """Schema for starting a checkout"""

    planId: Optional[str] = None
    gymCode: Optional[str] = None
    email: Optional[str] = None
    firstName: Optional[str] = ""
    lastName: Optional[str] = ""
    phone: Optional[str] = None


class PauseRequest(BaseModel):
    """Schema for pausing a subscription"""

    days: int = 14

    @field_validator("days")
    @classmethod
    def validate_days(cls, v: int) -> int:
        if v < 1:
            raise ValueError("days must be at least 1")
        # Longer pauses are capped rather than rejected
        return min(v, 30)


class CancelRequest(BaseModel):
    """Schema for cancelling a subscription"""

    reason: Optional[str] = None
    immediate: bool = False


class ChangePlanRequest(BaseModel):
    """Schema for moving between subscription plans"""

    newPlan: str

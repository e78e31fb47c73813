"""Bag domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel

BAG_ACTIONS = ("issue", "return", "mark_unreturned", "update_condition")


class BagActionRequest(BaseModel):
    """Schema for an ops bag action"""

    bagId: str
    action: str
    memberId: Optional[str] = None
    condition: Optional[str] = None


class BagValidation(BaseModel):
    """Outcome of checking a member-entered bag number"""

    valid: bool
    bagNumber: Optional[str] = None
    bagId: Optional[str] = None
    error: Optional[str] = None  # INVALID_FORMAT | NOT_FOUND | NOT_AVAILABLE
    message: Optional[str] = None

"""Drop domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, Field

# Scan checkpoints and the status each one moves a drop to
SCAN_TYPE_STATUS = {
    "pickup_from_gym": "At Laundry",
    "arrive_at_laundry": "At Laundry",
    "leave_laundry": "At Laundry",
    "return_to_gym": "Ready",
}


class DropStatusUpdate(BaseModel):
    """Schema for an ops status change on a single drop"""

    status: Optional[str] = None


class BulkCheckinRequest(BaseModel):
    """Schema for moving several drops to a new status"""

    dropIds: list[str] = Field(default_factory=list)
    newStatus: str
    action: Optional[str] = None
    laundryPartner: Optional[str] = None


class DeliverRequest(BaseModel):
    """Schema for returning cleaned drops to a gym"""

    dropIds: list[str] = Field(default_factory=list)
    gymName: Optional[str] = None


class ScanRequest(BaseModel):
    """Schema for a bag checkpoint scan"""

    bagNumber: str
    scanType: str
    operatorId: Optional[str] = None
    notes: Optional[str] = None


class MemberDropRequest(BaseModel):
    """Schema for a member logging a drop from the portal"""

    bagNumber: Optional[str] = None

"""Support domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...constants import ISSUE_TYPES, TICKET_PRIORITIES, TICKET_STATUSES


class TicketCreate(BaseModel):
    """Schema for a member raising a ticket from the portal"""

    type: str
    description: str
    bagNumber: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in ISSUE_TYPES:
            raise ValueError(f"type must be one of: {', '.join(ISSUE_TYPES)}")
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("description is required")
        return v


class TicketUpdate(BaseModel):
    """Schema for an ops ticket update"""

    status: Optional[str] = None
    priority: Optional[str] = None
    internalNote: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in TICKET_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(TICKET_STATUSES)}")
        return v

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in TICKET_PRIORITIES:
            raise ValueError(f"priority must be one of: {', '.join(TICKET_PRIORITIES)}")
        return v

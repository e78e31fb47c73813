"""Member domain schemas - Pydantic models and record shaping"""

from typing import Optional

from pydantic import BaseModel


class MemberSummary(BaseModel):
    """Member fields exposed to the portal and ops dashboard"""

    id: str
    firstName: str = ""
    lastName: str = ""
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    gymId: Optional[str] = None
    gymName: Optional[str] = None
    plan: Optional[str] = None
    status: Optional[str] = None
    dropsRemaining: int = 0
    totalDrops: int = 0
    signupDate: Optional[str] = None
    lastDropDate: Optional[str] = None
    stripeCustomerId: Optional[str] = None
    stripeSubscriptionId: Optional[str] = None


def _first(value):
    if isinstance(value, list):
        return value[0] if value else None
    return value


def member_summary(record: dict) -> MemberSummary:
    """Shape an Airtable member record"""
    fields = record.get("fields", {})
    first_name = fields.get("First Name", "") or ""
    last_name = fields.get("Last Name", "") or ""
    return MemberSummary(
        id=record["id"],
        firstName=first_name,
        lastName=last_name,
        name=f"{first_name} {last_name}".strip(),
        email=fields.get("Email"),
        phone=fields.get("Phone"),
        gymId=_first(fields.get("Gym")),
        gymName=_first(fields.get("Gym Name")),
        plan=fields.get("Subscription Tier"),
        status=fields.get("Status"),
        dropsRemaining=fields.get("Drops Remaining") or 0,
        totalDrops=fields.get("Total Drops") or 0,
        signupDate=fields.get("Signup Date"),
        lastDropDate=fields.get("Last Drop Date"),
        stripeCustomerId=fields.get("Stripe Customer ID"),
        stripeSubscriptionId=fields.get("Stripe Subscription ID"),
    )

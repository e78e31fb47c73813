"""Member service - Ops member listing and lookup"""

import logging
import re
from typing import Optional

from fastapi import Depends, HTTPException

from ...airtable import AirtableClient, get_airtable, quote_formula_value
from ...shared.dates import to_iso, utc_now
from ...shared.validators import normalize_bag_number
from ..billing.plans import get_drops_for_plan
from ..drops.repository import DropRepository
from .repository import MemberRepository
from .schemas import member_summary

logger = logging.getLogger(__name__)

PHONE_QUERY = re.compile(r"^[+\d]")
BAG_QUERY = re.compile(r"^B\d+$", re.IGNORECASE)


def build_member_search_formula(query: str) -> str:
    """Airtable formula for a phone, email or name search"""
    term = quote_formula_value(query)
    if "@" in query:
        return f"LOWER({{Email}}) = '{term.lower()}'"
    if PHONE_QUERY.match(query):
        digits = re.sub(r"\D", "", query)
        return f"FIND('{digits}', SUBSTITUTE({{Phone}}, '+', ''))"
    lowered = term.lower()
    return (
        f"OR(FIND('{lowered}', LOWER({{First Name}})), "
        f"FIND('{lowered}', LOWER({{Last Name}})), "
        f"FIND('{lowered}', LOWER({{Email}})))"
    )


class MemberService:
    """Service for the ops member views"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable
        self.repo = MemberRepository(airtable)
        self.drops = DropRepository(airtable)

    async def list_members(self, status: Optional[str] = None, limit: int = 100) -> list[dict]:
        records = await self.repo.list_members(status, min(limit, 100))
        return [member_summary(record).model_dump() for record in records]

    async def _find_by_bag(self, bag_number: str) -> Optional[dict]:
        drops = await self.drops.list_by_formula(
            f"{{Bag Number}} = '{quote_formula_value(bag_number)}'", sort=[("Drop Date", "desc")]
        )
        for drop in drops:
            member_ids = drop["fields"].get("Member") or []
            if member_ids:
                return await self.repo.get_by_id(member_ids[0])
        return None

    async def search(self, query: Optional[str]) -> dict:
        """Find one member by bag number, phone, email or name"""
        query = (query or "").strip()
        if len(query) < 2:
            raise HTTPException(status_code=400, detail="Query too short")

        try:
            if BAG_QUERY.match(query):
                member = await self._find_by_bag(normalize_bag_number(query) or query.upper())
            else:
                matches = await self.repo.list_by_formula(build_member_search_formula(query))
                member = matches[0] if matches else None
        except Exception as e:
            logger.error(f"❌ Member search failed for '{query}': {e}")
            raise HTTPException(status_code=500, detail="Search failed") from e

        if not member:
            raise HTTPException(status_code=404, detail="Member not found")

        now = utc_now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        recent = await self.drops.get_recent_by_member(member["id"], limit=5)
        drops_this_month = await self.drops.count_member_drops_since(member["id"], to_iso(month_start))

        summary = member_summary(member)
        return {
            "member": {
                **summary.model_dump(),
                "dropsUsed": drops_this_month,
                "dropsAllowed": get_drops_for_plan(summary.plan),
                "recentDrops": [
                    {
                        "id": drop["id"],
                        "bagNumber": drop["fields"].get("Bag Number"),
                        "status": drop["fields"].get("Status"),
                        "date": drop["fields"].get("Drop Date"),
                    }
                    for drop in recent
                ],
            }
        }


def get_member_service(airtable: AirtableClient = Depends(get_airtable)) -> MemberService:
    """Dependency injection for MemberService"""
    return MemberService(airtable)

"""Support repository - Airtable operations for issue tickets"""

from typing import Optional

from ...airtable import AirtableClient, quote_formula_value
from ...constants import TABLES

# Ops list filters mapped to Airtable formulas
STATUS_FILTERS = {
    "open": "{Status} = 'Open'",
    "in-progress": "OR({Status} = 'In Progress', {Status} = 'Awaiting Customer')",
    "resolved": "OR({Status} = 'Resolved', {Status} = 'Closed')",
    "all": None,
}


class TicketRepository:
    """Repository for support ticket (Issue) records"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable

    async def get(self, ticket_id: str) -> Optional[dict]:
        return await self.airtable.get_record(TABLES["issues"], ticket_id)

    async def list_tickets(self, status_filter: str = "open", limit: int = 100) -> list[dict]:
        return await self.airtable.list_records(
            TABLES["issues"],
            formula=STATUS_FILTERS.get(status_filter, STATUS_FILTERS["open"]),
            max_records=limit,
            sort=[("Created At", "desc")],
        )

    async def list_open(self) -> list[dict]:
        return await self.airtable.list_records(TABLES["issues"], formula=STATUS_FILTERS["open"])

    async def list_for_member(self, member_id: str) -> list[dict]:
        formula = f"FIND('{quote_formula_value(member_id)}', ARRAYJOIN({{Member}}))"
        return await self.airtable.list_records(
            TABLES["issues"], formula=formula, sort=[("Created At", "desc")]
        )

    async def create(self, fields: dict) -> dict:
        return await self.airtable.create_record(TABLES["issues"], fields)

    async def update(self, ticket_id: str, fields: dict) -> dict:
        return await self.airtable.update_record(TABLES["issues"], ticket_id, fields)

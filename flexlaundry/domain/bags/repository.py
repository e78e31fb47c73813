"""Bag repository - Airtable operations for bags"""

from typing import Optional

from ...airtable import AirtableClient, quote_formula_value
from ...constants import TABLES


class BagRepository:
    """Repository for bag records"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable

    async def get(self, bag_id: str) -> Optional[dict]:
        return await self.airtable.get_record(TABLES["bags"], bag_id)

    async def get_by_number(self, bag_number: str) -> Optional[dict]:
        return await self.airtable.find_first(
            TABLES["bags"], f"{{Bag Number}} = '{quote_formula_value(bag_number)}'"
        )

    async def list_bags(self, status: Optional[str] = None) -> list[dict]:
        formula = f"{{Status}} = '{quote_formula_value(status)}'" if status else None
        return await self.airtable.list_records(
            TABLES["bags"], formula=formula, sort=[("Bag Number", "asc")]
        )

    async def update(self, bag_id: str, fields: dict) -> dict:
        return await self.airtable.update_record(TABLES["bags"], bag_id, fields)

"""Drop repository - Airtable operations for drops"""

import json
import logging
from typing import Optional

from ...airtable import AirtableClient, quote_formula_value
from ...constants import DROP_COLLECTED, TABLES

logger = logging.getLogger(__name__)


class DropRepository:
    """Repository for drop records"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable

    async def get(self, drop_id: str) -> Optional[dict]:
        return await self.airtable.get_record(TABLES["drops"], drop_id)

    async def create(self, fields: dict) -> dict:
        return await self.airtable.create_record(TABLES["drops"], fields)

    async def update(self, drop_id: str, fields: dict) -> dict:
        return await self.airtable.update_record(TABLES["drops"], drop_id, fields)

    async def list_drops(self, status: Optional[str] = None, limit: int = 100) -> list[dict]:
        """List drops by status, defaulting to everything not yet collected"""
        if status:
            formula = f"{{Status}} = '{quote_formula_value(status)}'"
        else:
            formula = f"{{Status}} != '{DROP_COLLECTED}'"
        return await self.airtable.list_records(
            TABLES["drops"], formula=formula, max_records=min(limit, 100), sort=[("Drop Date", "desc")]
        )

    async def list_by_formula(self, formula: str, sort: Optional[list[tuple[str, str]]] = None) -> list[dict]:
        return await self.airtable.list_records(TABLES["drops"], formula=formula, sort=sort)

    async def get_active_by_member(self, member_id: str) -> list[dict]:
        formula = (
            f"AND(FIND('{quote_formula_value(member_id)}', ARRAYJOIN({{Member}})), "
            f"NOT({{Status}} = '{DROP_COLLECTED}'))"
        )
        return await self.airtable.list_records(
            TABLES["drops"], formula=formula, sort=[("Drop Date", "desc")]
        )

    async def get_recent_by_member(self, member_id: str, limit: int = 5) -> list[dict]:
        formula = f"FIND('{quote_formula_value(member_id)}', ARRAYJOIN({{Member}}))"
        return await self.airtable.list_records(
            TABLES["drops"], formula=formula, max_records=limit, sort=[("Drop Date", "desc")]
        )

    async def count_member_drops_since(self, member_id: str, since_iso: str) -> int:
        formula = (
            f"AND(FIND('{quote_formula_value(member_id)}', ARRAYJOIN({{Member}})), "
            f"IS_AFTER({{Drop Date}}, '{since_iso}'))"
        )
        records = await self.airtable.list_records(TABLES["drops"], formula=formula)
        return len(records)

    async def get_by_bag_number(self, bag_number: str) -> Optional[dict]:
        """Most recent drop for a bag that has not been collected"""
        formula = (
            f"AND({{Bag Number}} = '{quote_formula_value(bag_number)}', "
            f"{{Status}} != '{DROP_COLLECTED}')"
        )
        return await self.airtable.find_first(TABLES["drops"], formula, sort=[("Drop Date", "desc")])

    @staticmethod
    def scan_log_with(drop: dict, entry: dict) -> str:
        """The drop's JSON scan log with one more entry, ready to write"""
        raw = drop.get("fields", {}).get("Scan Log")
        try:
            scan_log = json.loads(raw) if raw else []
        except (TypeError, ValueError):
            logger.warning(f"⚠️ Unreadable scan log on drop {drop['id']}, starting a new one")
            scan_log = []
        scan_log.append(entry)
        return json.dumps(scan_log)

    async def append_scan_entry(self, drop: dict, entry: dict) -> dict:
        """Append an entry to the drop's JSON scan log"""
        scan_log = self.scan_log_with(drop, entry)
        updated = await self.update(drop["id"], {"Scan Log": scan_log})
        drop.setdefault("fields", {})["Scan Log"] = scan_log
        return updated

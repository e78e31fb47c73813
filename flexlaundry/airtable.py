"""
Airtable REST client
All members, drops, bags, gyms, tickets and CMS rows live in Airtable.
Records come back as {"id", "fields", "createdTime"} dicts.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from .config import AIRTABLE_API_KEY, AIRTABLE_BASE_ID

logger = logging.getLogger(__name__)

AIRTABLE_API_URL = "https://api.airtable.com/v0"

# Airtable caps page size at 100
MAX_PAGE_SIZE = 100


class AirtableError(Exception):
    """Raised when Airtable returns a non-2xx response"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def quote_formula_value(value: Any) -> str:
    """Escape a value for use inside a single-quoted formula string"""
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


class AirtableClient:
    """Thin async wrapper over the Airtable REST API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.api_key = api_key or AIRTABLE_API_KEY
        self.base_id = base_id or AIRTABLE_BASE_ID
        self.transport = transport
        self.timeout = timeout

    def _table_url(self, table: str, record_id: Optional[str] = None) -> str:
        url = f"{AIRTABLE_API_URL}/{self.base_id}/{quote(table, safe='')}"
        if record_id:
            url = f"{url}/{record_id}"
        return url

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[list[tuple[str, str]]] = None,
        json: Optional[dict] = None,
    ) -> dict:
        if not self.api_key:
            raise AirtableError("Airtable not configured - AIRTABLE_API_KEY missing")

        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.request(method, url, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"❌ Airtable request failed: {method} {url}: {e}")
            raise AirtableError(f"Airtable request failed: {e}") from e

        if response.status_code >= 400:
            try:
                error = response.json().get("error", {})
                message = error.get("message") if isinstance(error, dict) else str(error)
            except ValueError:
                message = response.text
            logger.error(f"❌ Airtable API error [{response.status_code}]: {message}")
            raise AirtableError(message or "Airtable API error", status_code=response.status_code)

        return response.json()

    async def list_records(
        self,
        table: str,
        formula: Optional[str] = None,
        max_records: Optional[int] = None,
        sort: Optional[list[tuple[str, str]]] = None,
        page_size: Optional[int] = None,
    ) -> list[dict]:
        """
        List records from a table, following pagination offsets.

        Args:
            table: Table name
            formula: Airtable filterByFormula expression
            max_records: Total record cap
            sort: List of (field, direction) pairs
            page_size: Records per page (max 100)

        Returns:
            List of record dicts
        """
        params: list[tuple[str, str]] = []
        if formula:
            params.append(("filterByFormula", formula))
        if max_records:
            params.append(("maxRecords", str(max_records)))
        if page_size:
            params.append(("pageSize", str(min(page_size, MAX_PAGE_SIZE))))
        for index, (field, direction) in enumerate(sort or []):
            params.append((f"sort[{index}][field]", field))
            params.append((f"sort[{index}][direction]", direction))

        records: list[dict] = []
        offset = None
        url = self._table_url(table)

        while True:
            page_params = params + ([("offset", offset)] if offset else [])
            data = await self._request("GET", url, params=page_params)
            records.extend(data.get("records", []))
            offset = data.get("offset")
            if not offset or (max_records and len(records) >= max_records):
                break

        return records[:max_records] if max_records else records

    async def find_first(
        self, table: str, formula: str, sort: Optional[list[tuple[str, str]]] = None
    ) -> Optional[dict]:
        """Return the first record matching the formula, or None"""
        records = await self.list_records(table, formula=formula, max_records=1, sort=sort)
        return records[0] if records else None

    async def get_record(self, table: str, record_id: str) -> Optional[dict]:
        """Fetch a record by id. Returns None when Airtable reports it missing."""
        try:
            return await self._request("GET", self._table_url(table, record_id))
        except AirtableError as e:
            if e.status_code == 404:
                return None
            raise

    async def create_record(self, table: str, fields: dict) -> dict:
        """Create a single record and return it"""
        data = await self._request(
            "POST", self._table_url(table), json={"records": [{"fields": fields}]}
        )
        return data["records"][0]

    async def update_record(self, table: str, record_id: str, fields: dict) -> dict:
        """Patch the given fields on a record"""
        return await self._request("PATCH", self._table_url(table, record_id), json={"fields": fields})


_airtable_client: Optional[AirtableClient] = None


def get_airtable() -> AirtableClient:
    """Dependency injection for the shared AirtableClient"""
    global _airtable_client
    if _airtable_client is None:
        if not AIRTABLE_API_KEY:
            logger.warning("⚠️ AIRTABLE_API_KEY not set - Airtable calls will fail")
        _airtable_client = AirtableClient()
    return _airtable_client

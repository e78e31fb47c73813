"""Member repository - Airtable operations for members and gyms"""

from typing import Optional

from ...airtable import AirtableClient, quote_formula_value
from ...constants import TABLES


class MemberRepository:
    """Repository for member records"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable

    async def get_by_id(self, member_id: str) -> Optional[dict]:
        return await self.airtable.get_record(TABLES["members"], member_id)

    async def get_by_phone(self, phone: str) -> Optional[dict]:
        return await self.airtable.find_first(
            TABLES["members"], f"{{Phone}} = '{quote_formula_value(phone)}'"
        )

    async def get_by_email(self, email: str) -> Optional[dict]:
        return await self.airtable.find_first(
            TABLES["members"], f"LOWER({{Email}}) = '{quote_formula_value(email.lower())}'"
        )

    async def get_by_login_token(self, token: str) -> Optional[dict]:
        return await self.airtable.find_first(
            TABLES["members"], f"{{Login Token}} = '{quote_formula_value(token)}'"
        )

    async def get_by_stripe_customer(self, customer_id: str) -> Optional[dict]:
        return await self.airtable.find_first(
            TABLES["members"], f"{{Stripe Customer ID}} = '{quote_formula_value(customer_id)}'"
        )

    async def get_by_subscription(self, subscription_id: str) -> Optional[dict]:
        return await self.airtable.find_first(
            TABLES["members"],
            f"{{Stripe Subscription ID}} = '{quote_formula_value(subscription_id)}'",
        )

    async def list_members(self, status: Optional[str] = None, limit: int = 100) -> list[dict]:
        formula = f"{{Status}} = '{quote_formula_value(status)}'" if status else None
        return await self.airtable.list_records(
            TABLES["members"], formula=formula, max_records=limit, sort=[("Signup Date", "desc")]
        )

    async def list_by_formula(self, formula: str) -> list[dict]:
        return await self.airtable.list_records(TABLES["members"], formula=formula)

    async def create(self, fields: dict) -> dict:
        return await self.airtable.create_record(TABLES["members"], fields)

    async def update(self, member_id: str, fields: dict) -> dict:
        return await self.airtable.update_record(TABLES["members"], member_id, fields)


class GymRepository:
    """Repository for gym reference data"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable

    async def get_by_id(self, gym_id: str) -> Optional[dict]:
        return await self.airtable.get_record(TABLES["gyms"], gym_id)

    async def get_by_code(self, code: str) -> Optional[dict]:
        return await self.airtable.find_first(
            TABLES["gyms"], f"UPPER({{Code}}) = '{quote_formula_value(code.upper())}'"
        )

    async def list_active(self) -> list[dict]:
        return await self.airtable.list_records(
            TABLES["gyms"], formula="{Is Active} = TRUE()", sort=[("Name", "asc")]
        )

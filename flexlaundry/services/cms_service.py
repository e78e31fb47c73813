"""
CMS Service
Marketing copy, page sections, FAQ, gyms and discount codes stored in Airtable.
Reads are cached in Redis for a minute and fall back to defaults when Airtable fails.
"""

import json
import logging
from typing import Any, Optional

from fastapi import Depends

from ..airtable import AirtableClient, get_airtable, quote_formula_value
from ..cache import Cache, cache
from ..constants import TABLES
from ..shared.dates import parse_datetime, to_iso, utc_now

logger = logging.getLogger(__name__)

CMS_CACHE_TTL = 60
GYM_CACHE_TTL = 300

DEFAULT_GYMS = [
    {
        "name": "East London Fitness",
        "slug": "east-london-fitness",
        "address": "123 Hackney Road",
        "postcode": "E2 8ET",
        "pickupHours": "Mon-Fri 6am-10pm, Sat-Sun 8am-8pm",
    },
    {
        "name": "The Yard",
        "slug": "the-yard",
        "address": "45 Mare Street",
        "postcode": "E8 4RG",
        "pickupHours": "Mon-Fri 6am-10pm, Sat-Sun 7am-9pm",
    },
]


def parse_config_value(value: Any) -> Any:
    """Config values that look like JSON are decoded, everything else is returned as-is"""
    if isinstance(value, str) and value[:1] in ("{", "["):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


class CMSService:
    """Service for public site content"""

    def __init__(self, airtable: AirtableClient, content_cache: Optional[Cache] = None):
        self.airtable = airtable
        self.cache = content_cache or cache

    async def get_page_content(self, page: Optional[str] = None) -> dict:
        """Active key/value copy for a page"""
        cache_key = f"cms:page:{page or '*'}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        formula = f"{{Page}} = '{quote_formula_value(page)}'" if page else None
        try:
            records = await self.airtable.list_records(TABLES["content"], formula=formula)
        except Exception as e:
            logger.error(f"❌ Failed to fetch content for {page}: {e}")
            return {}

        content = {}
        for record in records:
            fields = record.get("fields", {})
            if fields.get("Key") and fields.get("Is Active") is not False:
                content[fields["Key"]] = fields.get("Value")

        self.cache.set(cache_key, content, ttl=CMS_CACHE_TTL)
        return content

    async def get_page_sections(self, page: Optional[str] = None) -> Optional[list[dict]]:
        cache_key = f"cms:sections:{page or '*'}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        formula = f"{{Page}} = '{quote_formula_value(page)}'" if page else None
        try:
            records = await self.airtable.list_records(
                TABLES["sections"], formula=formula, sort=[("Sort Order", "asc")]
            )
        except Exception as e:
            logger.error(f"❌ Failed to fetch sections for {page}: {e}")
            return None

        sections = [
            {
                "id": r["fields"].get("Section ID"),
                "title": r["fields"].get("Title") or "",
                "isActive": r["fields"].get("Is Active") is not False,
                "sortOrder": r["fields"].get("Sort Order") or 0,
            }
            for r in records
        ]
        self.cache.set(cache_key, sections, ttl=CMS_CACHE_TTL)
        return sections

    async def get_faq(self) -> list[dict]:
        cached = self.cache.get("cms:faq")
        if cached is not None:
            return cached

        try:
            records = await self.airtable.list_records(
                TABLES["faq"], formula="{Published} = TRUE()", sort=[("Order", "asc")]
            )
        except Exception as e:
            logger.error(f"❌ Failed to fetch FAQ content: {e}")
            return []

        faqs = [
            {
                "id": r["id"],
                "question": r["fields"].get("Question"),
                "answer": r["fields"].get("Answer"),
                "category": r["fields"].get("Category") or "General",
            }
            for r in records
        ]
        self.cache.set("cms:faq", faqs, ttl=CMS_CACHE_TTL)
        return faqs

    async def get_gyms(self) -> list[dict]:
        """Active gyms for the signup page, or the launch gyms if none can be read"""
        cached = self.cache.get("cms:gyms")
        if cached is not None:
            return cached

        try:
            records = await self.airtable.list_records(
                TABLES["gyms"], formula="{Is Active} = TRUE()", sort=[("Name", "asc")]
            )
        except Exception as e:
            logger.error(f"❌ Failed to fetch gyms, using defaults: {e}")
            return DEFAULT_GYMS

        gyms = [
            {
                "id": r["id"],
                "name": r["fields"].get("Name") or "",
                "code": r["fields"].get("Code") or "",
                "slug": r["fields"].get("Slug") or "",
                "address": r["fields"].get("Address") or "",
                "postcode": r["fields"].get("Postcode") or "",
                "pickupHours": r["fields"].get("Pickup Hours") or "Mon-Sun 6am-10pm",
            }
            for r in records
        ]
        if not gyms:
            return DEFAULT_GYMS

        self.cache.set("cms:gyms", gyms, ttl=GYM_CACHE_TTL)
        return gyms

    async def get_config(self, key: str) -> Any:
        cache_key = f"cms:config:{key}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            record = await self.airtable.find_first(
                TABLES["config"], f"{{Key}} = '{quote_formula_value(key)}'"
            )
        except Exception as e:
            logger.error(f"❌ Failed to fetch config {key}: {e}")
            return None
        if not record:
            return None

        value = parse_config_value(record["fields"].get("Value"))
        self.cache.set(cache_key, value, ttl=CMS_CACHE_TTL)
        return value

    async def get_all_config(self) -> dict:
        try:
            records = await self.airtable.list_records(TABLES["config"])
        except Exception as e:
            logger.error(f"❌ Failed to fetch config: {e}")
            return {}
        return {
            r["fields"]["Key"]: parse_config_value(r["fields"].get("Value"))
            for r in records
            if r["fields"].get("Key")
        }

    def clear_cache(self) -> int:
        return self.cache.delete_pattern("cms:*")

    async def validate_discount_code(self, code: Optional[str]) -> dict:
        if not code or not code.strip():
            return {"valid": False, "error": "Invalid code"}

        formula = f"AND({{Code}} = '{quote_formula_value(code.strip().upper())}', {{Active}} = TRUE())"
        try:
            record = await self.airtable.find_first(TABLES["discounts"], formula)
        except Exception as e:
            logger.error(f"❌ Failed to validate discount code: {e}")
            return {"valid": False, "error": "Unable to validate code"}

        if not record:
            return {"valid": False, "error": "Invalid code"}

        discount = record["fields"]
        expires_at = parse_datetime(discount.get("Expires At"))
        if expires_at and expires_at < utc_now():
            return {"valid": False, "error": "Code expired"}

        usage_limit = discount.get("Usage Limit")
        if usage_limit and (discount.get("Times Used") or 0) >= usage_limit:
            return {"valid": False, "error": "Code usage limit reached"}

        return {
            "valid": True,
            "code": discount.get("Code"),
            "type": discount.get("Type"),
            "amount": discount.get("Amount"),
            "stripeCouponId": discount.get("Stripe Coupon ID"),
        }

    async def register_interest(
        self,
        first_name: str,
        email: str,
        gym_name: str,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        location: Optional[str] = None,
    ) -> bool:
        """Record a request for a gym we don't serve yet. Returns False if Airtable rejected it."""
        fields = {
            "First Name": first_name,
            "Last Name": last_name or "",
            "Email": email,
            "Phone": phone or "",
            "Gym Name": gym_name,
            "Location": location or "",
            "Status": "New",
            "Created At": to_iso(utc_now()),
        }
        try:
            await self.airtable.create_record(TABLES["gym_interest"], fields)
        except Exception as e:
            logger.error(f"❌ Failed to store gym interest for {email}: {e}")
            return False
        logger.info(f"✅ Gym interest registered: {gym_name} ({email})")
        return True


def get_cms_service(airtable: AirtableClient = Depends(get_airtable)) -> CMSService:
    """Dependency injection for CMSService"""
    return CMSService(airtable)

"""
Webhook and cron request authentication
Shared-secret checks for cron endpoints and the Airtable automation callback
"""

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException

from .config import CRON_SECRET

logger = logging.getLogger(__name__)


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Require `Authorization: Bearer <CRON_SECRET>`"""
    expected = f"Bearer {CRON_SECRET}" if CRON_SECRET else None
    if not constant_time_compare(authorization, expected):
        logger.warning("⚠️ Rejected request with invalid cron secret")
        raise HTTPException(status_code=401, detail="Unauthorized")

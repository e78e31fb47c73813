"""
Authentication dependencies
Members authenticate with a signed session cookie, ops staff with a shared-secret cookie.
"""

import logging
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Response

from .airtable import AirtableClient, get_airtable
from .config import COOKIE_SECURE, OPS_AUTH_TOKEN
from .constants import TABLES
from .security_utils import verify_session_token
from .webhook_security import constant_time_compare

logger = logging.getLogger(__name__)

SESSION_COOKIE = "flex_auth"
OPS_COOKIE = "flex_ops_auth"
COOKIE_MAX_AGE = 60 * 60 * 24 * 7


# ============================================================================
# COOKIES
# ============================================================================


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE, path="/")


def set_ops_cookie(response: Response) -> None:
    response.set_cookie(
        key=OPS_COOKIE,
        value=OPS_AUTH_TOKEN or "",
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_ops_cookie(response: Response) -> None:
    response.delete_cookie(key=OPS_COOKIE, path="/")


# ============================================================================
# DEPENDENCIES
# ============================================================================


async def get_current_session(flex_auth: Optional[str] = Cookie(default=None)) -> dict:
    """Decode the member session cookie"""
    if not flex_auth:
        raise HTTPException(status_code=401, detail="Not authenticated")

    session = verify_session_token(flex_auth)
    if not session:
        raise HTTPException(status_code=401, detail="Session expired. Please log in again.")
    return session


async def get_current_member(
    session: dict = Depends(get_current_session),
    airtable: AirtableClient = Depends(get_airtable),
) -> dict:
    """Load the Airtable member record for the current session"""
    try:
        member = await airtable.get_record(TABLES["members"], session["memberId"])
    except Exception as e:
        logger.error(f"❌ Failed to load member {session['memberId']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load account") from e

    if not member:
        raise HTTPException(status_code=401, detail="Account not found")
    return member


def require_ops(flex_ops_auth: Optional[str] = Cookie(default=None)) -> None:
    """Gate ops routes on the shared ops cookie"""
    if not constant_time_compare(flex_ops_auth, OPS_AUTH_TOKEN):
        raise HTTPException(status_code=401, detail="Unauthorized")

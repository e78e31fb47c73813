"""
Ops Dashboard Login
Single shared password; success sets the static ops cookie
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from ..airtable import AirtableClient, get_airtable
from ..auth import clear_ops_cookie, set_ops_cookie
from ..config import OPS_AUTH_TOKEN, OPS_PASSWORD
from ..services.audit_service import AuditAction, log_audit_event
from ..webhook_security import constant_time_compare

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ops/auth", tags=["Ops Auth"])


class OpsLoginRequest(BaseModel):
    password: Optional[str] = None


@router.post("")
async def ops_login(
    body: OpsLoginRequest,
    request: Request,
    response: Response,
    airtable: AirtableClient = Depends(get_airtable),
):
    if not OPS_PASSWORD or not OPS_AUTH_TOKEN:
        logger.error("❌ OPS_PASSWORD or OPS_AUTH_TOKEN not configured")
        raise HTTPException(status_code=500, detail="Ops login not configured")

    if not constant_time_compare(body.password, OPS_PASSWORD):
        logger.warning("⚠️ Failed ops login attempt")
        raise HTTPException(status_code=401, detail="Invalid password")

    set_ops_cookie(response)
    await log_audit_event(
        airtable,
        AuditAction.OPS_LOGIN,
        "ops_dashboard",
        actor_type="ops",
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    logger.info("✅ Ops login")
    return {"success": True}


@router.delete("")
async def ops_logout(response: Response):
    clear_ops_cookie(response)
    return {"success": True}

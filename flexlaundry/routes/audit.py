"""Audit log viewer for the ops dashboard"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..airtable import AirtableClient, get_airtable
from ..auth import require_ops
from ..services.audit_service import get_audit_logs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ops/audit", tags=["Ops Audit"], dependencies=[Depends(require_ops)])


@router.get("")
async def list_audit_logs(
    action: Optional[str] = None,
    target_id: Optional[str] = None,
    target_type: Optional[str] = None,
    actor: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    airtable: AirtableClient = Depends(get_airtable),
):
    try:
        logs = await get_audit_logs(
            airtable, action=action, target_id=target_id, target_type=target_type, actor=actor, limit=limit
        )
    except Exception as e:
        logger.error(f"❌ Failed to fetch audit logs: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch audit logs") from e
    return {"logs": logs, "count": len(logs)}

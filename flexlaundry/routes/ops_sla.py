"""SLA health endpoint for the ops dashboard"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..airtable import AirtableClient, get_airtable
from ..auth import require_ops
from ..services.sla import get_sla_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ops/sla", tags=["Ops SLA"], dependencies=[Depends(require_ops)])


@router.get("")
async def sla_report(airtable: AirtableClient = Depends(get_airtable)):
    try:
        return await get_sla_report(airtable)
    except Exception as e:
        logger.error(f"❌ Failed to build SLA report: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch SLA metrics") from e

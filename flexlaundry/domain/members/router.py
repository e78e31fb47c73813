"""Members router - Ops endpoints for member lookup"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ...auth import require_ops
from ...constants import MEMBER_STATUSES
from .service import MemberService, get_member_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ops/members", tags=["Ops Members"], dependencies=[Depends(require_ops)])


@router.get("")
async def list_members(
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=100),
    service: MemberService = Depends(get_member_service),
):
    if status and status not in MEMBER_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")
    try:
        members = await service.list_members(status, limit)
    except Exception as e:
        logger.error(f"❌ Failed to list members: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch members") from e
    return {"members": members, "count": len(members)}


@router.get("/search")
async def search_members(q: Optional[str] = None, service: MemberService = Depends(get_member_service)):
    """Search by bag number, phone, email or name"""
    return await service.search(q)

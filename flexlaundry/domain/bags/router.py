"""Bag router - Ops endpoints for bag inventory"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ...auth import require_ops
from .schemas import BagActionRequest
from .service import BagService, get_bag_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ops/bags", tags=["Ops Bags"], dependencies=[Depends(require_ops)])


@router.get("")
async def list_bags(status: Optional[str] = None, service: BagService = Depends(get_bag_service)):
    try:
        return {"bags": await service.list_bags(status)}
    except Exception as e:
        logger.error(f"❌ Failed to list bags: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch bags") from e


@router.post("/action")
async def bag_action(request: BagActionRequest, service: BagService = Depends(get_bag_service)):
    """Issue, return, mark unreturned or update the condition of a bag"""
    result = await service.perform_action(request.bagId, request.action, request.memberId, request.condition)
    return {"success": True, "result": result}

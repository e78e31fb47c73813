"""Drop router - Ops endpoints for drops and bag scans"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ...auth import require_ops
from .schemas import BulkCheckinRequest, DeliverRequest, DropStatusUpdate, ScanRequest
from .service import DropService, get_drop_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ops", tags=["Ops Drops"], dependencies=[Depends(require_ops)])


@router.get("/drops")
async def list_drops(
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=100),
    service: DropService = Depends(get_drop_service),
):
    """List drops, defaulting to everything not yet collected"""
    try:
        return {"drops": await service.list_drops(status, limit)}
    except Exception as e:
        logger.error(f"❌ Failed to list drops: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch drops") from e


@router.put("/drops/{drop_id}")
async def update_drop_status(
    drop_id: str,
    request: DropStatusUpdate,
    service: DropService = Depends(get_drop_service),
):
    """Set a drop's status. Moving to Ready notifies the member."""
    result = await service.update_status(drop_id, request.status)
    return {"success": result["success"], "drop": result["drop"]}


@router.post("/drops/checkin")
async def bulk_checkin(request: BulkCheckinRequest, service: DropService = Depends(get_drop_service)):
    result = await service.bulk_checkin(
        request.dropIds, request.newStatus, request.action, request.laundryPartner
    )
    return result


@router.post("/drops/deliver")
async def deliver_drops(request: DeliverRequest, service: DropService = Depends(get_drop_service)):
    return await service.deliver(request.dropIds, request.gymName)


@router.post("/scan")
async def scan_bag(request: ScanRequest, service: DropService = Depends(get_drop_service)):
    """Record a checkpoint scan for a bag"""
    try:
        return await service.scan(request.bagNumber, request.scanType, request.operatorId, request.notes)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Scan failed for bag {request.bagNumber}: {e}")
        raise HTTPException(status_code=500, detail="Failed to process scan") from e


@router.get("/scan")
async def lookup_bag(bagNumber: str, service: DropService = Depends(get_drop_service)):
    return await service.lookup_bag(bagNumber)

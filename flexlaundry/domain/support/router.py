"""Support router - Ops endpoints for support tickets"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from ...auth import require_ops
from .schemas import TicketUpdate
from .service import SupportService, get_support_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ops/tickets", tags=["Ops Tickets"], dependencies=[Depends(require_ops)])


@router.get("")
async def list_tickets(
    status: str = Query("open", pattern="^(open|in-progress|resolved|all)$"),
    service: SupportService = Depends(get_support_service),
):
    try:
        return {"tickets": await service.list_tickets(status)}
    except Exception as e:
        logger.error(f"❌ Failed to list tickets: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch tickets") from e


@router.get("/{ticket_id}")
async def get_ticket(ticket_id: str, service: SupportService = Depends(get_support_service)):
    return {"ticket": await service.get_ticket(ticket_id)}


@router.patch("/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    request: TicketUpdate,
    service: SupportService = Depends(get_support_service),
):
    """Update status, priority or internal notes on a ticket"""
    return await service.update_ticket(ticket_id, request)

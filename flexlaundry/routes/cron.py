"""
Cron Endpoints
Scheduler-triggered jobs, authenticated with `Authorization: Bearer CRON_SECRET`.
GET and POST are both accepted so any scheduler can call them.
"""

import logging
from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException

from ..airtable import AirtableClient, get_airtable
from ..services import scheduled_jobs
from ..webhook_security import verify_cron_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


async def _run_job(name: str, job: Callable[[AirtableClient], Awaitable[dict]], airtable: AirtableClient) -> dict:
    logger.info(f"⏰ Cron job started: {name}")
    try:
        result = await job(airtable)
    except Exception as e:
        logger.error(f"❌ Cron job {name} failed: {e}")
        raise HTTPException(status_code=500, detail="Cron job failed") from e
    return {"success": True, **result}


@router.api_route("/sla-check", methods=["GET", "POST"])
async def sla_check(airtable: AirtableClient = Depends(get_airtable)):
    return await _run_job("sla-check", scheduled_jobs.sla_check, airtable)


@router.api_route("/pause-reminders", methods=["GET", "POST"])
async def pause_reminders(airtable: AirtableClient = Depends(get_airtable)):
    return await _run_job("pause-reminders", scheduled_jobs.pause_reminders, airtable)


@router.api_route("/reengagement", methods=["GET", "POST"])
async def reengagement(airtable: AirtableClient = Depends(get_airtable)):
    return await _run_job("reengagement", scheduled_jobs.reengagement, airtable)


@router.api_route("/payment-retry", methods=["GET", "POST"])
async def payment_retry(airtable: AirtableClient = Depends(get_airtable)):
    return await _run_job("payment-retry", scheduled_jobs.payment_retry, airtable)


@router.api_route("/pickup-confirm", methods=["GET", "POST"])
async def pickup_confirm(airtable: AirtableClient = Depends(get_airtable)):
    return await _run_job("pickup-confirm", scheduled_jobs.pickup_confirm, airtable)


@router.api_route("/issue-detection", methods=["GET", "POST"])
async def issue_detection(airtable: AirtableClient = Depends(get_airtable)):
    return await _run_job("issue-detection", scheduled_jobs.issue_detection, airtable)

"""
Public Site Routes
Gyms, plans, page copy, FAQ, gym interest and discount validation for the marketing site
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..auth import require_ops
from ..domain.billing.plans import get_public_plans
from ..services.cms_service import CMSService, get_cms_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Public"])


class RegisterInterestRequest(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    gymName: Optional[str] = None
    location: Optional[str] = None


class DiscountValidateRequest(BaseModel):
    code: Optional[str] = None


@router.get("/gyms")
async def list_gyms(service: CMSService = Depends(get_cms_service)):
    return await service.get_gyms()


@router.get("/plans")
async def list_plans():
    """Plans shown on the pricing page"""
    return {
        "plans": [
            {key: plan[key] for key in plan if key != "stripePriceId"} for plan in get_public_plans()
        ]
    }


@router.get("/content")
async def get_content(page: Optional[str] = None, service: CMSService = Depends(get_cms_service)):
    return await service.get_page_content(page)


@router.get("/sections")
async def get_sections(page: Optional[str] = None, service: CMSService = Depends(get_cms_service)):
    return await service.get_page_sections(page)


@router.get("/faq")
async def get_faq(service: CMSService = Depends(get_cms_service)):
    return {"faqs": await service.get_faq()}


@router.get("/config")
async def get_all_config(service: CMSService = Depends(get_cms_service)):
    return await service.get_all_config()


@router.get("/config/{key}")
async def get_config(key: str, service: CMSService = Depends(get_cms_service)):
    value = await service.get_config(key)
    if value is None:
        raise HTTPException(status_code=404, detail="Config key not found")
    return {"key": key, "value": value}


@router.post("/register-interest")
async def register_interest(body: RegisterInterestRequest, service: CMSService = Depends(get_cms_service)):
    """Register interest in a gym that isn't live yet. Storage failures are not surfaced."""
    if not body.firstName or not body.email or not body.gymName:
        raise HTTPException(status_code=400, detail="Missing required fields")

    await service.register_interest(
        body.firstName, body.email, body.gymName, body.lastName, body.phone, body.location
    )
    return {"success": True, "message": "Interest registered successfully"}


@router.post("/discounts/validate")
async def validate_discount(body: DiscountValidateRequest, service: CMSService = Depends(get_cms_service)):
    return await service.validate_discount_code(body.code)


ops_router = APIRouter(prefix="/api/ops/content", tags=["Ops Content"], dependencies=[Depends(require_ops)])


@ops_router.post("/refresh")
async def refresh_content(service: CMSService = Depends(get_cms_service)):
    """Drop cached CMS reads so Airtable edits show up immediately"""
    return {"success": True, "cleared": service.clear_cache()}

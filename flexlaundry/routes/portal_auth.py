"""
Member Login Routes
WhatsApp one-time codes, 24-hour login links and signup phone verification
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Response

from ..airtable import AirtableClient, get_airtable
from ..auth import clear_session_cookie, set_session_cookie
from ..config import BASE_URL
from ..constants import MEMBER_PENDING
from ..domain.members.repository import MemberRepository
from ..domain.portal.schemas import (
    LoginLinkRequest,
    PhoneVerifyCheckRequest,
    PhoneVerifySendRequest,
    RequestCodeRequest,
    TokenLoginRequest,
    VerifyCodeRequest,
)
from ..email_service import send_login_link_email
from ..security_utils import create_session_token, generate_login_token
from ..services import whatsapp_service
from ..services.audit_service import AuditAction, log_audit_event
from ..services.notification_service import send_with_fallback
from ..services.verification_service import VerificationCodeStore, get_verification_store
from ..shared.dates import parse_datetime, to_iso, utc_now
from ..shared.validators import is_valid_uk_phone, normalize_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Member Auth"])

GENERIC_CODE_MESSAGE = "If an account exists with this number, a code has been sent."
LOGIN_LINK_DURATION = timedelta(hours=24)


def _normalize_phone_or_400(raw: str) -> str:
    try:
        return normalize_phone(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def get_signup_verification_store() -> VerificationCodeStore:
    """Dependency injection for signup phone codes"""
    return VerificationCodeStore(prefix="signup")


async def _start_session(airtable: AirtableClient, response: Response, member: dict, phone: str, method: str) -> None:
    token = create_session_token(member["id"], phone)
    set_session_cookie(response, token)
    await log_audit_event(
        airtable,
        AuditAction.MEMBER_LOGIN,
        member["id"],
        actor_type="member",
        target_type="member",
        target_id=member["id"],
        details={"method": method},
    )
    logger.info(f"✅ Session created for member {member['id']}")


# ============================================================================
# ONE-TIME CODE LOGIN
# ============================================================================


@router.post("/portal/request-code")
async def request_code(
    body: RequestCodeRequest,
    airtable: AirtableClient = Depends(get_airtable),
    store: VerificationCodeStore = Depends(get_verification_store),
):
    """Send a login code over WhatsApp without revealing whether the account exists"""
    if not body.phone:
        raise HTTPException(status_code=400, detail="Phone number required")

    phone = _normalize_phone_or_400(body.phone)
    try:
        member = await MemberRepository(airtable).get_by_phone(phone)
    except Exception as e:
        logger.error(f"❌ Member lookup failed for login code: {e}")
        raise HTTPException(status_code=500, detail="Failed to send code") from e

    if not member:
        logger.info(f"📱 Login code requested for unknown number {phone}")
        return {"success": True, "message": GENERIC_CODE_MESSAGE}

    code = store.issue(phone)
    sent, error = await whatsapp_service.send_verification_code(phone, code)
    if not sent:
        logger.warning(f"⚠️ Login code WhatsApp failed for {phone}: {error}")
    return {"success": True, "message": GENERIC_CODE_MESSAGE}


@router.post("/portal/verify-code")
async def verify_code(
    body: VerifyCodeRequest,
    response: Response,
    airtable: AirtableClient = Depends(get_airtable),
    store: VerificationCodeStore = Depends(get_verification_store),
):
    if not body.phone or not body.code:
        raise HTTPException(status_code=400, detail="Phone and code are required")

    phone = _normalize_phone_or_400(body.phone)
    valid, error = store.verify(phone, body.code)
    if not valid:
        raise HTTPException(status_code=401, detail=error)

    member = await MemberRepository(airtable).get_by_phone(phone)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")

    await _start_session(airtable, response, member, phone, "code")
    return {"success": True, "message": "Verification successful", "redirect": "/portal/dashboard"}


@router.post("/portal/logout")
async def logout(response: Response):
    clear_session_cookie(response)
    return {"success": True}


# ============================================================================
# LOGIN LINKS
# ============================================================================


@router.post("/member/send-login-link")
async def send_login_link(body: LoginLinkRequest, airtable: AirtableClient = Depends(get_airtable)):
    """Store a 24-hour login token on the member and send the link"""
    if not body.phone:
        raise HTTPException(status_code=400, detail="Phone number required")

    phone = _normalize_phone_or_400(body.phone)
    members = MemberRepository(airtable)
    member = await members.get_by_phone(phone)
    if not member:
        raise HTTPException(status_code=404, detail="No account found with this number")

    token = generate_login_token()
    try:
        await members.update(
            member["id"],
            {"Login Token": token, "Token Expiry": to_iso(utc_now() + LOGIN_LINK_DURATION)},
        )
    except Exception as e:
        logger.error(f"❌ Failed to store login token for {member['id']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to send login link") from e

    fields = member["fields"]
    first_name = fields.get("First Name") or "there"
    login_url = f"{BASE_URL}/member/dashboard?token={token}"
    result = await send_with_fallback(
        phone,
        fields.get("Email"),
        lambda: whatsapp_service.send_login_link(phone, first_name, login_url),
        lambda: send_login_link_email(fields["Email"], first_name, login_url),
        context=f"Login link for {member['id']}",
    )
    if not result["sent"]:
        raise HTTPException(status_code=500, detail="Failed to send login link")

    return {"success": True, "channel": result["channel"]}


@router.post("/portal/token-login")
async def token_login(
    body: TokenLoginRequest,
    response: Response,
    airtable: AirtableClient = Depends(get_airtable),
):
    """Exchange a login link token for a session cookie. Tokens are single use."""
    if not body.token:
        raise HTTPException(status_code=400, detail="Token required")

    members = MemberRepository(airtable)
    member = await members.get_by_login_token(body.token)
    if not member:
        raise HTTPException(status_code=401, detail="Invalid or expired link")

    expiry = parse_datetime(member["fields"].get("Token Expiry"))
    if not expiry or expiry < utc_now():
        raise HTTPException(status_code=401, detail="Invalid or expired link")

    await members.update(member["id"], {"Login Token": "", "Token Expiry": None})
    await _start_session(airtable, response, member, member["fields"].get("Phone", ""), "link")
    return {"success": True, "redirect": "/portal/dashboard"}


# ============================================================================
# SIGNUP PHONE VERIFICATION
# ============================================================================


@router.post("/verify-phone/send")
async def send_phone_verification(
    body: PhoneVerifySendRequest,
    store: VerificationCodeStore = Depends(get_signup_verification_store),
):
    if not body.phone:
        raise HTTPException(status_code=400, detail="Phone number required")

    phone = _normalize_phone_or_400(body.phone)
    if not is_valid_uk_phone(phone):
        raise HTTPException(status_code=400, detail="Please enter a valid UK phone number")

    code = store.issue(phone)
    sent, error = await whatsapp_service.send_verification_code(phone, code)
    if not sent:
        logger.error(f"❌ Signup verification WhatsApp failed for {phone}: {error}")
        raise HTTPException(status_code=500, detail="Failed to send verification code")

    return {"success": True, "message": "Verification code sent to WhatsApp", "phone": phone}


@router.post("/verify-phone/check")
async def check_phone_verification(
    body: PhoneVerifyCheckRequest,
    airtable: AirtableClient = Depends(get_airtable),
    store: VerificationCodeStore = Depends(get_signup_verification_store),
):
    """Confirm the signup code and make sure a member row exists for the phone"""
    if not body.phone or not body.code:
        raise HTTPException(status_code=400, detail="Phone and code are required")

    phone = _normalize_phone_or_400(body.phone)
    valid, error = store.verify(phone, body.code)
    if not valid:
        raise HTTPException(status_code=401, detail=error)

    members = MemberRepository(airtable)
    member = await members.get_by_phone(phone)
    if not member:
        member = await members.create(
            {"Phone": phone, "Status": MEMBER_PENDING, "Signup Date": to_iso(utc_now())}
        )
        logger.info(f"✅ Pending member created for {phone}: {member['id']}")

    return {"success": True, "verified": True, "phone": phone, "memberId": member["id"]}

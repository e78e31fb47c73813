"""
Security Utilities
Token generation for login codes, login links and member session JWTs
"""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError
from jose import jwt as jose_jwt

from .config import JWT_SECRET

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_DURATION = timedelta(days=7)


# ============================================================================
# TOKEN GENERATION
# ============================================================================


def generate_otp(length: int = 6) -> str:
    """Generate a numeric one-time code"""
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_login_token() -> str:
    """Generate a 32-byte hex token for WhatsApp login links"""
    return secrets.token_hex(32)


# ============================================================================
# SESSION TOKENS
# ============================================================================


def create_session_token(
    member_id: str, phone: str, expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed member session token"""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or SESSION_DURATION)
    claims = {
        "memberId": member_id,
        "phone": phone,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jose_jwt.encode(claims, JWT_SECRET, algorithm=ALGORITHM)


def verify_session_token(token: str) -> Optional[dict[str, Any]]:
    """Verify and decode a session token. Returns None if invalid or expired."""
    try:
        payload = jose_jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Session token verification failed: {e}")
        return None
    if not payload.get("memberId"):
        return None
    return payload

"""
Verification Code Store
One-time login and signup codes kept in Redis with a TTL so every API
instance sees the same codes. A code is deleted once it verifies.
"""

import hmac
import json
import logging
from typing import Optional

from fastapi import HTTPException

from ..redis_client import get_redis_client
from ..security_utils import generate_otp

logger = logging.getLogger(__name__)

CODE_TTL_SECONDS = 15 * 60
MAX_ATTEMPTS = 3


class VerificationCodeStore:
    """Redis-backed store for phone verification codes"""

    def __init__(self, client=None, prefix: str = "verify"):
        self.client = client
        self.prefix = prefix

    def _get_client(self):
        if self.client is None:
            try:
                self.client = get_redis_client()
            except Exception as e:
                logger.error(f"❌ Verification store unavailable: {e}")
                raise HTTPException(
                    status_code=503, detail="Verification service temporarily unavailable"
                ) from e
        return self.client

    def _key(self, phone: str) -> str:
        return f"{self.prefix}:{phone}"

    def _attempts_key(self, phone: str) -> str:
        return f"{self.prefix}:{phone}:attempts"

    def issue(self, phone: str) -> str:
        """Generate a new code for the phone, replacing any earlier one"""
        code = generate_otp()
        client = self._get_client()
        client.setex(self._key(phone), CODE_TTL_SECONDS, json.dumps({"code": code}))
        client.delete(self._attempts_key(phone))
        logger.info(f"🔐 Verification code issued for {phone}")
        return code

    def verify(self, phone: str, code: str) -> tuple[bool, Optional[str]]:
        """
        Check a code for the phone.

        Returns:
            Tuple of (success, error_message). The code is consumed on success.
            Every check counts towards MAX_ATTEMPTS.
        """
        client = self._get_client()
        key = self._key(phone)
        attempts_key = self._attempts_key(phone)
        raw = client.get(key)

        if not raw:
            return False, "Code expired or not found. Please request a new code."

        attempts = client.incr(attempts_key)
        if attempts == 1:
            client.expire(attempts_key, CODE_TTL_SECONDS)
        if attempts > MAX_ATTEMPTS:
            client.delete(key, attempts_key)
            return False, "Too many attempts. Please request a new code."

        expected = json.loads(raw).get("code") or ""
        if not hmac.compare_digest(expected.encode(), (code or "").strip().encode()):
            logger.warning(f"⚠️ Invalid verification code for {phone} (attempt {attempts})")
            return False, "Invalid code"

        client.delete(key, attempts_key)
        logger.info(f"✅ Verification code accepted for {phone}")
        return True, None


def get_verification_store() -> VerificationCodeStore:
    """Dependency injection for VerificationCodeStore"""
    return VerificationCodeStore()

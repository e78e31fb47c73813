"""Portal domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel


class GymChangeRequest(BaseModel):
    gymId: Optional[str] = None


class RequestCodeRequest(BaseModel):
    phone: Optional[str] = None


class VerifyCodeRequest(BaseModel):
    phone: Optional[str] = None
    code: Optional[str] = None


class LoginLinkRequest(BaseModel):
    phone: Optional[str] = None


class TokenLoginRequest(BaseModel):
    token: Optional[str] = None


class PhoneVerifySendRequest(BaseModel):
    """Signup phone check, sent before checkout"""

    phone: Optional[str] = None
    firstName: Optional[str] = None
    email: Optional[str] = None


class PhoneVerifyCheckRequest(BaseModel):
    phone: Optional[str] = None
    code: Optional[str] = None

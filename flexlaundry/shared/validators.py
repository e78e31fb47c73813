"""Shared validation utilities"""

import re
from typing import Optional

from ..config import DEFAULT_COUNTRY_CODE

UK_PHONE_PATTERN = re.compile(r"^\+44[1-9]\d{9,10}$")
BAG_NUMBER_PATTERN = re.compile(r"^B?0*(\d{1,3})$", re.IGNORECASE)


def normalize_phone(phone: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Normalize a phone number to E.164 format.

    Numbers without a leading "+" get the default country code prepended
    exactly once: a national "0" prefix is replaced, "00" becomes "+", and
    digits that already carry the country code only gain the "+".

    Args:
        phone: Phone number string in various formats
        country_code: Country calling code without "+" (default "44")

    Returns:
        Normalized phone number (+447XXXXXXXXX)

    Raises:
        ValueError: If no digits are present
    """
    if not phone:
        raise ValueError("Phone number is required")

    cleaned = re.sub(r"[^\d+]", "", phone.strip())
    has_plus = cleaned.startswith("+")
    digits = re.sub(r"\D", "", cleaned)

    if not digits:
        raise ValueError("Phone number must contain digits")

    if has_plus:
        return f"+{digits}"
    if digits.startswith("00"):
        return f"+{digits[2:]}"
    if digits.startswith("0"):
        return f"+{country_code}{digits[1:]}"
    # National UK numbers are 10 digits without the trunk 0
    if digits.startswith(country_code) and len(digits) > 10:
        return f"+{digits}"
    return f"+{country_code}{digits}"


def is_valid_uk_phone(phone: Optional[str]) -> bool:
    """Check a normalized number is a plausible UK number"""
    if not phone:
        return False
    return bool(UK_PHONE_PATTERN.match(phone))


def format_phone_for_display(phone: Optional[str]) -> str:
    """Format +447700900123 as +44 7700 900 123"""
    if not phone:
        return ""
    if phone.startswith("+44") and len(phone) == 13:
        return f"+44 {phone[3:7]} {phone[7:10]} {phone[10:]}"
    return phone


def normalize_bag_number(value: Optional[str]) -> Optional[str]:
    """
    Normalize a bag number to the B### format.

    Args:
        value: Raw input such as "B042", "b42" or "042"

    Returns:
        "B042", or None if the input does not look like a bag number
    """
    if not value:
        return None
    match = BAG_NUMBER_PATTERN.match(value.strip())
    if not match:
        return None
    return f"B{int(match.group(1)):03d}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email

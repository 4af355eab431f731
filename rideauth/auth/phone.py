"""
Phone number utilities.

Numbers must be in international format with a leading "+" and country code.
"""

import re
from typing import Optional

_SEPARATORS = re.compile(r"[\s\-().]")
_E164 = re.compile(r"^\+[1-9]\d{7,14}$")


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to E.164 format.

    Removes spaces, dashes, dots and parentheses. The country code prefix
    is mandatory; numbers without a leading "+" are rejected rather than
    guessed.

    Args:
        phone: Phone number as entered by the user

    Returns:
        Normalized phone number or None if invalid

    Examples:
        normalize_phone("+94 77 123 4567") -> "+94771234567"
        normalize_phone("(077) 123-4567") -> None
    """
    if not phone:
        return None

    cleaned = _SEPARATORS.sub("", phone.strip())

    if not _E164.match(cleaned):
        return None

    return cleaned


def mask_phone(phone: str) -> str:
    """Mask all but the last four digits for logging."""
    if not phone:
        return ""
    return re.sub(r"\d(?=\d{4})", "*", phone)

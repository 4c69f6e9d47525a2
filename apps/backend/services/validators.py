# apps/backend/services/validators.py
import re
from typing import Any

from apps.backend.services.core_service import CoreError

_AADHAR_RE = re.compile(r"^\d{12}$")
_PHONE_RE = re.compile(r"^\+?\d{10,15}$")

_HTML_ESCAPES = (("<", "&lt;"), (">", "&gt;"), ('"', "&quot;"), ("'", "&#x27;"))

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def strip_spaces(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return re.sub(r"\s", "", value)


def is_valid_aadhar(value: Any) -> bool:
    return bool(_AADHAR_RE.match(strip_spaces(value)))


def is_valid_phone(value: Any) -> bool:
    return bool(_PHONE_RE.match(strip_spaces(value)))


def format_aadhar(value: str) -> str:
    """
    Group the first 12 digits in blocks of 4: "123412341234" -> "1234 1234 1234".
    """
    digits = re.sub(r"\D", "", value or "")[:12]
    return " ".join(digits[i:i + 4] for i in range(0, len(digits), 4))


def sanitize_input(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    for raw, escaped in _HTML_ESCAPES:
        value = value.replace(raw, escaped)
    return value.strip()


def month_name(index: int) -> str:
    if 0 <= index < len(MONTHS):
        return MONTHS[index]
    return ""


def require_aadhar(value: Any) -> str:
    cleaned = strip_spaces(value)
    if not _AADHAR_RE.match(cleaned):
        raise CoreError("Aadhar number must be 12 digits", 400)
    return cleaned


def require_phone(value: Any) -> str:
    cleaned = strip_spaces(value)
    if not _PHONE_RE.match(cleaned):
        raise CoreError("Enter a valid WhatsApp number", 400)
    return cleaned


def require_text(value: Any, field: str) -> str:
    cleaned = value.strip() if isinstance(value, str) else ""
    if not cleaned:
        raise CoreError(f"{field} is required", 400)
    return cleaned

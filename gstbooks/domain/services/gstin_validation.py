# gstbooks/domain/services/gstin_validation.py

import re
from typing import Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from gstbooks.domain.errors import ValidationFailure

PAN_REGEX = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
GSTIN_REGEX = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
STATE_CODE_REGEX = re.compile(r"^[0-9]{2}$")
IPV4_REGEX = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")

_EMAIL = TypeAdapter(EmailStr)


def normalize_gstin(gstin: Optional[str]) -> str:
    return (gstin or "").strip().upper()


def is_valid_pan(pan: Optional[str]) -> bool:
    if not pan:
        return False
    pan = pan.strip().upper()
    return bool(PAN_REGEX.match(pan))


def is_valid_gstin(gstin: Optional[str]) -> bool:
    if not gstin:
        return False
    gstin = normalize_gstin(gstin)
    if not GSTIN_REGEX.match(gstin):
        return False

    # Extra: check PAN part inside GSTIN
    pan_part = gstin[2:12]  # chars 3–12
    return is_valid_pan(pan_part)


def is_valid_state_code(state_code: Optional[str]) -> bool:
    if not state_code:
        return False
    return bool(STATE_CODE_REGEX.match(state_code.strip()))


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    try:
        _EMAIL.validate_python(email.strip())
    except ValidationError:
        return False
    return True


def is_valid_ip_address(ip: Optional[str]) -> bool:
    if not ip:
        return False
    m = IPV4_REGEX.match(ip.strip())
    return bool(m) and all(0 <= int(part) <= 255 for part in m.groups())


def validate_credential_fields(
    gstin: Optional[str] = None,
    email: Optional[str] = None,
    state_code: Optional[str] = None,
    ip_address: Optional[str] = None,
    *,
    partial: bool = False,
) -> None:
    """Raise ValidationFailure listing every bad field.

    With ``partial=True`` only the fields that were supplied are checked
    (used for updates).
    """
    errors: list[dict[str, str]] = []

    if not (partial and gstin is None) and not is_valid_gstin(gstin):
        errors.append({"field": "gstin", "message": "Invalid GSTIN format"})
    if not (partial and email is None) and not is_valid_email(email):
        errors.append({"field": "email", "message": "Invalid email address"})
    if not (partial and state_code is None) and not is_valid_state_code(state_code):
        errors.append({"field": "state_code", "message": "State code must be 2 digits"})
    if ip_address and not is_valid_ip_address(ip_address):
        errors.append({"field": "ip_address", "message": "Invalid IPv4 address"})

    if errors:
        raise ValidationFailure("Invalid GST credential details", errors=errors)

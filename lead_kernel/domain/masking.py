"""Preview masking for contact fields of records the viewer has not unlocked."""

import re

_NON_DIGIT = re.compile(r"\D")


def mask_email(email: str | None) -> str | None:
    """``jane.doe@acme.com`` -> ``j***@acme.com``."""
    if not email:
        return email
    local, sep, domain = email.partition("@")
    if not sep or not local:
        return "***"
    return f"{local[0]}***@{domain}"


def mask_phone(phone: str | None) -> str | None:
    """Keep only the last two digits: ``(555) 010-4477`` -> ``***-**77``."""
    if not phone:
        return phone
    digits = _NON_DIGIT.sub("", phone)
    if len(digits) < 2:
        return "***"
    return f"***-**{digits[-2:]}"


def mask_name(name: str | None) -> str | None:
    """First letter of each word: ``Jane Doe`` -> ``J*** D***``."""
    if not name:
        return name
    return " ".join(f"{part[0]}***" for part in name.split())

"""
Row validators -- pure functions over one staging row's fields.

Each validator returns a list of ValidationError; ``validate_row`` runs them
in a fixed order, accumulating every failure, and derives the identity
keys used by the merge engine.  ZERO I/O: re-running over the same stored
fields always gives the same answer.

Stored form of the error list: ``CODE:field`` items joined by ``;``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from urllib.parse import urlparse

from lead_ingestion.domain.types import RowValidation
from lead_kernel.domain.dtos import ValidationError

EMAIL_FIELD = "validated_corporate_email"
COMPANY_FIELD = "company_name"

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

ERROR_SEPARATOR = ";"


def normalize_email(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


def normalize_company(value: str | None) -> str | None:
    """Lowercase, punctuation removed, whitespace collapsed: ``Acme, Inc.`` -> ``acme inc``."""
    if value is None:
        return None
    value = _PUNCTUATION.sub("", value.lower())
    value = _WHITESPACE.sub(" ", value).strip()
    return value or None


def _present(fields: Mapping[str, str | None], name: str) -> bool:
    value = fields.get(name)
    return value is not None and value.strip() != ""


def validate_required_fields(
    fields: Mapping[str, str | None],
    required: tuple[str, ...],
) -> list[ValidationError]:
    return [
        ValidationError(
            code="MISSING_REQUIRED_FIELD",
            message=f"Required field {name!r} is missing",
            field=name,
        )
        for name in required
        if not _present(fields, name)
    ]


def validate_contact(
    fields: Mapping[str, str | None],
    any_of: tuple[str, ...],
) -> list[ValidationError]:
    """At least one contact channel must be present."""
    if not any_of or any(_present(fields, name) for name in any_of):
        return []
    return [
        ValidationError(
            code="MISSING_CONTACT",
            message=f"One of {', '.join(any_of)} is required",
            field="|".join(any_of),
        )
    ]


def validate_email_format(fields: Mapping[str, str | None]) -> list[ValidationError]:
    value = fields.get(EMAIL_FIELD)
    if not value or _EMAIL_PATTERN.match(value.strip()):
        return []
    return [
        ValidationError(
            code="INVALID_EMAIL",
            message=f"Not an email address: {value!r}",
            field=EMAIL_FIELD,
        )
    ]


def _is_url(value: str) -> bool:
    if any(ch.isspace() for ch in value):
        return False
    candidate = value if "://" in value else f"http://{value}"
    parsed = urlparse(candidate)
    return parsed.scheme in ("http", "https") and "." in parsed.netloc


def validate_company_identity(fields: Mapping[str, str | None]) -> list[ValidationError]:
    """A present company name must survive normalization; it is the fallback merge key."""
    if not _present(fields, COMPANY_FIELD) or normalize_company(fields.get(COMPANY_FIELD)):
        return []
    return [
        ValidationError(
            code="INVALID_COMPANY",
            message=f"Company name has no letters or digits: {fields.get(COMPANY_FIELD)!r}",
            field=COMPANY_FIELD,
        )
    ]


def validate_urls(
    fields: Mapping[str, str | None],
    url_fields: tuple[str, ...],
) -> list[ValidationError]:
    errors = []
    for name in url_fields:
        value = fields.get(name)
        if value and not _is_url(value.strip()):
            errors.append(
                ValidationError(code="INVALID_URL", message=f"Not a URL: {value!r}", field=name)
            )
    return errors


def validate_row(
    fields: Mapping[str, str | None],
    required: tuple[str, ...] = (COMPANY_FIELD,),
    contact_any_of: tuple[str, ...] = (EMAIL_FIELD, "phone_number"),
    url_fields: tuple[str, ...] = ("website", "sec_filing_url"),
) -> RowValidation:
    errors: list[ValidationError] = []
    errors.extend(validate_required_fields(fields, required))
    errors.extend(validate_company_identity(fields))
    errors.extend(validate_contact(fields, contact_any_of))
    errors.extend(validate_email_format(fields))
    errors.extend(validate_urls(fields, url_fields))
    return RowValidation(
        errors=tuple(errors),
        email_norm=normalize_email(fields.get(EMAIL_FIELD)),
        company_norm=normalize_company(fields.get(COMPANY_FIELD)),
    )


def format_validation_errors(errors: tuple[ValidationError, ...] | list[ValidationError]) -> str | None:
    if not errors:
        return None
    return ERROR_SEPARATOR.join(
        f"{error.code}:{error.field}" if error.field else error.code for error in errors
    )


def parse_validation_errors(text: str | None) -> list[tuple[str, str | None]]:
    """Inverse of ``format_validation_errors``: ``[(code, field), ...]``."""
    if not text:
        return []
    parsed = []
    for item in text.split(ERROR_SEPARATOR):
        code, _, field = item.partition(":")
        parsed.append((code, field or None))
    return parsed

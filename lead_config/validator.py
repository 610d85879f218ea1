"""Structural validation of a parsed LeadsConfiguration."""

from __future__ import annotations

from dataclasses import dataclass

from lead_config.schema import LeadsConfiguration


class ConfigurationError(ValueError):
    """Configuration failed validation."""

    def __init__(self, errors: tuple[str, ...]):
        self.errors = errors
        super().__init__(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


@dataclass(frozen=True)
class ConfigValidationResult:
    errors: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_configuration(config: LeadsConfiguration) -> ConfigValidationResult:
    errors: list[str] = []
    ingestion = config.ingestion
    known = set(ingestion.fields)

    if not ingestion.header_aliases:
        errors.append("ingestion.header_aliases must not be empty")

    seen: dict[str, str] = {}
    for alias in ingestion.header_aliases:
        if alias.field not in known:
            errors.append(f"alias {alias.alias!r} targets unknown field {alias.field!r}")
        previous = seen.setdefault(alias.alias, alias.field)
        if previous != alias.field:
            errors.append(
                f"alias {alias.alias!r} maps to both {previous!r} and {alias.field!r}"
            )

    for group_name in ("required_fields", "contact_any_of", "url_fields"):
        for name in getattr(ingestion, group_name):
            if name not in known:
                errors.append(f"ingestion.{group_name} names unknown field {name!r}")

    if ingestion.chunk_size < 1:
        errors.append("ingestion.chunk_size must be >= 1")
    if ingestion.max_upload_bytes < 1:
        errors.append("ingestion.max_upload_bytes must be >= 1")

    for name in ("exclusive_cap", "premium_cap", "shared_cap", "cost_per_record"):
        if getattr(config.claims, name) < 1:
            errors.append(f"claims.{name} must be >= 1")

    if not config.database.url:
        errors.append("database.url must not be empty")

    return ConfigValidationResult(errors=tuple(errors))

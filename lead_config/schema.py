"""
Configuration schema -- frozen dataclasses produced by the loader.

Every object here is immutable; the loader is the only producer and
``get_active_config()`` the only public consumer-facing path.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Canonical staging fields, in CSV export order.
STAGING_FIELDS: tuple[str, ...] = (
    "full_contact_name",
    "title_role",
    "validated_corporate_email",
    "phone_number",
    "company_name",
    "website",
    "state",
    "regulation_type",
    "filing_date",
    "sec_filing_url",
)


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///leads.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    busy_timeout: int = 30


@dataclass(frozen=True)
class HeaderAlias:
    """One normalized header spelling and the staging field it fills."""

    alias: str
    field: str


@dataclass(frozen=True)
class IngestionSchema:
    fields: tuple[str, ...] = STAGING_FIELDS
    header_aliases: tuple[HeaderAlias, ...] = ()
    required_fields: tuple[str, ...] = ("company_name",)
    contact_any_of: tuple[str, ...] = ("validated_corporate_email", "phone_number")
    url_fields: tuple[str, ...] = ("website", "sec_filing_url")
    date_formats: tuple[str, ...] = ()
    chunk_size: int = 250
    max_upload_bytes: int = 10 * 1024 * 1024

    def alias_table(self) -> dict[str, str]:
        """Normalized header -> staging field."""
        return {a.alias: a.field for a in self.header_aliases}


@dataclass(frozen=True)
class ClaimsConfig:
    exclusive_cap: int = 1
    premium_cap: int = 1
    shared_cap: int = 3
    cost_per_record: int = 1


@dataclass(frozen=True)
class LeadsConfiguration:
    """The sole runtime configuration artifact."""

    name: str
    version: int
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    ingestion: IngestionSchema = field(default_factory=IngestionSchema)
    claims: ClaimsConfig = field(default_factory=ClaimsConfig)
    checksum: str = ""

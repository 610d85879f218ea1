"""
YAML loader: file -> ``lead_config.schema`` dataclasses.

Internal tooling for ``get_active_config()``; callers never parse YAML
themselves.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from lead_config.schema import (
    ClaimsConfig,
    DatabaseSettings,
    HeaderAlias,
    IngestionSchema,
    LeadsConfiguration,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
        busy_timeout=int(data.get("busy_timeout", defaults.busy_timeout)),
    )


def parse_header_aliases(data: dict[str, Any]) -> tuple[HeaderAlias, ...]:
    """
    ``{field: [alias, ...]}`` -> flat alias tuple.

    Declaration order is kept; it does not decide conflicts (the first CSV
    column wins, not the first alias).
    """
    aliases: list[HeaderAlias] = []
    for target, spellings in (data or {}).items():
        for spelling in spellings or ():
            aliases.append(HeaderAlias(alias=str(spelling), field=str(target)))
    return tuple(aliases)


def parse_ingestion(data: dict[str, Any]) -> IngestionSchema:
    defaults = IngestionSchema()
    return IngestionSchema(
        fields=tuple(data.get("fields", defaults.fields)),
        header_aliases=parse_header_aliases(data.get("header_aliases", {})),
        required_fields=tuple(data.get("required_fields", defaults.required_fields)),
        contact_any_of=tuple(data.get("contact_any_of", defaults.contact_any_of)),
        url_fields=tuple(data.get("url_fields", defaults.url_fields)),
        date_formats=tuple(data.get("date_formats", defaults.date_formats)),
        chunk_size=int(data.get("chunk_size", defaults.chunk_size)),
        max_upload_bytes=int(data.get("max_upload_bytes", defaults.max_upload_bytes)),
    )


def parse_claims(data: dict[str, Any]) -> ClaimsConfig:
    defaults = ClaimsConfig()
    return ClaimsConfig(
        exclusive_cap=int(data.get("exclusive_cap", defaults.exclusive_cap)),
        premium_cap=int(data.get("premium_cap", defaults.premium_cap)),
        shared_cap=int(data.get("shared_cap", defaults.shared_cap)),
        cost_per_record=int(data.get("cost_per_record", defaults.cost_per_record)),
    )


def parse_configuration(data: dict[str, Any]) -> LeadsConfiguration:
    return LeadsConfiguration(
        name=str(data.get("name", "leads")),
        version=int(data.get("version", 1)),
        database=parse_database(data.get("database", {}) or {}),
        ingestion=parse_ingestion(data.get("ingestion", {}) or {}),
        claims=parse_claims(data.get("claims", {}) or {}),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> LeadsConfiguration:
    return parse_configuration(load_yaml_file(path))


def with_database_url(config: LeadsConfiguration, url: str) -> LeadsConfiguration:
    return replace(config, database=replace(config.database, url=url))

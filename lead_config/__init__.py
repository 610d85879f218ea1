"""
lead_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables.

Architecture position:
    Configuration.  Sits above ``lead_kernel`` and below ``lead_services``.
    The kernel MUST NEVER import from ``lead_config``; ``bridges`` translates
    configuration into kernel inputs.

Environment:
    LEADS_CONFIG_PATH   -- YAML file to load instead of defaults/leads.yaml
    LEADS_DATABASE_URL  -- overrides database.url

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ConfigurationError`` -- structural validation failed.

Audit relevance:
    Every successful call emits a ``LEADS_CONFIG_TRACE`` log entry with the
    configuration name, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from lead_config.loader import load_configuration, with_database_url
from lead_config.schema import LeadsConfiguration
from lead_config.validator import ConfigurationError, validate_configuration

__all__ = ["ConfigurationError", "LeadsConfiguration", "get_active_config"]

_logger = logging.getLogger("lead_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "leads.yaml"


def get_active_config(config_path: Path | str | None = None) -> LeadsConfiguration:
    """The ONLY public configuration entrypoint.

    Resolution order for the file: explicit ``config_path``, then
    ``LEADS_CONFIG_PATH``, then the shipped defaults.  ``LEADS_DATABASE_URL``
    overrides the database URL after validation of the file itself.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigurationError: If validation fails.
    """
    path = Path(config_path or os.environ.get("LEADS_CONFIG_PATH") or DEFAULT_CONFIG_PATH)
    config = load_configuration(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ConfigurationError(validation.errors)

    database_url = os.environ.get("LEADS_DATABASE_URL")
    if database_url:
        config = with_database_url(config, database_url)

    _logger.info(
        "LEADS_CONFIG_TRACE",
        extra={
            "trace_type": "LEADS_CONFIG_TRACE",
            "config_name": config.name,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
            "alias_count": len(config.ingestion.header_aliases),
        },
    )
    return config

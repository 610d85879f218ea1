"""Configuration loading, validation and the config -> kernel bridges."""

from dataclasses import replace

import pytest
import yaml

from lead_config import ConfigurationError, get_active_config
from lead_config.bridges import build_claim_policy, engine_options
from lead_config.loader import compute_checksum, load_configuration, parse_header_aliases
from lead_config.schema import HeaderAlias
from lead_config.validator import validate_configuration
from lead_kernel.domain.business_rules import ClaimPolicy


@pytest.fixture
def write_config(tmp_path):
    def _write(data: dict):
        path = tmp_path / "leads.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


def _minimal(**overrides) -> dict:
    data = {
        "name": "test",
        "version": 2,
        "database": {"url": "sqlite:///x.db"},
        "ingestion": {
            "fields": ["company_name", "validated_corporate_email", "phone_number"],
            "required_fields": ["company_name"],
            "contact_any_of": ["validated_corporate_email", "phone_number"],
            "url_fields": [],
            "header_aliases": {
                "company_name": ["company", "company_name"],
                "validated_corporate_email": ["email"],
                "phone_number": ["phone"],
            },
        },
    }
    data.update(overrides)
    return data


class TestDefaults:

    def test_shipped_defaults_load(self, monkeypatch):
        monkeypatch.delenv("LEADS_CONFIG_PATH", raising=False)
        monkeypatch.delenv("LEADS_DATABASE_URL", raising=False)
        config = get_active_config()

        assert config.name == "leads"
        assert config.claims.shared_cap == 3
        assert config.ingestion.chunk_size == 250
        assert HeaderAlias(alias="email", field="validated_corporate_email") in config.ingestion.header_aliases
        assert len(config.checksum) == 64

    def test_database_url_override(self, monkeypatch):
        monkeypatch.setenv("LEADS_DATABASE_URL", "postgresql://leads@db/leads")
        assert get_active_config().database.url == "postgresql://leads@db/leads"

    def test_config_path_from_environment(self, monkeypatch, write_config):
        monkeypatch.setenv("LEADS_CONFIG_PATH", str(write_config(_minimal())))
        config = get_active_config()
        assert config.name == "test"
        assert config.version == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestLoader:

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_missing_sections_take_defaults(self, write_config):
        config = load_configuration(write_config({"name": "bare"}))
        assert config.version == 1
        assert config.claims.cost_per_record == 1
        assert config.database.busy_timeout == 30

    def test_alias_declaration_order_kept(self):
        aliases = parse_header_aliases({"phone_number": ["phone", "tel"], "website": ["url"]})
        assert [a.alias for a in aliases] == ["phone", "tel", "url"]

    def test_config_trace_logged(self, captured_logs, write_config):
        config = get_active_config(write_config(_minimal()))
        record = next(r for r in captured_logs() if r["message"] == "LEADS_CONFIG_TRACE")
        assert record["checksum"] == config.checksum
        assert record["config_name"] == "test"


class TestValidation:

    def test_minimal_is_valid(self, write_config):
        assert validate_configuration(load_configuration(write_config(_minimal()))).is_valid

    def test_alias_to_unknown_field(self, write_config):
        data = _minimal()
        data["ingestion"]["header_aliases"]["industry"] = ["sector"]
        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config(write_config(data))
        assert any("unknown field 'industry'" in e for e in exc_info.value.errors)

    def test_conflicting_alias(self, write_config):
        data = _minimal()
        data["ingestion"]["header_aliases"]["phone_number"] = ["phone", "email"]
        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config(write_config(data))
        assert any("maps to both" in e for e in exc_info.value.errors)

    def test_numeric_bounds(self, write_config):
        data = _minimal(claims={"shared_cap": 0})
        data["ingestion"]["chunk_size"] = 0
        config = load_configuration(write_config(data))
        errors = validate_configuration(config).errors
        assert "ingestion.chunk_size must be >= 1" in errors
        assert "claims.shared_cap must be >= 1" in errors

    def test_empty_database_url(self, write_config):
        config = load_configuration(write_config(_minimal()))
        config = replace(config, database=replace(config.database, url=""))
        assert "database.url must not be empty" in validate_configuration(config).errors


class TestBridges:

    def test_claim_policy(self, leads_config):
        policy = build_claim_policy(leads_config)
        assert isinstance(policy, ClaimPolicy)
        assert (policy.exclusive_cap, policy.premium_cap, policy.shared_cap) == (1, 1, 3)

    def test_engine_options(self, leads_config):
        assert engine_options(leads_config) == {
            "echo": False,
            "pool_size": 20,
            "max_overflow": 10,
            "busy_timeout": 30,
        }

"""
Tests for the YAML configuration loader.
"""

import pytest
import yaml

import credit_config
from credit_config import PortalConfig, get_active_config, load_config, parse_config, reset_active_config
from credit_config.loader import DEFAULT_CONFIG_PATH, apply_env_overrides


@pytest.fixture
def write_yaml(tmp_path):
    def _write(text, name="portal.yaml"):
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write


class TestDefaults:
    def test_packaged_defaults(self):
        config = load_config(environ={})
        assert config.ledger.default_validity_months == 12
        assert config.ledger.max_conflict_retries == 3
        assert config.vacancy.max_publication_days == 365
        assert config.sweeper.frequency == "daily"
        assert config.sync.webhook_url is None

    def test_defaults_file_matches_schema_defaults(self):
        assert load_config(DEFAULT_CONFIG_PATH, environ={}) == PortalConfig()

    def test_empty_file_yields_defaults(self, write_yaml):
        assert load_config(write_yaml(""), environ={}) == PortalConfig()


class TestParsing:
    def test_partial_sections(self, write_yaml):
        path = write_yaml(
            """
            ledger:
              default_validity_months: 6
            sweeper:
              frequency: hourly
            """.replace("\n            ", "\n")
        )
        config = load_config(path, environ={})
        assert config.ledger.default_validity_months == 6
        assert config.ledger.max_conflict_retries == 3
        assert config.sweeper.frequency == "hourly"

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="unknown config section"):
            parse_config({"billing": {}})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="ledger: unknown key"):
            parse_config({"ledger": {"validity": 12}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="must be a mapping"):
            parse_config({"ledger": [1, 2]})

    @pytest.mark.parametrize(
        "data, key",
        [
            ({"ledger": {"default_validity_months": 0}}, "ledger.default_validity_months"),
            ({"ledger": {"max_conflict_retries": 0}}, "ledger.max_conflict_retries"),
            ({"vacancy": {"max_publication_days": 10}}, "vacancy.max_publication_days"),
            ({"sweeper": {"frequency": "monthly"}}, "sweeper.frequency"),
            ({"sweeper": {"run_hour": 24}}, "sweeper.run_hour"),
            ({"sync": {"timeout_seconds": 0}}, "sync.timeout_seconds"),
            ({"logging": {"level": "LOUD"}}, "logging.level"),
        ],
    )
    def test_out_of_range_values(self, data, key):
        with pytest.raises(ValueError, match=key.replace(".", r"\.")):
            parse_config(data)

    def test_top_level_must_be_mapping(self, write_yaml):
        with pytest.raises(ValueError):
            load_config(write_yaml("- a\n- b\n"), environ={})

    def test_malformed_yaml(self, write_yaml):
        with pytest.raises(yaml.YAMLError):
            load_config(write_yaml("ledger: [unclosed\n"), environ={})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", environ={})


class TestEnvironment:
    def test_env_overrides_connection_settings(self):
        config = apply_env_overrides(
            PortalConfig(),
            {
                "CREDITS_DATABASE_URL": "postgresql://ledger@db/credits",
                "CREDITS_SYNC_WEBHOOK_URL": "https://site.example.nl/hook",
            },
        )
        assert config.database.url == "postgresql://ledger@db/credits"
        assert config.sync.webhook_url == "https://site.example.nl/hook"
        assert config.ledger == PortalConfig().ledger

    def test_empty_env_values_are_ignored(self):
        assert apply_env_overrides(PortalConfig(), {"CREDITS_DATABASE_URL": ""}) == PortalConfig()


class TestActiveConfig:
    def test_cached_until_reset(self, monkeypatch, write_yaml):
        path = write_yaml("ledger:\n  default_validity_months: 9\n")
        monkeypatch.setenv(credit_config.ENV_CONFIG_PATH, str(path))
        monkeypatch.delenv("CREDITS_DATABASE_URL", raising=False)
        reset_active_config()
        try:
            first = get_active_config()
            assert first.ledger.default_validity_months == 9
            assert get_active_config() is first

            reset_active_config()
            monkeypatch.delenv(credit_config.ENV_CONFIG_PATH)
            assert get_active_config().ledger.default_validity_months == 12
        finally:
            reset_active_config()

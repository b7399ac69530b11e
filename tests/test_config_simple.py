"""Simplified test for configuration reading."""

import os
from datetime import timedelta
from unittest.mock import patch

from relaychat.configs import config as config_module
from relaychat.configs.config import AppConfig, get_app_config


class TestConfigSimple:
    """Test basic configuration functionality."""

    def test_config_works(self):
        """Test that configuration system works with environment variables."""

        env_vars = {
            "RELAYCHAT_BUDGET__MAX_TOKENS": "4000",
            "RELAYCHAT_RELAY__REQUEST_TIMEOUT": "PT30S",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            config = AppConfig()

            assert config.budget.max_tokens == 4000
            assert config.budget.reserved_for_response == 2000
            assert config.relay.request_timeout == timedelta(seconds=30)

    def test_static_yaml_loaded(self):
        """Values from configs/config.yaml are applied."""
        config = get_app_config()

        assert isinstance(config, AppConfig)
        assert config.upstream.base_url == "https://api.cerebras.ai/v1"
        assert config.upstream.timeout == timedelta(seconds=300)
        assert config.models.default_model == "llama-3.3-70b"
        assert config.models.aliases["llama3.1-8b"] == "llama-3.1-8b"
        assert config.models.overrides["qwen-3-32b"].max_completion_tokens == 10240

    def test_not_a_singleton(self):
        """Each call re-reads configuration."""
        assert get_app_config() is not get_app_config()

    def test_model_catalog_file(self, tmp_path, monkeypatch):
        """The models section is read from its own YAML file."""
        catalog = tmp_path / "models.yaml"
        catalog.write_text(
            "default_model: tiny\n"
            "available:\n"
            "  - id: tiny\n"
            "    name: TINY\n"
        )
        monkeypatch.setattr(config_module, "MODEL_CATALOG_FILE", catalog)

        config = AppConfig()

        assert config.models.default_model == "tiny"
        assert [m.id for m in config.models.available] == ["tiny"]
        assert config.models.legacy_prefix == "cerebras/"

    def test_override_file_wins(self, tmp_path, monkeypatch):
        """The file named by RELAYCHAT_CONFIGMAP_FILE beats env vars."""
        override = tmp_path / "override.yaml"
        override.write_text("budget:\n  max_tokens: 1234\n")
        monkeypatch.setenv("RELAYCHAT_CONFIGMAP_FILE", str(override))
        monkeypatch.setenv("RELAYCHAT_BUDGET__MAX_TOKENS", "999")

        config = AppConfig()

        assert config.budget.max_tokens == 1234
        assert config.budget.reserved_for_response == 2000

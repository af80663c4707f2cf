"""Tests for provider configuration loading."""

import json

import pytest

from llmtestkit.core.testkit_core.errors import ConfigurationError
from llmtestkit.core.testkit_core.llm.config import ProviderConfig, load_adapter_config


class TestLoadAdapterConfig:
    """Test environment and file based configuration."""

    def test_env_providers(self, tmp_path):
        """Test that providers with API keys are configured from the environment."""
        env = {
            "OPENAI_API_KEY": "sk-test-1234",
            "OPENAI_TEMPERATURE": "0.1",
            "GEMINI_API_KEY": "g-key",
            "GEMINI_MODEL": "gemini-1.5-pro",
            "FALLBACK_LLM_PROVIDERS": "gemini, glm",
        }
        config = load_adapter_config(env=env, config_path=tmp_path / "missing.json")

        assert config.primary_provider == "openai"
        assert config.fallback_providers == ("gemini", "glm")
        assert set(config.providers) == {"openai", "gemini"}
        assert config.providers["openai"].model == "gpt-4"
        assert config.providers["openai"].temperature == 0.1
        assert config.providers["gemini"].model == "gemini-1.5-pro"
        assert config.confidence_threshold == 0.7

    @pytest.mark.parametrize("raw,expected", [("0", 0.0), ("0.55", 0.55), ("", 0.7)])
    def test_confidence_threshold(self, tmp_path, raw, expected):
        """Test that an explicit zero threshold is kept and a blank one uses the default."""
        env = {"OPENAI_API_KEY": "sk-test", "LLM_CONFIDENCE_THRESHOLD": raw}
        config = load_adapter_config(env=env, config_path=tmp_path / "missing.json")
        assert config.confidence_threshold == expected

    def test_missing_primary_raises(self, tmp_path):
        """Test that an unconfigured primary provider is a configuration error."""
        with pytest.raises(ConfigurationError):
            load_adapter_config(env={"PRIMARY_LLM_PROVIDER": "glm"}, config_path=tmp_path / "none.json")

    def test_bad_number_raises(self, tmp_path):
        """Test that malformed numeric settings are rejected."""
        env = {"OPENAI_API_KEY": "k", "OPENAI_MAX_TOKENS": "lots"}
        with pytest.raises(ConfigurationError):
            load_adapter_config(env=env, config_path=tmp_path / "none.json")

    def test_mock_and_bedrock(self, tmp_path):
        """Test the mock switch and region-based Bedrock configuration."""
        env = {
            "PRIMARY_LLM_PROVIDER": "mock",
            "MOCK_LLM": "1",
            "BEDROCK_REGION": "eu-west-1",
        }
        config = load_adapter_config(env=env, config_path=tmp_path / "none.json")

        assert config.providers["mock"].model == "mock-playwright"
        assert config.providers["bedrock"].api_key == "eu-west-1"
        assert config.providers["bedrock"].model == "claude-3-sonnet-20240229"

    def test_agentrouter_strategy(self, tmp_path):
        """Test that the routing strategy lands in extra."""
        env = {"PRIMARY_LLM_PROVIDER": "agentrouter", "AGENTROUTER_API_KEY": "k", "AGENTROUTER_STRATEGY": "cheap"}
        config = load_adapter_config(env=env, config_path=tmp_path / "none.json")
        assert config.providers["agentrouter"].extra["routing_strategy"] == "cheap"

    def test_config_file_overrides(self, tmp_path):
        """Test that the JSON file overrides individual keys."""
        path = tmp_path / "llm.json"
        path.write_text(json.dumps({
            "primary_provider": "glm",
            "fallback_providers": ["openai"],
            "confidence_threshold": 0.5,
            "providers": {
                "openai": {"model": "gpt-4o"},
                "glm": {"api_key": "glm-key", "model": "glm-4", "region": "cn"},
            },
        }))
        config = load_adapter_config(env={"OPENAI_API_KEY": "sk-abc"}, config_path=path)

        assert config.primary_provider == "glm"
        assert config.fallback_providers == ("openai",)
        assert config.confidence_threshold == 0.5
        assert config.providers["openai"].api_key == "sk-abc"
        assert config.providers["openai"].model == "gpt-4o"
        assert config.providers["glm"].extra == {"region": "cn"}

    def test_corrupt_config_file_raises(self, tmp_path):
        """Test that an unreadable config file is a configuration error."""
        path = tmp_path / "llm.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_adapter_config(env={"OPENAI_API_KEY": "k"}, config_path=path)


class TestProviderConfig:
    """Test provider config serialization."""

    def test_to_dict_redacts_key(self):
        """Test that the credential is redacted by default."""
        config = ProviderConfig(name="openai", api_key="sk-secret-9876", model="gpt-4")

        assert config.to_dict()["api_key"] == "...9876"
        assert config.to_dict(redact=False)["api_key"] == "sk-secret-9876"

    def test_from_dict_collects_extra(self):
        """Test that unknown keys are kept in extra."""
        config = ProviderConfig.from_dict("x", {"api_key": "k", "model": "m", "site_url": "u"})
        assert config.extra == {"site_url": "u"}
        assert config.model == "m"

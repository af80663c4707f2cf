"""Provider configuration and loading from environment and config file."""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "llmtestkit" / "llm.json"

# Providers configured through <NAME>_API_KEY / <NAME>_MODEL / ... variables
ENV_PROVIDERS: Dict[str, Dict[str, Optional[str]]] = {
    "openai": {"model": "gpt-4", "endpoint": None},
    "gemini": {"model": "gemini-pro", "endpoint": "https://generativelanguage.googleapis.com/v1beta"},
    "glm": {"model": "chatglm3-6b", "endpoint": "https://open.bigmodel.cn/api/paas/v4"},
    "openrouter": {"model": "anthropic/claude-3-opus", "endpoint": "https://openrouter.ai/api/v1"},
    "agentrouter": {"model": "auto", "endpoint": "https://agentrouter.org/v1"},
}


@dataclass(frozen=True)
class ProviderConfig:
    """Credentials, model and generation defaults for one provider."""
    name: str
    api_key: Optional[str]
    model: Optional[str]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    endpoint: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "ProviderConfig":
        """Create config from dictionary; unknown keys land in ``extra``."""
        known = {f.name for f in fields(cls)} - {"name", "extra"}
        extra = dict(data.get("extra", {}))
        extra.update({k: v for k, v in data.items() if k not in known and k != "extra"})
        return cls(name=name, extra=extra, **{k: v for k, v in data.items() if k in known})

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Convert config to dictionary, hiding the credential by default."""
        data = {
            "api_key": self.api_key,
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "endpoint": self.endpoint,
            **self.extra,
        }
        if redact and self.api_key:
            data["api_key"] = f"...{self.api_key[-4:]}"
        return data


@dataclass(frozen=True)
class AdapterConfig:
    """Primary/fallback provider selection plus per-provider configuration."""
    primary_provider: str
    fallback_providers: Tuple[str, ...] = ()
    providers: Dict[str, ProviderConfig] = field(default_factory=dict)
    confidence_threshold: float = 0.7
    health_check_timeout: float = 5.0
    request_timeout: float = 60.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_provider": self.primary_provider,
            "fallback_providers": list(self.fallback_providers),
            "providers": {name: p.to_dict() for name, p in self.providers.items()},
            "confidence_threshold": self.confidence_threshold,
            "health_check_timeout": self.health_check_timeout,
            "request_timeout": self.request_timeout,
        }


def _env_float(env: Mapping[str, str], key: str) -> Optional[float]:
    raw = env.get(key)
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}")


def _env_int(env: Mapping[str, str], key: str) -> Optional[int]:
    raw = env.get(key)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}")


def _providers_from_env(env: Mapping[str, str]) -> Dict[str, ProviderConfig]:
    providers: Dict[str, ProviderConfig] = {}

    for name, defaults in ENV_PROVIDERS.items():
        prefix = name.upper()
        api_key = env.get(f"{prefix}_API_KEY")
        if not api_key:
            continue

        extra: Dict[str, Any] = {}
        if name == "agentrouter":
            extra["routing_strategy"] = env.get("AGENTROUTER_STRATEGY", "balanced")

        providers[name] = ProviderConfig(
            name=name,
            api_key=api_key,
            model=env.get(f"{prefix}_MODEL", defaults["model"]),
            temperature=_env_float(env, f"{prefix}_TEMPERATURE"),
            max_tokens=_env_int(env, f"{prefix}_MAX_TOKENS"),
            endpoint=env.get(f"{prefix}_ENDPOINT", defaults["endpoint"]),
            extra=extra,
        )

    # Bedrock authenticates through the AWS credential chain; the region
    # stands in for the credential.
    if env.get("BEDROCK_MODEL") or env.get("BEDROCK_REGION"):
        providers["bedrock"] = ProviderConfig(
            name="bedrock",
            api_key=env.get("BEDROCK_REGION", "us-east-1"),
            model=env.get("BEDROCK_MODEL", "claude-3-sonnet-20240229"),
            temperature=_env_float(env, "BEDROCK_TEMPERATURE"),
            max_tokens=_env_int(env, "BEDROCK_MAX_TOKENS"),
            extra={"aws_profile": env.get("BEDROCK_PROFILE")},
        )

    if env.get("MOCK_LLM", "").lower() in ("1", "true", "yes"):
        providers["mock"] = ProviderConfig(name="mock", api_key="mock", model="mock-playwright")

    return providers


def load_adapter_config(
    env: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
    dotenv: bool = True,
) -> AdapterConfig:
    """Load adapter configuration from environment variables and files.

    Precedence: environment (including ``.env``) first, then values from the
    JSON config file override individual keys.

    Args:
        env: Environment mapping (defaults to ``os.environ``)
        config_path: JSON config file (default: ~/.config/llmtestkit/llm.json)
        dotenv: Whether to load a ``.env`` file into the process environment

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the primary provider is not configured
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ

    primary = env.get("PRIMARY_LLM_PROVIDER", "openai").strip()
    fallbacks = tuple(
        p.strip() for p in env.get("FALLBACK_LLM_PROVIDERS", "").split(",") if p.strip()
    )
    providers = _providers_from_env(env)
    threshold = _env_float(env, "LLM_CONFIDENCE_THRESHOLD")

    config = AdapterConfig(
        primary_provider=primary,
        fallback_providers=fallbacks,
        providers=providers,
        confidence_threshold=threshold if threshold is not None else 0.7,
    )

    config_path = config_path or DEFAULT_CONFIG_PATH
    if config_path.exists():
        config = _merge_config_file(config, config_path)

    if config.primary_provider not in config.providers:
        raise ConfigurationError(
            f"Primary provider '{config.primary_provider}' is not configured. "
            f"Please add configuration for this provider."
        )

    logger.info(
        f"Loaded LLM config: primary={config.primary_provider}, "
        f"fallbacks={list(config.fallback_providers) or 'none'}"
    )
    return config


def _merge_config_file(config: AdapterConfig, config_path: Path) -> AdapterConfig:
    try:
        with open(config_path, "r") as f:
            file_config = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}")

    providers = dict(config.providers)
    for name, data in file_config.get("providers", {}).items():
        if name in providers:
            base = providers[name].to_dict(redact=False)
            base.update(data)
            providers[name] = ProviderConfig.from_dict(name, base)
        else:
            providers[name] = ProviderConfig.from_dict(name, data)

    updates: Dict[str, Any] = {"providers": providers}
    if "primary_provider" in file_config:
        updates["primary_provider"] = file_config["primary_provider"]
    if "fallback_providers" in file_config:
        updates["fallback_providers"] = tuple(file_config["fallback_providers"])
    for key in ("confidence_threshold", "health_check_timeout", "request_timeout"):
        if key in file_config:
            updates[key] = float(file_config[key])

    logger.info(f"Loaded LLM config from {config_path}")
    return replace(config, **updates)

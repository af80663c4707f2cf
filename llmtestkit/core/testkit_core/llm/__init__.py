"""LLM integration: configuration, prompts, parsing, adapters and routing."""

from .types import LLMMessage, LLMRequest, LLMResponse, LLMRole, LLMUsage, ParseContext
from .config import AdapterConfig, ProviderConfig, load_adapter_config
from .prompts import PromptBuilder, PromptTemplates
from .parser import ResponseParser
from .usage_tracker import CostLedger
from .providers.base import BaseLLMAdapter
from .factory import ADAPTER_TYPES, AdapterFactory

__all__ = [
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMRole",
    "LLMUsage",
    "ParseContext",
    "AdapterConfig",
    "ProviderConfig",
    "load_adapter_config",
    "PromptBuilder",
    "PromptTemplates",
    "ResponseParser",
    "CostLedger",
    "BaseLLMAdapter",
    "ADAPTER_TYPES",
    "AdapterFactory",
]

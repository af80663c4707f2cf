"""LLM adapter implementations."""

from .base import BaseLLMAdapter, LLMRequest, LLMResponse
from .bedrock import BedrockAdapter
from .compat import AgentRouterAdapter, GLMAdapter, OpenAICompatibleAdapter, OpenRouterAdapter
from .gemini import GeminiAdapter
from .mock import MockAdapter
from .openai import OpenAIAdapter

__all__ = [
    "BaseLLMAdapter",
    "LLMRequest",
    "LLMResponse",
    "OpenAIAdapter",
    "GeminiAdapter",
    "OpenAICompatibleAdapter",
    "OpenRouterAdapter",
    "GLMAdapter",
    "AgentRouterAdapter",
    "BedrockAdapter",
    "MockAdapter",
]

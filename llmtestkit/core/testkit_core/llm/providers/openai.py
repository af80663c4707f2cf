"""OpenAI chat-completions adapter."""

import logging

import openai
from openai import AsyncOpenAI

from .base import (
    BaseLLMAdapter,
    LLMAuthenticationError,
    LLMRateLimitError,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)


class OpenAIAdapter(BaseLLMAdapter):
    """OpenAI adapter using JSON response mode."""

    name = "openai"

    DEFAULT_MAX_TOKENS = 4000

    PRICING = {
        "gpt-4": (0.03, 0.03),
        "gpt-4-turbo": (0.01, 0.03),
        "gpt-4o": (0.005, 0.015),
        "gpt-4o-mini": (0.00015, 0.0006),
    }
    DEFAULT_PRICING = (0.002, 0.002)

    def __init__(self, config, client: AsyncOpenAI = None, **kwargs):
        super().__init__(config, **kwargs)
        self.client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.endpoint or None,
            timeout=self.request_timeout,
        )

    async def _complete(self, request: LLMRequest) -> LLMResponse:
        try:
            response = await self.client.chat.completions.create(
                model=request.model,
                messages=[m.to_dict() for m in request.messages],
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.RateLimitError as e:
            raise LLMRateLimitError(f"OpenAI rate limit exceeded: {e}", provider=self.name) from e
        except openai.AuthenticationError as e:
            raise LLMAuthenticationError(f"OpenAI authentication failed: {e}", provider=self.name) from e
        except openai.APIError as e:
            raise ProviderUnavailableError(f"OpenAI API error: {e}", provider=self.name) from e

        if not response.choices:
            raise ProviderUnavailableError("No choices in OpenAI response", provider=self.name)

        choice = response.choices[0]
        usage = None
        if response.usage is not None:
            usage = LLMUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        return LLMResponse(
            content=choice.message.content or "",
            model=response.model or request.model,
            usage=usage,
            finish_reason=choice.finish_reason,
            request_id=response.id,
        )

    async def _health_probe(self) -> bool:
        await self.client.models.retrieve(self.model, timeout=self.health_check_timeout)
        return True

    async def aclose(self) -> None:
        await self.client.close()

"""Adapters for OpenAI-compatible HTTP gateways (OpenRouter, GLM, AgentRouter)."""

import logging
from dataclasses import replace
from typing import Any, Dict, Optional

import httpx

from ..config import ProviderConfig
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


def raise_for_status(response: httpx.Response, provider: str) -> None:
    """Map an unsuccessful HTTP response onto the provider error taxonomy."""
    if response.is_success:
        return

    detail = response.text[:500]
    if response.status_code == 429:
        raise LLMRateLimitError(f"{provider} rate limit exceeded: {detail}", provider=provider)
    if response.status_code in (401, 403):
        raise LLMAuthenticationError(f"{provider} authentication failed: {detail}", provider=provider)
    raise ProviderUnavailableError(
        f"{provider} API error ({response.status_code}): {detail}", provider=provider
    )


def build_http_client(request_timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(request_timeout, connect=10.0))


class OpenAICompatibleAdapter(BaseLLMAdapter):
    """Base for gateways speaking the ``/chat/completions`` wire format."""

    DEFAULT_ENDPOINT: str = ""

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(config, **kwargs)
        self.endpoint = (config.endpoint or self.DEFAULT_ENDPOINT).rstrip("/")
        self.client = http_client or build_http_client(self.request_timeout)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _request_body(self, request: LLMRequest) -> Dict[str, Any]:
        return {
            "model": request.model,
            "messages": [m.to_dict() for m in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }

    async def _post(self, path: str, body: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"headers": self._headers(), "json": body}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self.client.post(f"{self.endpoint}{path}", **kwargs)
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"{self.name} request failed: {e}", provider=self.name) from e

        raise_for_status(response, self.name)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderUnavailableError(
                f"{self.name} returned a non-JSON body: {response.text[:200]}", provider=self.name
            ) from e

    async def _complete(self, request: LLMRequest) -> LLMResponse:
        data = await self._post("/chat/completions", self._request_body(request))
        return self._parse_completion(data, request)

    def _parse_completion(self, data: Dict[str, Any], request: LLMRequest) -> LLMResponse:
        choices = data.get("choices") or []
        if not choices:
            raise ProviderUnavailableError(f"No choices in {self.name} response", provider=self.name)

        choice = choices[0]
        content = (choice.get("message") or {}).get("content") or ""

        usage = None
        usage_data = data.get("usage")
        if usage_data:
            prompt_tokens = usage_data.get("prompt_tokens", 0)
            completion_tokens = usage_data.get("completion_tokens", 0)
            usage = LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=usage_data.get("total_tokens", prompt_tokens + completion_tokens),
            )

        return LLMResponse(
            content=content,
            model=data.get("model") or request.model,
            usage=usage,
            finish_reason=choice.get("finish_reason"),
            request_id=data.get("id"),
        )

    async def _health_probe(self) -> bool:
        response = await self.client.get(
            f"{self.endpoint}/models", headers=self._headers(), timeout=self.health_check_timeout
        )
        return response.is_success

    async def aclose(self) -> None:
        await self.client.aclose()


class OpenRouterAdapter(OpenAICompatibleAdapter):
    """OpenRouter gateway; models are addressed as ``vendor/model``."""

    name = "openrouter"
    DEFAULT_ENDPOINT = "https://openrouter.ai/api/v1"

    # claude-3-opus: $15 / $75 per million tokens
    PRICING = {"anthropic/claude-3-opus": (0.015, 0.075)}
    DEFAULT_PRICING = (0.015, 0.075)

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["HTTP-Referer"] = self.config.extra.get("referer", "https://github.com/llmtestkit")
        headers["X-Title"] = "LLM Test Kit"
        return headers


class GLMAdapter(OpenAICompatibleAdapter):
    """Zhipu GLM adapter. Usage is estimated when the API omits it."""

    name = "glm"
    DEFAULT_ENDPOINT = "https://open.bigmodel.cn/api/paas/v4"

    async def _health_probe(self) -> bool:
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": "ping"}],
            "max_tokens": 10,
        }
        await self._post("/chat/completions", body, timeout=self.health_check_timeout)
        return True


class AgentRouterAdapter(OpenAICompatibleAdapter):
    """AgentRouter picks the backing model itself and reports cost per call."""

    name = "agentrouter"
    DEFAULT_ENDPOINT = "https://agentrouter.org/v1"

    def __init__(self, config: ProviderConfig, **kwargs):
        if not config.model:
            config = replace(config, model="auto")
        super().__init__(config, **kwargs)
        self.routing_strategy = config.extra.get("routing_strategy", "balanced")

    def validate_config(self, config: ProviderConfig) -> bool:
        return bool(config.api_key and (config.endpoint or self.DEFAULT_ENDPOINT))

    def _request_body(self, request: LLMRequest) -> Dict[str, Any]:
        body = super()._request_body(request)
        if request.model == "auto":
            del body["model"]
        body["routing_strategy"] = self.routing_strategy
        return body

    def _parse_completion(self, data: Dict[str, Any], request: LLMRequest) -> LLMResponse:
        response = super()._parse_completion(data, request)
        if isinstance(data.get("cost"), (int, float)):
            response.cost = float(data["cost"])
        return response

    async def _health_probe(self) -> bool:
        response = await self.client.get(
            f"{self.endpoint}/health", headers=self._headers(), timeout=self.health_check_timeout
        )
        return response.is_success

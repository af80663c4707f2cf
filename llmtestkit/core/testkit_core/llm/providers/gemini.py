"""Google Gemini adapter over the generativelanguage REST API."""

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import ProviderConfig
from .base import (
    BaseLLMAdapter,
    LLMRequest,
    LLMResponse,
    LLMRole,
    LLMUsage,
    ProviderUnavailableError,
)
from .compat import build_http_client, raise_for_status

logger = logging.getLogger(__name__)


class GeminiAdapter(BaseLLMAdapter):
    """Gemini adapter. The API key travels as a query parameter."""

    name = "gemini"
    DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"

    PRICING = {
        "gemini-pro": (0.0005, 0.0015),
        "gemini-1.5-pro": (0.0035, 0.0105),
        "gemini-1.5-flash": (0.00035, 0.00105),
    }

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(config, **kwargs)
        self.endpoint = (config.endpoint or self.DEFAULT_ENDPOINT).rstrip("/")
        self.client = http_client or build_http_client(self.request_timeout)

    def _request_body(self, request: LLMRequest) -> Dict[str, Any]:
        contents = [
            {
                "role": "model" if msg.role == LLMRole.ASSISTANT else "user",
                "parts": [{"text": msg.content}],
            }
            for msg in request.non_system_messages()
        ]

        body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
                "responseMimeType": "application/json",
            },
        }
        if request.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        return body

    async def _generate(self, body: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"params": {"key": self.config.api_key}, "json": body}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self.client.post(
                f"{self.endpoint}/models/{self.model}:generateContent", **kwargs
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"gemini request failed: {e}", provider=self.name) from e

        raise_for_status(response, self.name)
        return response.json()

    async def _complete(self, request: LLMRequest) -> LLMResponse:
        data = await self._generate(self._request_body(request))

        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates")
            raise ProviderUnavailableError(f"No content in gemini response ({reason})", provider=self.name)

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        content = "".join(part.get("text", "") for part in parts)

        usage = None
        metadata = data.get("usageMetadata")
        if metadata:
            prompt_tokens = metadata.get("promptTokenCount", 0)
            completion_tokens = metadata.get("candidatesTokenCount", 0)
            usage = LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=metadata.get("totalTokenCount", prompt_tokens + completion_tokens),
            )

        return LLMResponse(
            content=content,
            model=self.model,
            usage=usage,
            finish_reason=candidate.get("finishReason"),
        )

    async def _health_probe(self) -> bool:
        response = await self.client.get(
            f"{self.endpoint}/models/{self.model}",
            params={"key": self.config.api_key},
            timeout=self.health_check_timeout,
        )
        return response.is_success

    async def aclose(self) -> None:
        await self.client.aclose()

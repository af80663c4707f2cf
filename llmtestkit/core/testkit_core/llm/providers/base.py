"""Base LLM adapter interface shared by every provider."""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from ...commands.models import ParseResult
from ...errors import (
    ConfigurationError,
    LLMAuthenticationError,
    LLMError,
    LLMRateLimitError,
    ProviderUnavailableError,
)
from ..config import ProviderConfig
from ..parser import ResponseParser
from ..prompts import PromptBuilder
from ..types import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMRole,
    LLMUsage,
    ParseContext,
    estimate_tokens,
)
from ..usage_tracker import CostLedger

logger = logging.getLogger(__name__)

__all__ = [
    "BaseLLMAdapter",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMRole",
    "LLMUsage",
    "ParseContext",
    "LLMError",
    "LLMRateLimitError",
    "LLMAuthenticationError",
    "ProviderUnavailableError",
]


class BaseLLMAdapter(ABC):
    """Wraps one completion service behind a uniform parse/health-check interface.

    Subclasses supply the vendor call (``_complete``) and a cheap liveness
    request (``_health_probe``); prompt construction, parameter resolution,
    response parsing and cost accounting live here.
    """

    name: str = "base"

    DEFAULT_TEMPERATURE = 0.3
    DEFAULT_MAX_TOKENS = 2000

    # model prefix -> (input cost per 1k tokens, output cost per 1k tokens)
    PRICING: Dict[str, Tuple[float, float]] = {}
    DEFAULT_PRICING: Tuple[float, float] = (0.0, 0.0)

    def __init__(
        self,
        config: ProviderConfig,
        ledger: Optional[CostLedger] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        response_parser: Optional[ResponseParser] = None,
        health_check_timeout: float = 5.0,
        request_timeout: float = 60.0,
    ):
        """Initialize adapter.

        Args:
            config: Provider configuration
            ledger: Cost ledger that receives usage observations
            prompt_builder: Builds the message sequence
            response_parser: Parses raw completion text
            health_check_timeout: Seconds allowed for a health probe
            request_timeout: Seconds allowed for a generation call

        Raises:
            ConfigurationError: If the configuration is incomplete
        """
        if not self.validate_config(config):
            raise ConfigurationError(
                f"Invalid configuration for {self.name} adapter: "
                f"credential and model are required"
            )

        self.config = config
        self.model: str = config.model
        self.ledger = ledger
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.response_parser = response_parser or ResponseParser()
        self.health_check_timeout = health_check_timeout
        self.request_timeout = request_timeout

    def validate_config(self, config: ProviderConfig) -> bool:
        """True iff both the credential and the model identifier are present."""
        return bool(config.api_key and config.model)

    @abstractmethod
    async def _complete(self, request: LLMRequest) -> LLMResponse:
        """Issue the completion request to the backend.

        Raises:
            ProviderUnavailableError: On any vendor, network or auth failure
        """
        pass

    @abstractmethod
    async def _health_probe(self) -> bool:
        """Minimal, low-cost request proving the backend is reachable."""
        pass

    async def health_check(self) -> bool:
        """Check if the provider is healthy. Never raises."""
        try:
            healthy = await asyncio.wait_for(self._health_probe(), timeout=self.health_check_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} health check timed out after {self.health_check_timeout}s")
            return False
        except Exception as e:
            logger.warning(f"{self.name} health check failed: {e}")
            return False

        if not healthy:
            logger.warning(f"{self.name} health check failed")
        return bool(healthy)

    async def parse(self, user_input: str, context: Optional[ParseContext] = None) -> ParseResult:
        """Parse natural language input into browser commands.

        Args:
            user_input: Natural-language request
            context: Per-request context (history, previous commands, overrides)

        Returns:
            Parse result augmented with token usage and cost

        Raises:
            ProviderUnavailableError: If the completion call fails or times out
            ResponseParseError: If the model output is not recoverable JSON
        """
        context = context or ParseContext()
        messages = self.prompt_builder.build(user_input, context)

        request = LLMRequest(
            messages=messages,
            model=self.model,
            temperature=self.effective_temperature(context),
            max_tokens=self.effective_max_tokens(context),
        )
        self.validate_request(request)

        estimate = self.estimate_cost(request)
        logger.info(f"Using {self.name} model: {self.model}")
        logger.debug(
            f"~{estimate['estimated_input_tokens']} input tokens, "
            f"~${estimate['estimated_total_cost']:.4f} USD"
        )

        try:
            response = await asyncio.wait_for(self._complete(request), timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderUnavailableError(
                f"{self.name} request timed out after {self.request_timeout}s", provider=self.name
            ) from e
        except ProviderUnavailableError:
            raise
        except Exception as e:
            raise ProviderUnavailableError(f"{self.name} parsing failed: {e}", provider=self.name) from e

        if not response.content or not response.content.strip():
            raise ProviderUnavailableError(f"No content in {self.name} response", provider=self.name)

        usage = response.usage or LLMUsage.estimate(request, response.content)
        cost = response.cost if response.cost is not None else self.calculate_cost(usage)
        await self._record_usage(usage, cost)

        logger.debug(f"{self.name} raw response: {response.content}")

        result = self.response_parser.parse(response.content)
        result.tokens_used = usage.total_tokens
        result.cost = cost
        result.provider = self.name
        result.model = response.model or self.model
        result.metadata["usage_estimated"] = usage.estimated
        return result

    def effective_temperature(self, context: ParseContext) -> float:
        if context.temperature is not None:
            return context.temperature
        if self.config.temperature is not None:
            return self.config.temperature
        return self.DEFAULT_TEMPERATURE

    def effective_max_tokens(self, context: ParseContext) -> int:
        if context.max_tokens is not None:
            return context.max_tokens
        if self.config.max_tokens is not None:
            return self.config.max_tokens
        return self.DEFAULT_MAX_TOKENS

    def pricing(self) -> Tuple[float, float]:
        """Per-1k-token pricing for the configured model (longest prefix wins)."""
        matches = [prefix for prefix in self.PRICING if self.model.startswith(prefix)]
        if not matches:
            return self.DEFAULT_PRICING
        return self.PRICING[max(matches, key=len)]

    def calculate_cost(self, usage: LLMUsage) -> float:
        input_per_1k, output_per_1k = self.pricing()
        return (usage.prompt_tokens / 1000) * input_per_1k + (usage.completion_tokens / 1000) * output_per_1k

    def estimate_cost(self, request: LLMRequest) -> Dict[str, float]:
        """Estimate the cost of a request before sending it.

        Args:
            request: The LLM request

        Returns:
            Dictionary with cost estimates
        """
        input_per_1k, output_per_1k = self.pricing()
        input_tokens = estimate_tokens("".join(m.content for m in request.messages))
        output_tokens = request.max_tokens or self.DEFAULT_MAX_TOKENS

        input_cost = (input_tokens / 1000) * input_per_1k
        output_cost = (output_tokens / 1000) * output_per_1k

        return {
            "estimated_input_tokens": input_tokens,
            "estimated_output_tokens": output_tokens,
            "estimated_input_cost": input_cost,
            "estimated_output_cost": output_cost,
            "estimated_total_cost": input_cost + output_cost,
        }

    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the configured model."""
        input_per_1k, output_per_1k = self.pricing()
        return {
            "name": self.model,
            "provider": self.name,
            "input_cost_per_1k": input_per_1k,
            "output_cost_per_1k": output_per_1k,
            "endpoint": self.config.endpoint,
        }

    def validate_request(self, request: LLMRequest) -> None:
        """Validate an LLM request.

        Raises:
            ValueError: If request is invalid
        """
        if not request.messages:
            raise ValueError("Request must contain at least one message")

        if not request.model:
            raise ValueError("Request must specify a model")

        if not request.messages[-1].content.strip():
            raise ValueError("Message content cannot be empty")

        if request.max_tokens is not None and request.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")

        if request.temperature is not None and not (0.0 <= request.temperature <= 2.0):
            raise ValueError("temperature must be between 0.0 and 2.0")

    async def _record_usage(self, usage: LLMUsage, cost: float) -> None:
        """Forward usage to the cost ledger. Failures are logged and dropped.

        The ledger append is a blocking file write, so it runs in the default
        executor instead of on the event loop.
        """
        if self.ledger is None:
            return
        record = functools.partial(
            self.ledger.record,
            provider=self.name,
            model=self.model,
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens,
            cost=cost,
            estimated=usage.estimated,
        )
        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, record)
        except Exception as e:
            logger.warning(f"Failed to record LLM cost for {self.name}: {e}")

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""
        pass

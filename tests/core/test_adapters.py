"""Tests for LLM provider adapters."""

import asyncio
import io
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from botocore.exceptions import ClientError

from llmtestkit.core.testkit_core.errors import (
    ConfigurationError,
    LLMAuthenticationError,
    LLMRateLimitError,
    ProviderUnavailableError,
    ResponseParseError,
)
from llmtestkit.core.testkit_core.llm.config import ProviderConfig
from llmtestkit.core.testkit_core.llm.providers import (
    AgentRouterAdapter,
    BedrockAdapter,
    GeminiAdapter,
    GLMAdapter,
    MockAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
)
from llmtestkit.core.testkit_core.llm.types import ParseContext
from llmtestkit.core.testkit_core.llm.usage_tracker import CostLedger

COMMANDS_JSON = json.dumps({
    "commands": [{"type": "navigate", "value": "https://example.com"}],
    "confidence": 0.9,
})


def mock_config(**overrides):
    values = {"name": "mock", "api_key": "mock", "model": "mock-playwright"}
    values.update(overrides)
    return ProviderConfig(**values)


def http_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestMockAdapter:
    """Test the offline mock adapter and the shared parse path."""

    @pytest.mark.asyncio
    async def test_generates_commands_in_message_order(self):
        """Test phrase recognition and ordering."""
        adapter = MockAdapter(mock_config())
        result = await adapter.parse(
            "Go to https://example.com/login, type 'alice' into username, "
            "click the Login button and verify the page shows 'Welcome'"
        )

        assert [c.type for c in result.commands] == ["navigate", "fill", "click", "assert"]
        assert result.commands[0].value == "https://example.com/login"
        assert result.commands[1].selector == "[name='username']"
        assert result.commands[2].selector == "text=Login"
        assert result.commands[3].value == "Welcome"
        assert result.confidence == 0.9
        assert result.provider == "mock"
        assert result.model == "mock-playwright"
        assert result.tokens_used > 0

    @pytest.mark.asyncio
    async def test_vague_request_returns_questionnaire(self):
        """Test that unrecognized input yields a questionnaire."""
        adapter = MockAdapter(mock_config())
        result = await adapter.parse("test my website")

        assert result.needs_clarification()
        assert [q.id for q in result.questionnaire.questions] == ["target-url", "checks"]

    @pytest.mark.asyncio
    async def test_scripted_responses(self):
        """Test scripted outputs are returned in order, then exhausted."""
        adapter = MockAdapter(mock_config(), responses=[COMMANDS_JSON])

        result = await adapter.parse("anything")
        assert result.commands[0].value == "https://example.com"
        assert adapter.request_count == 1

        with pytest.raises(ProviderUnavailableError):
            await adapter.parse("again")

    @pytest.mark.asyncio
    async def test_usage_recorded_in_ledger(self):
        """Test that each completion is recorded in the injected ledger."""
        ledger = CostLedger()
        adapter = MockAdapter(mock_config(), ledger=ledger)
        await adapter.parse("open https://example.com")

        entries = ledger.entries()
        assert len(entries) == 1
        assert entries[0].provider == "mock"
        assert entries[0].estimated is False

    @pytest.mark.asyncio
    async def test_usage_recorded_even_when_parsing_fails(self):
        """Test that a garbage response is still billed."""
        ledger = CostLedger()
        adapter = MockAdapter(mock_config(), ledger=ledger, responses=["not json"])

        with pytest.raises(ResponseParseError):
            await adapter.parse("anything")
        assert len(ledger.entries()) == 1

    @pytest.mark.asyncio
    async def test_ledger_failure_does_not_fail_parse(self):
        """Test that ledger errors are swallowed."""
        ledger = MagicMock()
        ledger.record.side_effect = OSError("disk full")
        adapter = MockAdapter(mock_config(), ledger=ledger, responses=[COMMANDS_JSON])

        result = await adapter.parse("anything")
        assert len(result.commands) == 1
        ledger.record.assert_called_once()

    @pytest.mark.asyncio
    async def test_concurrent_parses_share_ledger(self, tmp_path):
        """Test that parallel requests all land in one persisted ledger."""
        ledger = CostLedger(tmp_path)
        adapters = [MockAdapter(mock_config(), ledger=ledger) for _ in range(4)]

        results = await asyncio.gather(*[
            adapters[i % 4].parse("open https://example.com") for i in range(20)
        ])

        assert len(results) == 20
        assert len(ledger.entries()) == 20
        assert len(CostLedger(tmp_path).entries()) == 20

    @pytest.mark.asyncio
    async def test_empty_content_is_unavailable(self):
        """Test that an empty completion is a provider failure."""
        adapter = MockAdapter(mock_config(), responses=["   "])
        with pytest.raises(ProviderUnavailableError):
            await adapter.parse("anything")

    @pytest.mark.asyncio
    async def test_request_timeout(self):
        """Test that a slow completion times out as unavailable."""
        adapter = MockAdapter(mock_config(), delay=1.0, request_timeout=0.01)
        with pytest.raises(ProviderUnavailableError) as exc_info:
            await adapter.parse("open https://example.com")
        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_effective_parameters(self):
        """Test per-request overrides beat config, which beats defaults."""
        adapter = MockAdapter(mock_config(temperature=0.5), responses=[COMMANDS_JSON] * 2)

        await adapter.parse("a", ParseContext(temperature=0.1, max_tokens=100))
        await adapter.parse("b")

        first, second = adapter.requests
        assert (first.temperature, first.max_tokens) == (0.1, 100)
        assert (second.temperature, second.max_tokens) == (0.5, MockAdapter.DEFAULT_MAX_TOKENS)

    @pytest.mark.asyncio
    async def test_invalid_request_rejected(self):
        """Test that out-of-range parameters raise ValueError before any call."""
        adapter = MockAdapter(mock_config())
        with pytest.raises(ValueError):
            await adapter.parse("a", ParseContext(temperature=5.0))
        assert adapter.request_count == 0

    def test_missing_credential_rejected(self):
        """Test that an incomplete config cannot build an adapter."""
        with pytest.raises(ConfigurationError):
            MockAdapter(mock_config(api_key=None))
        with pytest.raises(ConfigurationError):
            MockAdapter(mock_config(model=""))

    @pytest.mark.asyncio
    async def test_health_check_never_raises(self):
        """Test that probe errors and timeouts report unhealthy."""
        adapter = MockAdapter(mock_config(), health_check_timeout=0.01)
        assert await adapter.health_check() is True

        adapter._health_probe = AsyncMock(side_effect=RuntimeError("boom"))
        assert await adapter.health_check() is False

        async def slow_probe():
            await asyncio.sleep(1)
            return True

        adapter._health_probe = slow_probe
        assert await adapter.health_check() is False

        assert await MockAdapter(mock_config(), healthy=False).health_check() is False


class TestOpenAIAdapter:
    """Test the OpenAI adapter with an injected client."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = ProviderConfig(name="openai", api_key="sk-test", model="gpt-4o")
        self.client = MagicMock()
        self.client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            id="chatcmpl-1",
            model="gpt-4o",
            choices=[SimpleNamespace(
                message=SimpleNamespace(content=COMMANDS_JSON), finish_reason="stop"
            )],
            usage=SimpleNamespace(prompt_tokens=1000, completion_tokens=1000, total_tokens=2000),
        ))
        self.adapter = OpenAIAdapter(self.config, client=self.client)

    @pytest.mark.asyncio
    async def test_parse(self):
        """Test a successful completion with reported usage."""
        result = await self.adapter.parse("open example")

        assert result.commands[0].type == "navigate"
        assert result.tokens_used == 2000
        assert result.cost == pytest.approx(0.005 + 0.015)
        kwargs = self.client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][-1] == {"role": "user", "content": "open example"}
        assert kwargs["max_tokens"] == 4000

    def test_pricing_longest_prefix(self):
        """Test that gpt-4o-mini does not match gpt-4o or gpt-4 pricing."""
        mini = OpenAIAdapter(ProviderConfig(name="openai", api_key="k", model="gpt-4o-mini"), client=MagicMock())
        other = OpenAIAdapter(ProviderConfig(name="openai", api_key="k", model="o1"), client=MagicMock())

        assert mini.pricing() == (0.00015, 0.0006)
        assert self.adapter.pricing() == (0.005, 0.015)
        assert other.pricing() == OpenAIAdapter.DEFAULT_PRICING

    @pytest.mark.asyncio
    async def test_rate_limit_mapped(self):
        """Test that vendor rate limiting maps to LLMRateLimitError."""
        response = httpx.Response(429, request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
        self.client.chat.completions.create.side_effect = openai.RateLimitError(
            "slow down", response=response, body=None
        )
        with pytest.raises(LLMRateLimitError):
            await self.adapter.parse("open example")

    @pytest.mark.asyncio
    async def test_unexpected_error_is_unavailable(self):
        """Test that arbitrary client failures become ProviderUnavailableError."""
        self.client.chat.completions.create.side_effect = RuntimeError("socket closed")
        with pytest.raises(ProviderUnavailableError):
            await self.adapter.parse("open example")

    @pytest.mark.asyncio
    async def test_health_probe(self):
        """Test that health uses a model lookup."""
        self.client.models.retrieve = AsyncMock(return_value=SimpleNamespace(id="gpt-4o"))
        assert await self.adapter.health_check() is True

        self.client.models.retrieve.side_effect = RuntimeError("401")
        assert await self.adapter.health_check() is False


class TestCompatibleAdapters:
    """Test OpenAI-compatible HTTP gateways."""

    @pytest.mark.asyncio
    async def test_openrouter_request(self):
        """Test wire format and headers."""
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "id": "gen-1",
                "model": "anthropic/claude-3-opus",
                "choices": [{"message": {"content": COMMANDS_JSON}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
            })

        config = ProviderConfig(name="openrouter", api_key="or-key", model="anthropic/claude-3-opus",
                                endpoint="https://openrouter.ai/api/v1/")
        adapter = OpenRouterAdapter(config, http_client=http_client(handler))
        result = await adapter.parse("open example")

        assert seen["url"] == "https://openrouter.ai/api/v1/chat/completions"
        assert seen["headers"]["authorization"] == "Bearer or-key"
        assert seen["headers"]["x-title"] == "LLM Test Kit"
        assert seen["body"]["model"] == "anthropic/claude-3-opus"
        assert result.tokens_used == 30
        assert result.model == "anthropic/claude-3-opus"
        await adapter.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (429, LLMRateLimitError),
        (401, LLMAuthenticationError),
        (500, ProviderUnavailableError),
    ])
    async def test_http_errors_mapped(self, status, error):
        """Test HTTP status mapping."""
        adapter = GLMAdapter(
            ProviderConfig(name="glm", api_key="k", model="glm-4"),
            http_client=http_client(lambda request: httpx.Response(status, text="nope")),
        )
        with pytest.raises(error):
            await adapter.parse("open example")

    @pytest.mark.asyncio
    async def test_missing_usage_is_estimated(self):
        """Test character-based estimation when usage is omitted."""
        ledger = CostLedger()
        adapter = GLMAdapter(
            ProviderConfig(name="glm", api_key="k", model="glm-4"),
            ledger=ledger,
            http_client=http_client(lambda request: httpx.Response(200, json={
                "choices": [{"message": {"content": COMMANDS_JSON}}],
            })),
        )
        result = await adapter.parse("open example")

        assert result.metadata["usage_estimated"] is True
        assert result.tokens_used > 0
        assert ledger.entries()[0].estimated is True

    @pytest.mark.asyncio
    async def test_no_choices_is_unavailable(self):
        """Test that a response without choices is a provider failure."""
        adapter = GLMAdapter(
            ProviderConfig(name="glm", api_key="k", model="glm-4"),
            http_client=http_client(lambda request: httpx.Response(200, json={"choices": []})),
        )
        with pytest.raises(ProviderUnavailableError):
            await adapter.parse("open example")

    @pytest.mark.asyncio
    async def test_agentrouter_auto_model_and_cost(self):
        """Test that auto routing omits the model and uses the reported cost."""
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "model": "claude-3-haiku",
                "choices": [{"message": {"content": COMMANDS_JSON}}],
                "usage": {"prompt_tokens": 5, "completion_tokens": 5},
                "cost": 0.0123,
            })

        config = ProviderConfig(name="agentrouter", api_key="k", model=None,
                                extra={"routing_strategy": "cheap"})
        adapter = AgentRouterAdapter(config, http_client=http_client(handler))
        result = await adapter.parse("open example")

        assert adapter.model == "auto"
        assert "model" not in seen["body"]
        assert seen["body"]["routing_strategy"] == "cheap"
        assert result.cost == pytest.approx(0.0123)
        assert result.model == "claude-3-haiku"
        assert result.tokens_used == 10

    @pytest.mark.asyncio
    async def test_health_probes(self):
        """Test gateway health endpoints."""
        def handler(request):
            return httpx.Response(200 if request.url.path.endswith("/health") else 404)

        agentrouter = AgentRouterAdapter(
            ProviderConfig(name="agentrouter", api_key="k", model="auto"), http_client=http_client(handler)
        )
        openrouter = OpenRouterAdapter(
            ProviderConfig(name="openrouter", api_key="k", model="m"), http_client=http_client(handler)
        )

        assert await agentrouter.health_check() is True
        assert await openrouter.health_check() is False


class TestGeminiAdapter:
    """Test the Gemini REST adapter."""

    @pytest.mark.asyncio
    async def test_parse(self):
        """Test request shape and usage metadata."""
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [{"text": COMMANDS_JSON}]}, "finishReason": "STOP"}],
                "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 8, "totalTokenCount": 20},
            })

        adapter = GeminiAdapter(
            ProviderConfig(name="gemini", api_key="g-key", model="gemini-pro"),
            http_client=http_client(handler),
        )
        result = await adapter.parse("open example", ParseContext(
            conversation_history=[{"role": "assistant", "content": "earlier"}]
        ))

        assert seen["url"].path == "/v1beta/models/gemini-pro:generateContent"
        assert seen["url"].params["key"] == "g-key"
        assert [c["role"] for c in seen["body"]["contents"]] == ["model", "user"]
        assert "systemInstruction" in seen["body"]
        assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"
        assert result.tokens_used == 20
        assert result.cost == pytest.approx(12 / 1000 * 0.0005 + 8 / 1000 * 0.0015)

    @pytest.mark.asyncio
    async def test_blocked_prompt_is_unavailable(self):
        """Test that no candidates is a provider failure."""
        adapter = GeminiAdapter(
            ProviderConfig(name="gemini", api_key="g-key", model="gemini-pro"),
            http_client=http_client(lambda request: httpx.Response(
                200, json={"promptFeedback": {"blockReason": "SAFETY"}}
            )),
        )
        with pytest.raises(ProviderUnavailableError) as exc_info:
            await adapter.parse("open example")
        assert "SAFETY" in str(exc_info.value)


class TestBedrockAdapter:
    """Test the Bedrock adapter with stubbed boto3 clients."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = MagicMock()
        self.control_client = MagicMock()
        self.config = ProviderConfig(name="bedrock", api_key="us-east-1", model="claude-3-haiku-20240307")
        self.adapter = BedrockAdapter(self.config, client=self.client, control_client=self.control_client)

    @pytest.mark.asyncio
    async def test_parse(self):
        """Test body conversion and response parsing."""
        self.client.invoke_model.return_value = {"body": io.BytesIO(json.dumps({
            "id": "msg_1",
            "content": [{"type": "text", "text": COMMANDS_JSON}],
            "usage": {"input_tokens": 100, "output_tokens": 50},
            "stop_reason": "end_turn",
        }).encode())}

        result = await self.adapter.parse("open example")

        kwargs = self.client.invoke_model.call_args.kwargs
        body = json.loads(kwargs["body"])
        assert kwargs["modelId"] == "anthropic.claude-3-haiku-20240307-v1:0"
        assert body["anthropic_version"] == "bedrock-2023-05-31"
        assert "system" in body
        assert all(m["role"] != "system" for m in body["messages"])
        assert result.tokens_used == 150
        assert result.commands[0].type == "navigate"

    @pytest.mark.asyncio
    async def test_throttling_mapped(self):
        """Test ClientError code mapping."""
        self.client.invoke_model.side_effect = ClientError(
            {"Error": {"Code": "ThrottlingException", "Message": "slow"}}, "InvokeModel"
        )
        with pytest.raises(LLMRateLimitError):
            await self.adapter.parse("open example")

    def test_unknown_model_rejected(self):
        """Test that only catalogued models are accepted."""
        with pytest.raises(ConfigurationError):
            BedrockAdapter(
                ProviderConfig(name="bedrock", api_key="us-east-1", model="claude-9"),
                client=MagicMock(), control_client=MagicMock(),
            )

    @pytest.mark.asyncio
    async def test_health_probe(self):
        """Test that health lists foundation models."""
        assert await self.adapter.health_check() is True
        self.control_client.list_foundation_models.assert_called_once_with(byProvider="anthropic")

"""AWS Bedrock LLM adapter."""

import json
import asyncio
import boto3
from typing import Dict, List, Any
from botocore.exceptions import ClientError, BotoCoreError
import logging

from ..config import ProviderConfig
from .base import (
    BaseLLMAdapter,
    LLMRequest,
    LLMResponse,
    LLMRole,
    LLMUsage,
    LLMRateLimitError,
    LLMAuthenticationError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)


class BedrockAdapter(BaseLLMAdapter):
    """AWS Bedrock adapter with support for Claude 3 models.

    ``config.api_key`` carries the AWS region; credentials come from the
    standard AWS chain (optionally a named profile in ``extra["aws_profile"]``).
    """

    name = "bedrock"

    # Model configurations
    MODELS = {
        "claude-3-opus-20240229": {
            "model_id": "anthropic.claude-3-opus-20240229-v1:0",
            "max_tokens": 4096,
            "input_cost_per_1k": 0.015,
            "output_cost_per_1k": 0.075,
        },
        "claude-3-sonnet-20240229": {
            "model_id": "anthropic.claude-3-sonnet-20240229-v1:0",
            "max_tokens": 4096,
            "input_cost_per_1k": 0.003,
            "output_cost_per_1k": 0.015,
        },
        "claude-3-haiku-20240307": {
            "model_id": "anthropic.claude-3-haiku-20240307-v1:0",
            "max_tokens": 4096,
            "input_cost_per_1k": 0.00025,
            "output_cost_per_1k": 0.00125,
        },
    }

    PRICING = {
        name: (cfg["input_cost_per_1k"], cfg["output_cost_per_1k"])
        for name, cfg in MODELS.items()
    }

    def __init__(self, config: ProviderConfig, client: Any = None, control_client: Any = None, **kwargs):
        """Initialize Bedrock adapter.

        Args:
            config: Provider configuration (region in ``api_key``)
            client: Pre-built ``bedrock-runtime`` client
            control_client: Pre-built ``bedrock`` client used for health probes
        """
        super().__init__(config, **kwargs)
        self.region = config.api_key
        self.aws_profile = config.extra.get("aws_profile")
        self.model_config = self.MODELS[self.model]

        if client is None or control_client is None:
            session_kwargs = {}
            if self.aws_profile:
                session_kwargs["profile_name"] = self.aws_profile

            try:
                session = boto3.Session(**session_kwargs)
                client = client or session.client("bedrock-runtime", region_name=self.region)
                control_client = control_client or session.client("bedrock", region_name=self.region)
            except (BotoCoreError, ClientError) as e:
                raise LLMAuthenticationError(
                    f"Failed to initialize Bedrock client: {e}", provider=self.name
                ) from e
            logger.info(f"Initialized Bedrock client for region {self.region}")

        self.client = client
        self.control_client = control_client

    def validate_config(self, config: ProviderConfig) -> bool:
        return bool(config.api_key and config.model in self.MODELS)

    async def _complete(self, request: LLMRequest) -> LLMResponse:
        bedrock_request = self._prepare_bedrock_request(request)

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                self._invoke_model,
                self.model_config["model_id"],
                bedrock_request
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")

            if error_code == "ThrottlingException":
                raise LLMRateLimitError(f"Rate limit exceeded: {e}", provider=self.name) from e
            elif error_code in ("AccessDeniedException", "UnauthorizedOperation"):
                raise LLMAuthenticationError(f"Authentication failed: {e}", provider=self.name) from e
            else:
                raise ProviderUnavailableError(
                    f"Bedrock API error ({error_code}): {e}", provider=self.name
                ) from e
        except BotoCoreError as e:
            raise ProviderUnavailableError(f"Boto3 error: {e}", provider=self.name) from e

        return self._parse_bedrock_response(response)

    def _prepare_bedrock_request(self, request: LLMRequest) -> Dict:
        """Convert messages to the Anthropic-on-Bedrock body."""
        messages = []
        for msg in request.messages:
            if msg.role != LLMRole.SYSTEM:
                messages.append({
                    "role": msg.role.value,
                    "content": msg.content
                })

        body = {
            "messages": messages,
            "max_tokens": min(
                request.max_tokens or self.model_config["max_tokens"],
                self.model_config["max_tokens"]
            ),
            "anthropic_version": "bedrock-2023-05-31",
        }

        if request.system_prompt:
            body["system"] = request.system_prompt

        if request.temperature is not None:
            body["temperature"] = request.temperature

        if request.stop_sequences:
            body["stop_sequences"] = request.stop_sequences

        return body

    def _invoke_model(self, model_id: str, body: Dict) -> Dict:
        """Synchronous model invocation for executor."""
        logger.debug(f"Invoking Bedrock model {model_id}")

        response = self.client.invoke_model(
            modelId=model_id,
            body=json.dumps(body),
            contentType="application/json",
            accept="application/json"
        )

        return json.loads(response["body"].read())

    def _parse_bedrock_response(self, response: Dict) -> LLMResponse:
        content = ""
        if "content" in response:
            for content_block in response["content"]:
                if content_block.get("type") == "text":
                    content += content_block.get("text", "")
        else:
            content = response.get("completion", "")

        usage = None
        if "usage" in response:
            usage_data = response["usage"]
            usage = LLMUsage(
                prompt_tokens=usage_data.get("input_tokens", 0),
                completion_tokens=usage_data.get("output_tokens", 0),
                total_tokens=usage_data.get("input_tokens", 0) + usage_data.get("output_tokens", 0)
            )

        return LLMResponse(
            content=content.strip(),
            model=self.model,
            usage=usage,
            finish_reason=response.get("stop_reason"),
            request_id=response.get("id"),
        )

    async def _health_probe(self) -> bool:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            lambda: self.control_client.list_foundation_models(byProvider="anthropic"),
        )
        return True

    def list_available_models(self) -> List[str]:
        return list(self.MODELS.keys())

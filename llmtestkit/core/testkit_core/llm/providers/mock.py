"""Mock LLM adapter for testing and offline development."""

import asyncio
import json
import random
import re
from typing import Any, Dict, List, Optional, Tuple

from ..config import ProviderConfig
from .base import (
    BaseLLMAdapter,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    LLMRole,
    ProviderUnavailableError,
)

URL_PATTERN = re.compile(r"https?://[^\s'\"]+")
CLICK_PATTERN = re.compile(r"click (?:on )?(?:the )?['\"]?([\w -]+?)['\"]? (?:button|link)", re.IGNORECASE)
FILL_PATTERN = re.compile(r"(?:fill|type|enter) ['\"]([^'\"]+)['\"] (?:in|into) (?:the )?([\w-]+)", re.IGNORECASE)
ASSERT_PATTERN = re.compile(r"(?:verify|check|assert|expect)\w*\b.*?['\"]([^'\"]+)['\"]", re.IGNORECASE)
PRESS_PATTERN = re.compile(r"press (enter|tab|escape)", re.IGNORECASE)


class MockAdapter(BaseLLMAdapter):
    """Mock adapter that turns simple phrasing into predictable command JSON.

    Recognized phrases: a URL, "click the X button", "type 'v' into field",
    "verify ... 'text'", "press Enter" and "screenshot". Anything else yields
    a clarification questionnaire. ``responses`` scripts raw outputs instead.
    """

    name = "mock"

    def __init__(
        self,
        config: ProviderConfig,
        delay: float = 0.0,
        fail_rate: float = 0.0,
        healthy: bool = True,
        responses: Optional[List[str]] = None,
        **kwargs,
    ):
        """Initialize mock adapter.

        Args:
            config: Provider configuration
            delay: Artificial delay to simulate API latency
            fail_rate: Rate of random failures (0.0 to 1.0)
            healthy: Result reported by health checks
            responses: Scripted raw outputs, returned in order
        """
        super().__init__(config, **kwargs)
        self.delay = delay
        self.fail_rate = fail_rate
        self.healthy = healthy
        self.responses = list(responses) if responses is not None else None
        self.request_count = 0
        self.requests: List[LLMRequest] = []

    async def _complete(self, request: LLMRequest) -> LLMResponse:
        self.request_count += 1
        self.requests.append(request)

        if self.delay > 0:
            await asyncio.sleep(self.delay)

        if self.fail_rate > 0 and random.random() < self.fail_rate:
            raise ProviderUnavailableError("Mock provider random failure", provider=self.name)

        if self.responses is not None:
            if not self.responses:
                raise ProviderUnavailableError("Mock provider has no scripted responses left", provider=self.name)
            response_content = self.responses.pop(0)
        else:
            response_content = self._generate_response_content(request)

        input_tokens = sum(len(msg.content.split()) for msg in request.messages)
        output_tokens = len(response_content.split())

        return LLMResponse(
            content=response_content,
            model=request.model,
            usage=LLMUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens
            ),
            finish_reason="stop",
            request_id=f"mock-{self.request_count:06d}",
            metadata={"request_count": self.request_count},
        )

    async def _health_probe(self) -> bool:
        return self.healthy

    def _generate_response_content(self, request: LLMRequest) -> str:
        user_messages = [msg for msg in request.messages if msg.role == LLMRole.USER]
        message = user_messages[-1].content if user_messages else ""

        commands = self._commands_for(message)
        if not commands:
            return json.dumps(self._mock_questionnaire_response())

        return json.dumps({"commands": commands, "confidence": 0.9})

    def _commands_for(self, message: str) -> List[Dict[str, Any]]:
        found: List[Tuple[int, Dict[str, Any]]] = []

        for match in URL_PATTERN.finditer(message):
            url = match.group(0).rstrip(".,;)")
            found.append((match.start(), {"type": "navigate", "value": url, "description": f"Open {url}"}))

        for match in CLICK_PATTERN.finditer(message):
            label = match.group(1).strip()
            found.append((match.start(), {"type": "click", "selector": f"text={label}", "description": f"Click {label}"}))

        for match in FILL_PATTERN.finditer(message):
            value, field = match.group(1), match.group(2)
            found.append((match.start(), {
                "type": "fill",
                "selector": f"[name='{field}']",
                "value": value,
                "description": f"Enter {field}",
            }))

        for match in PRESS_PATTERN.finditer(message):
            found.append((match.start(), {"type": "press", "value": match.group(1).capitalize()}))

        for match in ASSERT_PATTERN.finditer(message):
            found.append((match.start(), {
                "type": "assert",
                "selector": "body",
                "value": match.group(1),
                "description": f"Check page shows {match.group(1)}",
            }))

        position = message.lower().find("screenshot")
        if position >= 0:
            found.append((position, {"type": "screenshot", "description": "Capture the page"}))

        found.sort(key=lambda item: item[0])
        return [command for _, command in found]

    def _mock_questionnaire_response(self) -> Dict[str, Any]:
        return {
            "commands": [],
            "confidence": 0.2,
            "questionnaire": {
                "message": "I need a few more details to generate this test.",
                "questions": [
                    {
                        "id": "target-url",
                        "text": "Which URL should the test open?",
                        "type": "text-input",
                        "required": True,
                        "placeholder": "https://example.com",
                    },
                    {
                        "id": "checks",
                        "text": "What should the test verify?",
                        "type": "multi-choice",
                        "required": False,
                        "options": [
                            {"value": "title", "label": "Page title"},
                            {"value": "content", "label": "Visible text"},
                            {"value": "url", "label": "Final URL"},
                        ],
                    },
                ],
            },
        }

    def list_available_models(self) -> List[str]:
        return ["mock-playwright"]

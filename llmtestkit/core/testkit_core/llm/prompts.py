"""Prompt templates and message construction for command generation."""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from .types import LLMMessage, LLMRole, ParseContext

logger = logging.getLogger(__name__)


class PromptTemplates:
    """Collection of reusable prompt templates for command generation."""

    @staticmethod
    def command_generation_system_prompt() -> str:
        """System prompt describing the JSON output contract."""
        return """You are an expert Playwright test generator. Output valid JSON only, never prose.

There are TWO kinds of response. Pick exactly one.

1. VAGUE REQUEST -> return a questionnaire and no commands:
```json
{
  "commands": [],
  "confidence": 0.2,
  "questionnaire": {
    "message": "Brief explanation of what is missing",
    "questions": [
      {
        "id": "login-url",
        "text": "Which URL is the login page?",
        "type": "text-input",
        "required": true,
        "placeholder": "https://example.com/login"
      },
      {
        "id": "scenarios",
        "text": "Which scenarios should be covered?",
        "type": "multi-choice",
        "required": true,
        "options": [
          {"value": "valid", "label": "Valid credentials"},
          {"value": "invalid", "label": "Invalid password"}
        ]
      }
    ]
  }
}
```
Question types: "single-choice" (one option), "multi-choice" (many options),
"text-input" (free text; set "multiline": true for long answers).

2. CLEAR REQUEST -> return commands:
```json
{
  "commands": [
    {"type": "navigate", "value": "https://example.com", "description": "Open the home page"},
    {"type": "click", "selector": "text=Login", "description": "Open the login form"},
    {"type": "fill", "selector": "#email", "value": "user@example.com", "description": "Enter email"},
    {"type": "assert", "selector": "h1", "value": "Welcome", "description": "Check greeting"}
  ],
  "confidence": 0.9
}
```

COMMANDS (type: required fields):
- navigate: value (URL)
- click: selector
- hover: selector
- fill: selector + value
- type: selector + value
- select: selector + value (option to choose)
- assert: value; with selector checks element text, without selector checks the current URL
- wait: selector (wait for element) or value (seconds)
- screenshot: optional selector (element), otherwise full page
- press: value (key name, e.g. "Enter")

SELECTORS: prefer data-testid > aria-label > id > text > CSS.

CONFIDENCE: 0.7-1.0 for clear requests, 0.1-0.3 when asking questions.

CRITICAL: Always return complete JSON. Never return {}."""

    @staticmethod
    def previous_commands_prompt(commands: List[Dict[str, Any]]) -> str:
        """Synthetic assistant turn summarizing commands already accepted."""
        return f"Previous commands executed:\n{json.dumps(commands, indent=2)}"

    @staticmethod
    def get_prompt_by_name(name: str, **kwargs) -> str:
        """Get a prompt by name with parameters.

        Args:
            name: Prompt name
            **kwargs: Parameters for the prompt

        Returns:
            Generated prompt

        Raises:
            ValueError: If prompt name is unknown
        """
        prompts: Dict[str, Callable[..., str]] = {
            "command_generation_system": PromptTemplates.command_generation_system_prompt,
            "previous_commands": PromptTemplates.previous_commands_prompt,
        }

        if name not in prompts:
            raise ValueError(f"Unknown prompt: {name}")

        return prompts[name](**kwargs)


def minify_prompt(prompt: str) -> str:
    """Collapse whitespace and blank lines to reduce token usage."""
    lines = [line.strip() for line in prompt.split("\n")]
    return re.sub(r"\s+", " ", " ".join(line for line in lines if line)).strip()


class PromptBuilder:
    """Builds the message sequence sent to a completion service."""

    def __init__(self, system_prompt: Optional[str] = None):
        self.system_prompt = system_prompt or PromptTemplates.command_generation_system_prompt()

    def build(self, user_input: str, context: Optional[ParseContext] = None) -> List[LLMMessage]:
        """Build messages for one request.

        Order: system prompt, conversation history (chronological, as given),
        a summary of previously accepted commands, then the new user turn.

        Args:
            user_input: Natural-language request
            context: Optional per-request context

        Returns:
            Messages to send
        """
        messages = [LLMMessage(role=LLMRole.SYSTEM, content=self.system_prompt)]

        if context and context.conversation_history:
            for turn in context.conversation_history:
                messages.append(LLMMessage(role=LLMRole(turn["role"]), content=turn["content"]))

        if context and context.previous_commands:
            commands = [
                c.to_dict() if hasattr(c, "to_dict") else dict(c)
                for c in context.previous_commands
            ]
            messages.append(LLMMessage(
                role=LLMRole.ASSISTANT,
                content=PromptTemplates.previous_commands_prompt(commands),
            ))

        messages.append(LLMMessage(role=LLMRole.USER, content=user_input))

        if logger.isEnabledFor(logging.DEBUG):
            payload = [{"role": m.role.value, "content": m.content} for m in messages]
            logger.debug(f"Prompt payload ({len(messages)} messages): {json.dumps(payload)}")

        return messages

    def system_prompt_tokens(self, count_tokens: Callable[[str], int]) -> int:
        """Size of the system prompt under the given token counter."""
        return count_tokens(self.system_prompt)

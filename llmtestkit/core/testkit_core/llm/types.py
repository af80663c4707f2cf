"""LLM conversation, request and response data models."""

import math
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 characters per token. Not exact."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class LLMRole(Enum):
    """Message roles in LLM conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class LLMMessage:
    """A message in an LLM conversation."""
    role: LLMRole
    content: str
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class LLMRequest:
    """Request to a completion service."""
    messages: List[LLMMessage]
    model: str
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def system_prompt(self) -> Optional[str]:
        for msg in self.messages:
            if msg.role == LLMRole.SYSTEM:
                return msg.content
        return None

    def non_system_messages(self) -> List[LLMMessage]:
        return [msg for msg in self.messages if msg.role != LLMRole.SYSTEM]

    def character_count(self) -> int:
        return sum(len(msg.content) for msg in self.messages)


@dataclass
class LLMUsage:
    """Token usage information from LLM response."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    estimated: bool = False

    @classmethod
    def estimate(cls, request: LLMRequest, response_text: str) -> "LLMUsage":
        """Character-based usage estimate for providers that report none."""
        prompt_tokens = math.ceil(request.character_count() / CHARS_PER_TOKEN)
        completion_tokens = estimate_tokens(response_text)
        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            estimated=True,
        )


@dataclass
class LLMResponse:
    """Response from a completion service."""
    content: str
    model: str
    usage: Optional[LLMUsage] = None
    finish_reason: Optional[str] = None
    request_id: Optional[str] = None
    cost: Optional[float] = None  # provider-reported cost, if any
    created_at: datetime = None
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now(UTC)


@dataclass(frozen=True)
class ParseContext:
    """Per-request context passed by value into every parse call.

    ``conversation_history`` items are ``{"role": ..., "content": ...}``
    dictionaries in chronological order.
    """
    previous_commands: Sequence[Any] = ()
    conversation_history: Sequence[Dict[str, str]] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

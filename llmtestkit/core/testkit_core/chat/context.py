"""Token-budgeted selection of conversation history."""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import tiktoken

from .models import ChatMessage
from .store import ChatStore

logger = logging.getLogger(__name__)

MODEL_CONTEXT_LIMITS: Dict[str, int] = {
    "gpt-4": 8192,
    "gpt-4-turbo": 128000,
    "gpt-4o": 128000,
    "gpt-4o-mini": 128000,
    "gpt-3.5-turbo": 16385,
    "gpt-3.5-turbo-16k": 16385,
    "claude": 200000,
    "gemini-pro": 32760,
}
DEFAULT_CONTEXT_LIMIT = 8192

# Share of the context window spent on input; the rest is left for the reply.
INPUT_BUDGET_RATIO = 0.6
MESSAGE_OVERHEAD_TOKENS = 4
MAX_HISTORY_FETCH = 100

DEFAULT_SYSTEM_PROMPT_TOKENS = 350
DEFAULT_CURRENT_MESSAGE_TOKENS = 50

T = TypeVar("T")


def context_limit_for(model: str) -> int:
    """Context window size for a model; exact name, then longest known prefix."""
    name = model.split("/")[-1]
    if name in MODEL_CONTEXT_LIMITS:
        return MODEL_CONTEXT_LIMITS[name]

    prefixes = [p for p in MODEL_CONTEXT_LIMITS if name.startswith(p)]
    if prefixes:
        return MODEL_CONTEXT_LIMITS[max(prefixes, key=len)]
    return DEFAULT_CONTEXT_LIMIT


def select_within_budget(items: Sequence[T], budget: int, cost_fn: Callable[[T], int]) -> List[T]:
    """Greedy newest-first selection.

    ``items`` are in chronological order. Walks from the newest item and stops
    at the first one that does not fit, so the result is always a contiguous
    suffix, returned oldest first.
    """
    selected: List[T] = []
    used = 0
    for item in reversed(items):
        cost = cost_fn(item)
        if used + cost > budget:
            break
        selected.append(item)
        used += cost
    selected.reverse()
    return selected


@dataclass(frozen=True)
class TokenCount:
    tokens: int
    method: str  # "tiktoken", "tiktoken-cl100k" or "estimate"


class TokenCounter:
    """Counts tokens with tiktoken, falling back to a ~4 chars/token estimate.

    Models tiktoken does not know (claude, gemini, glm) are counted with the
    ``cl100k_base`` encoding and reported as ``"tiktoken-cl100k"``.
    """

    def __init__(self):
        self._encodings: Dict[str, Tuple[Optional[tiktoken.Encoding], str]] = {}

    def _encoding_for(self, model: str) -> Tuple[Optional[tiktoken.Encoding], str]:
        if model in self._encodings:
            return self._encodings[model]

        try:
            try:
                found = (tiktoken.encoding_for_model(model), "tiktoken")
            except KeyError:
                logger.info(f"No tiktoken encoding for {model}, approximating with cl100k_base")
                found = (tiktoken.get_encoding("cl100k_base"), "tiktoken-cl100k")
        except Exception as e:
            logger.warning(f"Tokenizer unavailable for {model}, using character estimate: {e}")
            found = (None, "estimate")

        self._encodings[model] = found
        return found

    def count(self, text: str, model: str = "gpt-4") -> TokenCount:
        encoding, method = self._encoding_for(model)
        if encoding is None:
            return TokenCount(tokens=math.ceil(len(text) / 4), method=method)
        return TokenCount(tokens=len(encoding.encode(text)), method=method)

    def count_tokens(self, text: str, model: str = "gpt-4") -> int:
        return self.count(text, model).tokens


class ContextWindower:
    """Selects the recent history that fits a model's input budget."""

    def __init__(self, store: ChatStore, counter: Optional[TokenCounter] = None):
        self.store = store
        self.counter = counter or TokenCounter()

    def history_budget(
        self,
        model: str,
        system_prompt_tokens: int = DEFAULT_SYSTEM_PROMPT_TOKENS,
        current_message_tokens: int = DEFAULT_CURRENT_MESSAGE_TOKENS,
    ) -> int:
        max_input = math.floor(context_limit_for(model) * INPUT_BUDGET_RATIO)
        return max_input - system_prompt_tokens - current_message_tokens

    def get_context_window(
        self,
        session_id: str,
        model: str = "gpt-4",
        system_prompt_tokens: int = DEFAULT_SYSTEM_PROMPT_TOKENS,
        current_message_tokens: int = DEFAULT_CURRENT_MESSAGE_TOKENS,
    ) -> List[ChatMessage]:
        """Return the newest messages that fit the history budget, oldest first.

        Args:
            session_id: Conversation to read
            model: Target model (selects the context limit and tokenizer)
            system_prompt_tokens: Size of the system prompt
            current_message_tokens: Size of the new user message

        Returns:
            Contiguous suffix of the conversation; empty if the budget is negative
        """
        budget = self.history_budget(model, system_prompt_tokens, current_message_tokens)
        if budget <= 0:
            logger.warning(f"No token budget left for history (budget={budget}, model={model})")
            return []

        messages = self.store.get_recent_messages(session_id, limit=MAX_HISTORY_FETCH)
        counts = {m.id: self.counter.count(m.content, model) for m in messages}

        methods = {c.method for c in counts.values()}
        if "estimate" in methods:
            logger.info(f"Token counts for {model} are character-based estimates")

        window = select_within_budget(
            messages, budget, lambda m: counts[m.id].tokens + MESSAGE_OVERHEAD_TOKENS
        )

        used = sum(counts[m.id].tokens + MESSAGE_OVERHEAD_TOKENS for m in window)
        logger.info(
            f"Context window: {len(window)}/{len(messages)} messages, "
            f"{used}/{budget} tokens ({model})"
        )
        return window

"""Chat sessions, persistence and context windowing."""

from .models import ChatMessage, ChatSession
from .store import ChatStore
from .context import ContextWindower, TokenCount, TokenCounter, select_within_budget

__all__ = [
    "ChatMessage",
    "ChatSession",
    "ChatStore",
    "ContextWindower",
    "TokenCount",
    "TokenCounter",
    "select_within_budget",
]

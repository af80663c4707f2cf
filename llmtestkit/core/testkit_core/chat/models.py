"""Chat session and message records."""

from datetime import datetime, UTC
from typing import List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from ..commands.models import Command


class ChatSession(BaseModel):
    """A conversation. Created lazily on its first message."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ChatMessage(BaseModel):
    """One append-only turn of a conversation."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    session_id: str
    role: Literal["user", "assistant"]
    content: str
    commands: Optional[List[Command]] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_history(self) -> dict:
        """Role/content pair as fed into a ParseContext."""
        return {"role": self.role, "content": self.content}

"""Chat persistence with JSONL message logs."""

import json
import logging
import threading
from datetime import datetime, timedelta, UTC
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from ..commands.models import Command
from .models import ChatMessage, ChatSession

logger = logging.getLogger(__name__)


class ChatStore:
    """Sessions in a JSON document, messages in an append-only JSONL log.

    Pass ``data_dir=None`` to keep everything in memory.
    """

    SESSIONS_FILE = "chat_sessions.json"
    MESSAGES_FILE = "chat_messages.jsonl"

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize chat store.

        Args:
            data_dir: Directory for chat data (in-memory if None)
        """
        self._lock = threading.Lock()
        self._sessions: Dict[str, ChatSession] = {}
        self._messages: List[ChatMessage] = []
        self.sessions_path: Optional[Path] = None
        self.messages_path: Optional[Path] = None

        if data_dir is not None:
            data_dir = Path(data_dir)
            data_dir.mkdir(parents=True, exist_ok=True)
            self.sessions_path = data_dir / self.SESSIONS_FILE
            self.messages_path = data_dir / self.MESSAGES_FILE
            self._load()

    def _load(self) -> None:
        if self.sessions_path.exists():
            with open(self.sessions_path, "r") as f:
                raw_sessions = json.load(f)
            for raw in raw_sessions:
                session = ChatSession.model_validate(raw)
                self._sessions[session.id] = session

        if self.messages_path.exists():
            with open(self.messages_path, "r") as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        self._messages.append(ChatMessage.model_validate_json(line))
                    except ValidationError as e:
                        logger.warning(f"Skipping corrupt chat message line {line_number}: {e}")

        logger.debug(
            f"Loaded {len(self._sessions)} chat sessions and {len(self._messages)} messages"
        )

    def _write_sessions(self) -> None:
        """Rewrite the session document atomically (temp file + rename)."""
        if self.sessions_path is None:
            return

        temp_path = self.sessions_path.with_suffix(".json.tmp")
        with open(temp_path, "w") as f:
            json.dump([s.model_dump(mode="json") for s in self._sessions.values()], f, indent=2)
        temp_path.replace(self.sessions_path)

    def _rewrite_messages(self) -> None:
        if self.messages_path is None:
            return

        temp_path = self.messages_path.with_suffix(".jsonl.tmp")
        with open(temp_path, "w") as f:
            for message in self._messages:
                f.write(message.model_dump_json(exclude_none=True) + "\n")
        temp_path.replace(self.messages_path)

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create_session(self, session_id: Optional[str] = None) -> ChatSession:
        """Fetch a session, creating it (with the given id, if any) when absent."""
        with self._lock:
            if session_id and session_id in self._sessions:
                return self._sessions[session_id]

            session = ChatSession(id=session_id) if session_id else ChatSession()
            self._sessions[session.id] = session
            self._write_sessions()

        logger.info(f"Created chat session {session.id}")
        return session

    def list_sessions(self) -> List[ChatSession]:
        """All sessions, most recently updated first."""
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    def save_message(
        self,
        session_id: str,
        role: str,
        content: str,
        commands: Optional[Sequence[Command]] = None,
    ) -> ChatMessage:
        """Append a message and bump the session's ``updated_at``.

        Args:
            session_id: Owning session (created if missing)
            role: "user" or "assistant"
            content: Message text
            commands: Commands produced for this turn, if any

        Returns:
            The stored message
        """
        message = ChatMessage(
            session_id=session_id,
            role=role,
            content=content,
            commands=list(commands) if commands else None,
        )

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = ChatSession(id=session_id, created_at=message.timestamp)
            self._sessions[session_id] = session.model_copy(update={"updated_at": message.timestamp})

            if self.messages_path is not None:
                with open(self.messages_path, "a") as f:
                    f.write(message.model_dump_json(exclude_none=True) + "\n")
            self._messages.append(message)
            self._write_sessions()

        return message

    def get_messages(self, session_id: str) -> List[ChatMessage]:
        """Every message of a session in chronological order."""
        with self._lock:
            return [m for m in self._messages if m.session_id == session_id]

    def get_recent_messages(self, session_id: str, limit: int = 100) -> List[ChatMessage]:
        """The newest ``limit`` messages of a session, oldest first."""
        if limit <= 0:
            return []
        return self.get_messages(session_id)[-limit:]

    def message_count(self, session_id: str) -> int:
        return len(self.get_messages(session_id))

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            if session_id not in self._sessions:
                return False
            del self._sessions[session_id]
            self._messages = [m for m in self._messages if m.session_id != session_id]
            self._write_sessions()
            self._rewrite_messages()

        logger.info(f"Deleted chat session {session_id}")
        return True

    def cleanup_old_sessions(self, days_old: int = 30) -> int:
        """Delete sessions not updated in ``days_old`` days.

        Returns:
            Number of sessions removed
        """
        cutoff = datetime.now(UTC) - timedelta(days=days_old)

        with self._lock:
            stale = {sid for sid, s in self._sessions.items() if s.updated_at < cutoff}
            if not stale:
                return 0
            for sid in stale:
                del self._sessions[sid]
            self._messages = [m for m in self._messages if m.session_id not in stale]
            self._write_sessions()
            self._rewrite_messages()

        logger.info(f"Cleaned up {len(stale)} chat sessions older than {days_old} days")
        return len(stale)

"""Conversation memory for the news chatbot.

Sessions live in memory and expire after a period of inactivity. Expiry is
checked against a monotonic clock whenever a session is touched, and every
write purges all expired sessions, so nothing runs in the background.
"""
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog

from newsbot import config

logger = structlog.get_logger()


class ExpiringSessionStore:
    """Key/value map whose entries expire ``ttl_seconds`` after their last write."""

    def __init__(
        self,
        ttl_seconds: float = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds or config.SESSION_TTL_SECONDS
        self.clock = clock
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._expires_at: Dict[str, float] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        if self._expired(key):
            self._evict(key)
            return None
        return self._entries.get(key)

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self.purge_expired()
        self._entries[key] = value
        self._expires_at[key] = self.clock() + self.ttl_seconds

    def touch(self, key: str) -> bool:
        """Restart the TTL of a live entry."""
        if self.get(key) is None:
            return False
        self._expires_at[key] = self.clock() + self.ttl_seconds
        return True

    def delete(self, key: str) -> bool:
        existed = self.get(key) is not None
        self._evict(key)
        return existed

    def keys(self) -> List[str]:
        self.purge_expired()
        return list(self._entries.keys())

    def purge_expired(self) -> int:
        expired = [key for key in list(self._entries) if self._expired(key)]
        for key in expired:
            self._evict(key)
        if expired:
            logger.debug("expired_sessions_purged", count=len(expired))
        return len(expired)

    def _expired(self, key: str) -> bool:
        expires_at = self._expires_at.get(key)
        return expires_at is not None and self.clock() >= expires_at

    def _evict(self, key: str) -> None:
        self._entries.pop(key, None)
        self._expires_at.pop(key, None)

    def __len__(self) -> int:
        return len(self.keys())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConversationManager:
    """Manages chat sessions and conversation history."""

    def __init__(
        self,
        store: Optional[ExpiringSessionStore] = None,
        max_messages: int = None,
    ):
        """Initialize the conversation manager.

        Args:
            store: Session storage (default: a fresh ExpiringSessionStore)
            max_messages: Messages kept per session; older ones are dropped
        """
        self.store = store if store is not None else ExpiringSessionStore()
        self.max_messages = max_messages or config.SESSION_MAX_MESSAGES

    def create_session(self, session_id: Optional[str] = None) -> str:
        """Create a new chat session.

        Args:
            session_id: Optional id to use instead of a generated uuid

        Returns:
            The created session ID
        """
        session_id = session_id or str(uuid.uuid4())
        now = _now_iso()
        self.store.set(
            session_id,
            {
                "session_id": session_id,
                "messages": [],
                "created_at": now,
                "last_activity": now,
            },
        )
        logger.info("conversation_session_created", session_id=session_id)
        return session_id

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Get session details, or None if missing or expired."""
        return self.store.get(session_id)

    def add_message(
        self,
        session_id: str,
        role: str,
        content: str,
        sources: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Append a message, creating the session if it does not exist.

        Args:
            session_id: The session to add the message to
            role: Message role ('user' or 'assistant')
            content: The message content
            sources: Optional list of sources used for the answer

        Returns:
            The stored message with its id and timestamp
        """
        session = self.store.get(session_id)
        if session is None:
            self.create_session(session_id)
            session = self.store.get(session_id)

        message = {
            "id": str(uuid.uuid4()),
            "role": role,
            "content": content,
            "timestamp": _now_iso(),
        }
        if sources:
            message["sources"] = sources

        session["messages"].append(message)
        session["messages"] = session["messages"][-self.max_messages:]
        session["last_activity"] = message["timestamp"]

        self.store.set(session_id, session)

        logger.info(
            "conversation_message_added",
            session_id=session_id,
            role=role,
            message_count=len(session["messages"]),
        )
        return message

    def get_history(self, session_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Get the last ``limit`` messages of a session, oldest first."""
        session = self.store.get(session_id)
        if session is None:
            return []
        return session["messages"][-limit:]

    def clear_session(self, session_id: str) -> bool:
        """Delete a session. Returns False if it did not exist."""
        deleted = self.store.delete(session_id)
        if deleted:
            logger.info("conversation_session_deleted", session_id=session_id)
        return deleted

    def extend_session(self, session_id: str) -> bool:
        """Reset a session's expiry clock."""
        return self.store.touch(session_id)

    def list_sessions(self) -> List[str]:
        """IDs of all live sessions."""
        return self.store.keys()

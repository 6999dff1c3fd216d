"""Conversation memory for chat sessions."""
from newsbot.memory.manager import ConversationManager, ExpiringSessionStore

__all__ = ["ConversationManager", "ExpiringSessionStore"]

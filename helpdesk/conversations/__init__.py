"""Conversation state, persistence and context helpers for the chat widget."""

from .context import build_context, to_wire_history
from .ids import new_id
from .models import Conversation, Message, SessionState
from .persistence import (
    ACTIVE_ID_KEY,
    CONVERSATIONS_KEY,
    InMemoryPersistence,
    JsonFilePersistence,
    PersistenceAdapter,
)
from .store import DEFAULT_GREETING, DEFAULT_TITLE, ConversationStore

__all__ = [
    "ACTIVE_ID_KEY",
    "CONVERSATIONS_KEY",
    "Conversation",
    "ConversationStore",
    "DEFAULT_GREETING",
    "DEFAULT_TITLE",
    "InMemoryPersistence",
    "JsonFilePersistence",
    "Message",
    "PersistenceAdapter",
    "SessionState",
    "build_context",
    "new_id",
    "to_wire_history",
]

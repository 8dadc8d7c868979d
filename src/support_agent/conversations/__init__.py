"""Conversation history storage and message assembly."""

from support_agent.conversations.manager import MessagesManager
from support_agent.conversations.store import (
    ConversationStore,
    ConversationStoreError,
    InMemoryConversationStore,
    JsonlConversationStore,
)

__all__ = [
    "ConversationStore",
    "ConversationStoreError",
    "InMemoryConversationStore",
    "JsonlConversationStore",
    "MessagesManager",
]

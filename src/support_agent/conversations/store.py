"""Conversation history storage.

The pipeline depends only on the ``ConversationStore`` protocol. Two
implementations ship with the package:

- ``InMemoryConversationStore``: process-local, for tests and embedding
- ``JsonlConversationStore``: one JSON-lines file per conversation, used by the CLI

Both expire a conversation after ``ttl_seconds`` without writes; every append
refreshes the expiry. Unknown or expired conversations load as empty.
"""

import asyncio
import hashlib
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import orjson

from support_agent.llm_client.types import Message
from support_agent.telemetry import (
    CONVERSATION_CLEARED,
    CONVERSATION_EXPIRED,
    CONVERSATION_MESSAGE_APPENDED,
    get_logger,
)

log = get_logger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60


class ConversationStoreError(Exception):
    """Raised when the backing storage cannot be read or written."""

    pass


class ConversationStore(Protocol):
    """Append-only message history keyed by conversation id."""

    async def append_message(self, conversation_id: str, message: Message) -> None: ...

    async def load_history(self, conversation_id: str) -> list[Message]: ...

    async def clear_history(self, conversation_id: str) -> None: ...

    async def count_messages(self, conversation_id: str) -> int: ...


def _stored_copy(message: Message) -> Message:
    # Annotations such as usage cost are not part of the conversation
    return {k: v for k, v in message.items() if k != "extra"}


@dataclass
class _Conversation:
    messages: list[Message] = field(default_factory=list)
    expires_at: float = 0.0


class InMemoryConversationStore:
    """Dict-backed store guarded by an asyncio lock."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty store.

        Args:
            ttl_seconds: Idle time after which a conversation is dropped.
            clock: Monotonic time source (injectable for tests).
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._conversations: dict[str, _Conversation] = {}
        self._lock = asyncio.Lock()

    def _live(self, conversation_id: str) -> _Conversation | None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None
        if conversation.expires_at <= self._clock():
            del self._conversations[conversation_id]
            log.debug(CONVERSATION_EXPIRED, conversation_id=conversation_id)
            return None
        return conversation

    async def append_message(self, conversation_id: str, message: Message) -> None:
        async with self._lock:
            conversation = self._live(conversation_id)
            if conversation is None:
                conversation = self._conversations.setdefault(conversation_id, _Conversation())
            conversation.messages.append(_stored_copy(message))
            conversation.expires_at = self._clock() + self.ttl_seconds
        log.debug(
            CONVERSATION_MESSAGE_APPENDED,
            conversation_id=conversation_id,
            role=message.get("role"),
        )

    async def load_history(self, conversation_id: str) -> list[Message]:
        async with self._lock:
            conversation = self._live(conversation_id)
            if conversation is None:
                return []
            return [dict(m) for m in conversation.messages]

    async def clear_history(self, conversation_id: str) -> None:
        async with self._lock:
            self._conversations.pop(conversation_id, None)
        log.debug(CONVERSATION_CLEARED, conversation_id=conversation_id)

    async def count_messages(self, conversation_id: str) -> int:
        async with self._lock:
            conversation = self._live(conversation_id)
            return len(conversation.messages) if conversation else 0


class JsonlConversationStore:
    """File-backed store: ``<directory>/<digest>.jsonl``, one message per line.

    Expiry uses the file modification time, so it survives restarts.
    """

    def __init__(self, directory: Path, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        self.directory = Path(directory)
        self.ttl_seconds = ttl_seconds
        self._lock = asyncio.Lock()

    def path_for(self, conversation_id: str) -> Path:
        digest = hashlib.sha256(conversation_id.encode("utf-8")).hexdigest()[:32]
        return self.directory / f"{digest}.jsonl"

    def _expired(self, path: Path) -> bool:
        return path.stat().st_mtime + self.ttl_seconds <= time.time()

    def _append(self, conversation_id: str, message: Message) -> None:
        path = self.path_for(conversation_id)
        self.directory.mkdir(parents=True, exist_ok=True)
        mode = "ab"
        if path.exists() and self._expired(path):
            log.debug(CONVERSATION_EXPIRED, conversation_id=conversation_id)
            mode = "wb"
        with path.open(mode) as f:
            f.write(orjson.dumps(_stored_copy(message)) + b"\n")

    def _load(self, conversation_id: str) -> list[Message]:
        path = self.path_for(conversation_id)
        if not path.exists() or self._expired(path):
            return []
        messages: list[Message] = []
        with path.open("rb") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    messages.append(orjson.loads(line))
                except orjson.JSONDecodeError as e:
                    raise ConversationStoreError(
                        f"corrupt history line {line_number} in {path.name}: {e}"
                    ) from None
        return messages

    async def append_message(self, conversation_id: str, message: Message) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(self._append, conversation_id, message)
            except OSError as e:
                raise ConversationStoreError(f"failed to append message: {e}") from e
        log.debug(
            CONVERSATION_MESSAGE_APPENDED,
            conversation_id=conversation_id,
            role=message.get("role"),
        )

    async def load_history(self, conversation_id: str) -> list[Message]:
        async with self._lock:
            try:
                return await asyncio.to_thread(self._load, conversation_id)
            except OSError as e:
                raise ConversationStoreError(f"failed to load history: {e}") from e

    async def clear_history(self, conversation_id: str) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(self.path_for(conversation_id).unlink, True)
            except OSError as e:
                raise ConversationStoreError(f"failed to clear history: {e}") from e
        log.debug(CONVERSATION_CLEARED, conversation_id=conversation_id)

    async def count_messages(self, conversation_id: str) -> int:
        return len(await self.load_history(conversation_id))

"""Builds model-facing message lists from stored conversation history."""

from support_agent.conversations.store import ConversationStore
from support_agent.llm_client.types import Message

_CONTEXT_LABELS = {"user": "UserMessage", "assistant": "AssistantMessage"}


class MessagesManager:
    """Reads and writes conversation history on behalf of the pipeline steps.

    Attributes:
        store: Backing conversation store.
        nlu_max_turns: Number of most recent history messages shown to the
            NLU model.
    """

    def __init__(self, store: ConversationStore, nlu_max_turns: int = 5) -> None:
        self.store = store
        self.nlu_max_turns = max(nlu_max_turns, 0)

    async def process_nlu_message(self, conversation_id: str, query: str) -> str:
        """Record the user's query and build the NLU model's input text.

        The query is appended to the store first, so it also appears as the
        last entry of the conversation context.

        Args:
            conversation_id: Conversation to append to.
            query: The user's message.

        Returns:
            ``<conversation_context>`` block followed by the
            ``<current_message_to_analyze>`` block.
        """
        await self.store.append_message(conversation_id, {"role": "user", "content": query})
        history = await self.store.load_history(conversation_id)
        return (
            self.build_nlu_context(history)
            + "\n<current_message_to_analyze>\n"
            + f"UserMessage({query})\n"
            + "</current_message_to_analyze>"
        )

    def build_nlu_context(self, history: list[Message]) -> str:
        """Render the most recent user/assistant messages as tagged lines."""
        recent = history[-self.nlu_max_turns :] if self.nlu_max_turns else []
        lines = ["<conversation_context>"]
        for message in recent:
            label = _CONTEXT_LABELS.get(message.get("role", ""))
            content = message.get("content")
            if label is None or not content:
                continue
            lines.append(f"{label}({content})")
        lines.append("</conversation_context>")
        return "\n".join(lines)

    async def build_response_context(
        self, conversation_id: str, system_prompt: str
    ) -> list[Message]:
        """Return ``[system prompt] + stored history`` for the response model."""
        history = await self.store.load_history(conversation_id)
        return [{"role": "system", "content": system_prompt}, *history]

    async def save_response(self, conversation_id: str, content: str) -> None:
        """Persist the final assistant reply."""
        await self.store.append_message(conversation_id, {"role": "assistant", "content": content})

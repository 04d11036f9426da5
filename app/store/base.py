"""
Storage contract for conversations, messages, and RAG tags.

Two implementations: RedisBackend (durable) and MemoryBackend (process memory,
optional JSON snapshot). Missing records come back as None / False / [] and
never as exceptions.
"""

from abc import ABC, abstractmethod

from app.schemas.conversation import Bucket, ClearResult, Conversation, Message, Role


class StoreBackend(ABC):
    """Async interface every store backend implements identically."""

    is_remote: bool = False

    @abstractmethod
    async def list_conversations(self, bucket: Bucket) -> list[Conversation]:
        """Conversations in one bucket, newest createdAt first."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Look up a conversation in either bucket."""

    @abstractmethod
    async def create_conversation(self, rag_tag: str | None, pipeline_id: str | None) -> Conversation:
        """Create and persist a conversation with an empty message list."""

    @abstractmethod
    async def update_conversation_title(self, conversation_id: str, title: str) -> Conversation | None:
        """Rewrite only the title. None when the conversation does not exist."""

    @abstractmethod
    async def get_messages(self, conversation_id: str) -> list[Message]:
        """Ordered messages; empty list when the conversation or its messages are absent."""

    @abstractmethod
    async def add_message(self, conversation_id: str, role: Role, content: str) -> Message | None:
        """Append to an existing conversation. None (and no writes) when it does not exist."""

    @abstractmethod
    async def register_rag_tag(self, tag: str) -> None:
        """Idempotently add a non-empty tag."""

    @abstractmethod
    async def list_rag_tags(self) -> list[str]:
        """All registered tags, sorted."""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Remove the conversation and its messages. False when absent."""

    @abstractmethod
    async def clear_all(self) -> ClearResult:
        """Wipe every key the application owns (remote only)."""


def newest_first(conversations: list[Conversation]) -> list[Conversation]:
    return sorted(conversations, key=lambda c: c.created_at or "", reverse=True)


def normalize_tag(tag: str | None) -> str:
    return str(tag).strip() if tag is not None else ""

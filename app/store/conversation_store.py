"""
Conversation store: picks Redis or local memory once per process and delegates to it.

The probe runs on first use: if Redis is configured and answers PING, every
call goes to RedisBackend for the life of the process; on any failure the store
falls back to MemoryBackend permanently (no per-call retry).
"""

import asyncio
import logging
from typing import Any, Callable

from redis.asyncio import Redis

from app.core.config import (
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_URL,
    STORE_FILE,
    STORE_KEY_PREFIX,
    resolve_project_path,
)
from app.schemas.conversation import Bucket, ClearResult, Conversation, Message, Role
from app.store.base import StoreBackend
from app.store.memory_backend import MemoryBackend
from app.store.redis_backend import RedisBackend

logger = logging.getLogger(__name__)

RedisFactory = Callable[[], Any]


def redis_factory_from_config() -> RedisFactory | None:
    """Client factory when REDIS_URL or REDIS_HOST is set, else None (Redis disabled)."""
    if REDIS_URL:
        return lambda: Redis.from_url(REDIS_URL, decode_responses=True)
    if REDIS_HOST:
        return lambda: Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)
    return None


class ConversationStore:
    """Single entry point for conversation state; owns backend selection."""

    def __init__(
        self,
        local: MemoryBackend,
        redis_factory: RedisFactory | None = None,
        key_prefix: str = STORE_KEY_PREFIX,
    ) -> None:
        self.local = local
        self._redis_factory = redis_factory
        self._key_prefix = key_prefix
        self._backend: StoreBackend | None = None
        self._probe_lock = asyncio.Lock()

    @classmethod
    def from_config(cls) -> "ConversationStore":
        snapshot = resolve_project_path(STORE_FILE) if STORE_FILE else None
        return cls(MemoryBackend(snapshot), redis_factory_from_config())

    @property
    def is_remote(self) -> bool:
        """True once the probe has selected Redis."""
        return self._backend is not None and self._backend.is_remote

    @property
    def redis_enabled(self) -> bool:
        return self._redis_factory is not None

    async def _probe_redis(self) -> StoreBackend | None:
        if self._redis_factory is None:
            return None
        client = None
        try:
            client = self._redis_factory()
            await client.ping()
        except Exception as e:
            logger.warning("[store] Redis connect failed, using memory: %s", e)
            if client is not None:
                await self._close_quietly(client)
            return None
        logger.info("[store] using Redis backend prefix=%s", self._key_prefix)
        return RedisBackend(client, prefix=self._key_prefix)

    @staticmethod
    async def _close_quietly(client: Any) -> None:
        """Release the connection pool of a client that will not be used."""
        try:
            await client.aclose()
        except Exception as e:
            logger.warning("[store] closing unused Redis client failed: %s", e)

    async def backend(self) -> StoreBackend:
        if self._backend is not None:
            return self._backend
        async with self._probe_lock:
            if self._backend is None:
                remote = await self._probe_redis()
                self._backend = remote or self.local
                if remote is None:
                    logger.info("[store] using in-memory backend snapshot=%s", self.local.snapshot_path)
        return self._backend

    async def list_conversations(self, bucket: Bucket) -> list[Conversation]:
        return await (await self.backend()).list_conversations(bucket)

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return await (await self.backend()).get_conversation(conversation_id)

    async def create_conversation(self, rag_tag: str | None = None, pipeline_id: str | None = None) -> Conversation:
        return await (await self.backend()).create_conversation(rag_tag, pipeline_id)

    async def update_conversation_title(self, conversation_id: str, title: str) -> Conversation | None:
        return await (await self.backend()).update_conversation_title(conversation_id, title)

    async def get_messages(self, conversation_id: str) -> list[Message]:
        return await (await self.backend()).get_messages(conversation_id)

    async def add_message(self, conversation_id: str, role: Role, content: str) -> Message | None:
        return await (await self.backend()).add_message(conversation_id, role, content)

    async def register_rag_tag(self, tag: str) -> None:
        await (await self.backend()).register_rag_tag(tag)

    async def list_rag_tags(self) -> list[str]:
        return await (await self.backend()).list_rag_tags()

    async def delete_conversation(self, conversation_id: str) -> bool:
        return await (await self.backend()).delete_conversation(conversation_id)

    async def clear_all_store(self) -> ClearResult:
        """Wipe the remote store. On the local backend this reports cleared=False."""
        backend = await self.backend()
        if not backend.is_remote:
            return ClearResult(cleared=False, keys_deleted=0)
        return await backend.clear_all()

"""
Redis-backed conversation store. Two buckets: <prefix>:chat (non-RAG) and <prefix>:rag.

Keys:
    <prefix>:<bucket>:conv:ids      set of conversation ids in the bucket
    <prefix>:<bucket>:conv:<id>     conversation JSON
    <prefix>:<bucket>:msgs:<id>     list of message JSON, append order
    <prefix>:rag:tags               set of RAG tags
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from app.core.config import STORE_KEY_PREFIX
from app.schemas.conversation import (
    BUCKETS,
    Bucket,
    ClearResult,
    Conversation,
    Message,
    Role,
    bucket_for,
)
from app.store.base import StoreBackend, newest_first, normalize_tag

logger = logging.getLogger(__name__)

CLEAR_BATCH_SIZE = 500


class RedisKeys:
    def __init__(self, prefix: str = STORE_KEY_PREFIX) -> None:
        self.prefix = prefix

    def _key(self, bucket: str, *parts: str) -> str:
        return ":".join([self.prefix, bucket, *parts])

    def conv_ids(self, bucket: Bucket) -> str:
        return self._key(bucket, "conv", "ids")

    def conv(self, bucket: Bucket, conversation_id: str) -> str:
        return self._key(bucket, "conv", conversation_id)

    def msgs(self, bucket: Bucket, conversation_id: str) -> str:
        return self._key(bucket, "msgs", conversation_id)

    def rag_tags(self) -> str:
        return self._key("rag", "tags")

    def pattern(self) -> str:
        return f"{self.prefix}:*"


def _parse_conversation(raw: str | None) -> Conversation | None:
    if not raw:
        return None
    try:
        return Conversation.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("[redis_store] skipping invalid conversation record: %s", e)
        return None


def _parse_message(raw: str) -> Message | None:
    try:
        return Message.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("[redis_store] skipping invalid message record: %s", e)
        return None


class RedisBackend(StoreBackend):
    """Expects a redis.asyncio client created with decode_responses=True."""

    is_remote = True

    def __init__(self, client: Any, prefix: str = STORE_KEY_PREFIX) -> None:
        self.client = client
        self.keys = RedisKeys(prefix)

    async def _find(self, conversation_id: str) -> Conversation | None:
        for bucket in BUCKETS:
            conv = _parse_conversation(await self.client.get(self.keys.conv(bucket, conversation_id)))
            if conv is not None:
                return conv
        return None

    async def list_conversations(self, bucket: Bucket) -> list[Conversation]:
        ids = await self.client.smembers(self.keys.conv_ids(bucket))
        items: list[Conversation] = []
        for conversation_id in ids:
            conv = _parse_conversation(await self.client.get(self.keys.conv(bucket, conversation_id)))
            if conv is not None and bucket_for(conv.rag_tag) == bucket:
                items.append(conv)
        return newest_first(items)

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return await self._find(conversation_id)

    async def create_conversation(self, rag_tag: str | None, pipeline_id: str | None) -> Conversation:
        conv = Conversation(
            rag_tag=rag_tag or None,
            pipeline_id=pipeline_id or None,
            bucket=bucket_for(rag_tag),
        )
        await self.client.sadd(self.keys.conv_ids(conv.bucket), conv.id)
        await self.client.set(self.keys.conv(conv.bucket, conv.id), json.dumps(conv.to_record()))
        logger.info("[redis_store:create_conversation] id=%s bucket=%s", conv.id, conv.bucket)
        return conv

    async def update_conversation_title(self, conversation_id: str, title: str) -> Conversation | None:
        conv = await self._find(conversation_id)
        if conv is None:
            return None
        conv.title = title
        await self.client.set(self.keys.conv(conv.bucket, conv.id), json.dumps(conv.to_record()))
        return conv

    async def get_messages(self, conversation_id: str) -> list[Message]:
        conv = await self._find(conversation_id)
        if conv is None:
            return []
        raw_items = await self.client.lrange(self.keys.msgs(conv.bucket, conversation_id), 0, -1)
        return [m for m in (_parse_message(raw) for raw in raw_items) if m is not None]

    async def add_message(self, conversation_id: str, role: Role, content: str) -> Message | None:
        conv = await self._find(conversation_id)
        if conv is None:
            logger.info("[redis_store:add_message] unknown conversation id=%s", conversation_id)
            return None
        msg = Message(role=role, content=content or "")
        await self.client.rpush(self.keys.msgs(conv.bucket, conversation_id), json.dumps(msg.to_record()))
        logger.info("[redis_store:add_message] id=%s role=%s content_len=%d", conversation_id, role, len(msg.content))
        return msg

    async def register_rag_tag(self, tag: str) -> None:
        tag = normalize_tag(tag)
        if tag:
            await self.client.sadd(self.keys.rag_tags(), tag)

    async def list_rag_tags(self) -> list[str]:
        return sorted(await self.client.smembers(self.keys.rag_tags()))

    async def delete_conversation(self, conversation_id: str) -> bool:
        for bucket in BUCKETS:
            if await self.client.get(self.keys.conv(bucket, conversation_id)):
                await self.client.delete(self.keys.conv(bucket, conversation_id), self.keys.msgs(bucket, conversation_id))
                await self.client.srem(self.keys.conv_ids(bucket), conversation_id)
                logger.info("[redis_store:delete_conversation] id=%s bucket=%s", conversation_id, bucket)
                return True
        return False

    async def clear_all(self) -> ClearResult:
        """Delete every <prefix>:* key (SCAN, not KEYS) and report how many were removed."""
        deleted = 0
        batch: list[str] = []
        async for key in self.client.scan_iter(match=self.keys.pattern(), count=CLEAR_BATCH_SIZE):
            batch.append(key)
            if len(batch) >= CLEAR_BATCH_SIZE:
                deleted += await self.client.delete(*batch)
                batch = []
        if batch:
            deleted += await self.client.delete(*batch)
        logger.info("[redis_store:clear_all] deleted %d keys matching %s", deleted, self.keys.pattern())
        return ClearResult(cleared=True, keys_deleted=deleted)

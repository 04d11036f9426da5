"""
In-memory conversation store with optional file snapshot.

When a snapshot path is set, the full state is written after every mutation
(serialized under the lock, written on a worker thread so the event loop is not
blocked) and restored at construction. Writes carry a version; an older
snapshot never overwrites a newer one. A failed write or a corrupt snapshot
is logged, never raised: the store keeps serving from memory.

Snapshot format: {"conversations": [...], "messages": {id: [...]}, "ragTags": [...]}
"""

import asyncio
import json
import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from app.schemas.conversation import (
    Bucket,
    ClearResult,
    Conversation,
    Message,
    Role,
    bucket_for,
)
from app.store.base import StoreBackend, newest_first, normalize_tag

logger = logging.getLogger(__name__)


class MemoryBackend(StoreBackend):
    is_remote = False

    def __init__(self, snapshot_path: Path | str | None = None) -> None:
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}
        self._rag_tags: set[str] = set()
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._version = 0
        self._written_version = 0
        self._load()

    # --- snapshot ---

    def _load(self) -> None:
        if self.snapshot_path is None or not self.snapshot_path.is_file():
            return
        try:
            data = json.loads(self.snapshot_path.read_text(encoding="utf-8"))
            conversations = [Conversation.model_validate(c) for c in data.get("conversations") or []]
            messages = {
                cid: [Message.model_validate(m) for m in items or []]
                for cid, items in (data.get("messages") or {}).items()
            }
            tags = {normalize_tag(t) for t in data.get("ragTags") or [] if normalize_tag(t)}
        except (OSError, ValueError, AttributeError, TypeError, ValidationError) as e:
            logger.warning("[memory_store:load] snapshot %s unreadable, starting empty: %s", self.snapshot_path, e)
            return
        with self._lock:
            self._conversations = {c.id: c for c in conversations}
            self._messages = messages
            self._rag_tags = tags
        logger.info(
            "[memory_store:load] restored conversations=%d tags=%d from %s",
            len(conversations), len(tags), self.snapshot_path,
        )

    def _snapshot(self) -> dict:
        return {
            "conversations": [c.to_record() for c in self._conversations.values()],
            "messages": {cid: [m.to_record() for m in items] for cid, items in self._messages.items()},
            "ragTags": sorted(self._rag_tags),
        }

    def _serialize(self) -> tuple[str, int] | None:
        """Snapshot text and its version. Caller holds the lock."""
        if self.snapshot_path is None:
            return None
        try:
            text = json.dumps(self._snapshot(), indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.warning("[memory_store:persist] snapshot serialization failed: %s", e)
            return None
        self._version += 1
        return text, self._version

    def _write(self, text: str, version: int) -> None:
        with self._write_lock:
            if version <= self._written_version:
                return
            try:
                self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
                self.snapshot_path.write_text(text, encoding="utf-8")
            except OSError as e:
                logger.warning("[memory_store:persist] snapshot write failed %s: %s", self.snapshot_path, e)
                return
            self._written_version = version

    async def _persist(self, pending: tuple[str, int] | None) -> None:
        if pending is not None:
            await asyncio.to_thread(self._write, *pending)

    # --- conversations ---

    async def list_conversations(self, bucket: Bucket) -> list[Conversation]:
        with self._lock:
            items = [c.model_copy() for c in self._conversations.values() if bucket_for(c.rag_tag) == bucket]
        return newest_first(items)

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            conv = self._conversations.get(conversation_id)
            return conv.model_copy() if conv else None

    async def create_conversation(self, rag_tag: str | None, pipeline_id: str | None) -> Conversation:
        conv = Conversation(
            rag_tag=rag_tag or None,
            pipeline_id=pipeline_id or None,
            bucket=bucket_for(rag_tag),
        )
        with self._lock:
            self._conversations[conv.id] = conv
            self._messages[conv.id] = []
            pending = self._serialize()
        await self._persist(pending)
        logger.info("[memory_store:create_conversation] id=%s bucket=%s", conv.id, conv.bucket)
        return conv.model_copy()

    async def update_conversation_title(self, conversation_id: str, title: str) -> Conversation | None:
        with self._lock:
            conv = self._conversations.get(conversation_id)
            if conv is None:
                return None
            conv.title = title
            pending = self._serialize()
            updated = conv.model_copy()
        await self._persist(pending)
        return updated

    async def delete_conversation(self, conversation_id: str) -> bool:
        with self._lock:
            existed = self._conversations.pop(conversation_id, None) is not None
            self._messages.pop(conversation_id, None)
            pending = self._serialize() if existed else None
        await self._persist(pending)
        logger.info("[memory_store:delete_conversation] id=%s existed=%s", conversation_id, existed)
        return existed

    # --- messages ---

    async def get_messages(self, conversation_id: str) -> list[Message]:
        with self._lock:
            return [m.model_copy() for m in self._messages.get(conversation_id) or []]

    async def add_message(self, conversation_id: str, role: Role, content: str) -> Message | None:
        with self._lock:
            if conversation_id not in self._conversations:
                logger.info("[memory_store:add_message] unknown conversation id=%s", conversation_id)
                return None
            msg = Message(role=role, content=content or "")
            self._messages.setdefault(conversation_id, []).append(msg)
            pending = self._serialize()
        await self._persist(pending)
        logger.info("[memory_store:add_message] id=%s role=%s content_len=%d", conversation_id, role, len(msg.content))
        return msg.model_copy()

    # --- rag tags ---

    async def register_rag_tag(self, tag: str) -> None:
        tag = normalize_tag(tag)
        if not tag:
            return
        with self._lock:
            if tag in self._rag_tags:
                return
            self._rag_tags.add(tag)
            pending = self._serialize()
        await self._persist(pending)

    async def list_rag_tags(self) -> list[str]:
        with self._lock:
            return sorted(self._rag_tags)

    async def clear_all(self) -> ClearResult:
        return ClearResult(cleared=False, keys_deleted=0)

"""
Tests for the conversation store over both backends, plus backend-specific behaviour.
"""

import asyncio
import json
from pathlib import Path

from app.store.conversation_store import ConversationStore
from app.store.memory_backend import MemoryBackend
from fakes import FakeRedis


class TestConversations:
    """Behaviour shared by the memory and Redis backends."""

    def test_bucket_follows_rag_tag(self, any_store: ConversationStore) -> None:
        async def run() -> None:
            plain = await any_store.create_conversation(None, "llama-oss")
            empty_tag = await any_store.create_conversation("", None)
            rag = await any_store.create_conversation("docs", "rag-llama-oss")
            assert plain.bucket == "chat"
            assert empty_tag.bucket == "chat"
            assert rag.bucket == "rag"
            assert plain.title == "New chat"

        asyncio.run(run())

    def test_list_filters_by_bucket_newest_first(self, any_store: ConversationStore) -> None:
        async def run() -> None:
            first = await any_store.create_conversation(None, None)
            await asyncio.sleep(0.002)
            second = await any_store.create_conversation(None, None)
            rag = await any_store.create_conversation("docs", None)

            chats = await any_store.list_conversations("chat")
            assert [c.id for c in chats] == [second.id, first.id]
            assert [c.id for c in await any_store.list_conversations("rag")] == [rag.id]

        asyncio.run(run())

    def test_get_finds_either_bucket(self, any_store: ConversationStore) -> None:
        async def run() -> None:
            rag = await any_store.create_conversation("docs", None)
            found = await any_store.get_conversation(rag.id)
            assert found is not None and found.rag_tag == "docs"
            assert await any_store.get_conversation("missing") is None

        asyncio.run(run())

    def test_update_title_changes_only_title(self, any_store: ConversationStore) -> None:
        async def run() -> None:
            conv = await any_store.create_conversation("docs", "p")
            updated = await any_store.update_conversation_title(conv.id, "Renamed")
            assert updated.title == "Renamed"
            assert updated.rag_tag == "docs"
            assert updated.pipeline_id == "p"
            assert updated.created_at == conv.created_at
            assert await any_store.update_conversation_title("missing", "x") is None

        asyncio.run(run())

    def test_messages_keep_order(self, any_store: ConversationStore) -> None:
        async def run() -> None:
            conv = await any_store.create_conversation(None, None)
            await any_store.add_message(conv.id, "user", "one")
            await any_store.add_message(conv.id, "assistant", "two")
            messages = await any_store.get_messages(conv.id)
            assert [(m.role, m.content) for m in messages] == [("user", "one"), ("assistant", "two")]

        asyncio.run(run())

    def test_add_message_to_missing_conversation(self, any_store: ConversationStore) -> None:
        async def run() -> None:
            assert await any_store.add_message("missing", "user", "hi") is None
            assert await any_store.get_messages("missing") == []
            assert await any_store.get_conversation("missing") is None

        asyncio.run(run())

    def test_rag_tags_are_idempotent_and_sorted(self, any_store: ConversationStore) -> None:
        async def run() -> None:
            for tag in ("zeta", "alpha", "zeta", " alpha ", ""):
                await any_store.register_rag_tag(tag)
            assert await any_store.list_rag_tags() == ["alpha", "zeta"]

        asyncio.run(run())

    def test_delete_is_idempotent(self, any_store: ConversationStore) -> None:
        async def run() -> None:
            conv = await any_store.create_conversation("docs", None)
            await any_store.add_message(conv.id, "user", "hi")
            assert await any_store.delete_conversation(conv.id) is True
            assert await any_store.get_conversation(conv.id) is None
            assert await any_store.get_messages(conv.id) == []
            assert await any_store.list_conversations("rag") == []
            assert await any_store.delete_conversation(conv.id) is False

        asyncio.run(run())


class TestMemorySnapshot:
    def test_state_survives_restart(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"

        async def dump(store: ConversationStore) -> dict:
            state: dict = {"tags": await store.list_rag_tags(), "messages": {}}
            for bucket in ("chat", "rag"):
                conversations = await store.list_conversations(bucket)
                state[bucket] = [c.to_record() for c in conversations]
                for conv in conversations:
                    state["messages"][conv.id] = [m.to_record() for m in await store.get_messages(conv.id)]
            return state

        async def write() -> dict:
            store = ConversationStore(MemoryBackend(path))
            for i, tag in enumerate([None, "docs", None, "handbook", None]):
                conv = await store.create_conversation(tag, f"pipeline-{i}")
                await store.add_message(conv.id, "user", f"question {i}")
                await store.add_message(conv.id, "assistant", f"answer {i}")
                if tag:
                    await store.register_rag_tag(tag)
                await asyncio.sleep(0.002)
            await store.update_conversation_title(conv.id, "Renamed")
            return await dump(store)

        before = asyncio.run(write())
        after = asyncio.run(dump(ConversationStore(MemoryBackend(path))))

        assert len(before["chat"]) == 3
        assert len(before["rag"]) == 2
        assert after == before
        assert after["tags"] == ["docs", "handbook"]
        assert set(json.loads(path.read_text(encoding="utf-8"))) == {"conversations", "messages", "ragTags"}

    def test_older_snapshot_never_overwrites_newer(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        backend = MemoryBackend(path)
        backend._write('{"ragTags": ["new"]}', 2)
        backend._write('{"ragTags": ["old"]}', 1)
        assert json.loads(path.read_text(encoding="utf-8")) == {"ragTags": ["new"]}

    def test_corrupt_snapshot_starts_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        store = ConversationStore(MemoryBackend(path))
        assert asyncio.run(store.list_conversations("chat")) == []

    def test_snapshot_without_bucket_derives_it(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        path.write_text(
            json.dumps({
                "conversations": [{"id": "c1", "title": "Old", "ragTag": "docs", "createdAt": "2024-01-01T00:00:00+00:00"}],
                "messages": {"c1": []},
                "ragTags": ["docs"],
            }),
            encoding="utf-8",
        )
        store = ConversationStore(MemoryBackend(path))
        assert [c.id for c in asyncio.run(store.list_conversations("rag"))] == ["c1"]


class TestRedisLayout:
    def test_keys_use_prefix_and_bucket(self, redis_store: ConversationStore, fake_redis: FakeRedis) -> None:
        async def run() -> str:
            conv = await redis_store.create_conversation("docs", None)
            await redis_store.add_message(conv.id, "user", "hi")
            await redis_store.register_rag_tag("docs")
            return conv.id

        conversation_id = asyncio.run(run())
        assert fake_redis.sets["test-app:rag:conv:ids"] == {conversation_id}
        assert f"test-app:rag:conv:{conversation_id}" in fake_redis.strings
        assert len(fake_redis.lists[f"test-app:rag:msgs:{conversation_id}"]) == 1
        assert fake_redis.sets["test-app:rag:tags"] == {"docs"}
        record = json.loads(fake_redis.strings[f"test-app:rag:conv:{conversation_id}"])
        assert record["ragTag"] == "docs"
        assert "createdAt" in record

    def test_clear_all_deletes_only_prefixed_keys(self, redis_store: ConversationStore, fake_redis: FakeRedis) -> None:
        fake_redis.strings["other-app:keep"] = "1"

        async def run():
            conv = await redis_store.create_conversation(None, None)
            await redis_store.add_message(conv.id, "user", "hi")
            await redis_store.register_rag_tag("docs")
            return await redis_store.clear_all_store()

        result = asyncio.run(run())
        assert result.cleared is True
        # conv ids set, conversation record, message list, rag tags set
        assert result.keys_deleted == 4
        assert fake_redis.all_keys() == ["other-app:keep"]

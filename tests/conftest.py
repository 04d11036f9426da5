"""Shared fixtures: stores over both backends, built on the fakes in fakes.py."""

import pytest

from app.store.conversation_store import ConversationStore
from app.store.memory_backend import MemoryBackend
from fakes import FakeRedis


@pytest.fixture
def memory_store() -> ConversationStore:
    return ConversationStore(MemoryBackend())


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_store(fake_redis: FakeRedis) -> ConversationStore:
    return ConversationStore(MemoryBackend(), redis_factory=lambda: fake_redis, key_prefix="test-app")


@pytest.fixture(params=["memory", "redis"])
def any_store(request, fake_redis: FakeRedis) -> ConversationStore:
    """Both backends must behave identically."""
    if request.param == "memory":
        return ConversationStore(MemoryBackend())
    return ConversationStore(MemoryBackend(), redis_factory=lambda: fake_redis, key_prefix="test-app")

#!/usr/bin/env python3
"""
Wipe every key this app owns in Redis (conversations, messages, RAG tags).

Uses the same REDIS_URL / REDIS_HOST / STORE_KEY_PREFIX settings as the server.
Does nothing when Redis is not configured or not reachable (the in-memory store
lives inside the server process and cannot be cleared from here).

Run from project root:

    python scripts/clear_store.py
    python scripts/clear_store.py --yes
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Project root on path so "app" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from app.core.config import STORE_KEY_PREFIX
from app.store.conversation_store import ConversationStore, redis_factory_from_config
from app.store.memory_backend import MemoryBackend


async def _clear() -> int:
    factory = redis_factory_from_config()
    if factory is None:
        print("Redis not configured (set REDIS_URL or REDIS_HOST). Nothing to clear.")
        return 1
    store = ConversationStore(MemoryBackend(), factory)
    result = await store.clear_all_store()
    if not result.cleared:
        print("Redis unavailable. Nothing cleared.")
        return 1
    print(f"Done. Deleted {result.keys_deleted} keys under {STORE_KEY_PREFIX}:*")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Clear the Redis conversation store.")
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt.",
    )
    args = parser.parse_args()

    if not args.yes:
        answer = input(f"Delete all {STORE_KEY_PREFIX}:* keys? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Aborted.")
            return

    sys.exit(asyncio.run(_clear()))


if __name__ == "__main__":
    main()

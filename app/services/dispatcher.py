"""
Temporal dispatch for document ingestion and chat.

Flow: chat turn -> dispatch_chat() -> get_client() -> build_chat_command()
      -> resolve_chat_address() -> client.start_workflow() -> handle.result() under a deadline.
Flow: upload -> dispatch_ingestion() -> get_client() -> build_upload_command()
      -> resolve_ingestion_address() -> client.start_workflow() (no wait).

The Temporal client is connected lazily, at most once, and cached on the
dispatcher. A failed connect is logged and retried on the next call.
Neither dispatch method raises: failures come back in the result object.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from temporalio.client import Client
from temporalio.common import SearchAttributeKey, SearchAttributePair, TypedSearchAttributes

from app.core.config import (
    TEMPORAL_ADDRESS,
    TEMPORAL_CHAT_RESULT_TIMEOUT_MS,
    TEMPORAL_NAMESPACE,
    USE_STUB_LLM,
)
from app.core.errors import ServiceUnavailableError, WorkflowTimeoutError
from app.services.addressing import (
    AddressingConfig,
    DispatchAddress,
    resolve_chat_address,
    resolve_ingestion_address,
)
from app.services.commands import CommandBuilder, CommandOptions, now_ms
from app.services.result_extractor import extract_reply
from app.services.templates import TemplateRenderer

logger = logging.getLogger(__name__)

NOT_CONFIGURED_ERROR = "Temporal not configured"
STUB_PREVIEW_CHARS = 100

ClientFactory = Callable[[], Awaitable[Any]]


@dataclass
class IngestionResult:
    started: bool
    workflow_id: str | None = None
    run_id: str | None = None
    error: str | None = None


@dataclass
class ChatResult:
    success: bool
    reply: str | None = None
    error: str | None = None
    timed_out: bool = False


def stub_reply(messages: list[dict[str, Any]]) -> str:
    """Deterministic canned reply echoing the last user message (truncated)."""
    last_user = next((m for m in reversed(messages or []) if m.get("role") == "user"), None)
    question = str((last_user or {}).get("content") or "")
    return (
        f'[Stub LLM] You said: "{question[:STUB_PREVIEW_CHARS]}". '
        "Configure Temporal and templates for real responses."
    )


def typed_search_attributes(attrs: dict[str, list[str]]) -> TypedSearchAttributes:
    """Keyword-list search attributes in the SDK's typed form."""
    return TypedSearchAttributes(
        [SearchAttributePair(SearchAttributeKey.for_keyword_list(name), values) for name, values in attrs.items()]
    )


class WorkflowDispatcher:
    """Submits ExecutionCommands to Temporal at their resolved address."""

    def __init__(
        self,
        builder: CommandBuilder,
        *,
        addressing: AddressingConfig | None = None,
        address: str = TEMPORAL_ADDRESS,
        namespace: str = TEMPORAL_NAMESPACE,
        result_timeout_ms: int = TEMPORAL_CHAT_RESULT_TIMEOUT_MS,
        use_stub: bool = USE_STUB_LLM,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.builder = builder
        self.addressing = addressing or AddressingConfig()
        self.address = address
        self.namespace = namespace
        self.result_timeout_ms = result_timeout_ms
        self.use_stub = use_stub
        self._client_factory = client_factory or self._connect
        self._client: Any | None = None
        self._connect_lock = asyncio.Lock()

    @classmethod
    def from_config(cls) -> "WorkflowDispatcher":
        return cls(CommandBuilder(TemplateRenderer.from_config()))

    async def _connect(self) -> Client:
        return await Client.connect(self.address, namespace=self.namespace)

    async def get_client(self) -> Any | None:
        """Cached Temporal client, or None if it cannot be reached right now."""
        if self._client is not None:
            return self._client
        async with self._connect_lock:
            if self._client is not None:
                return self._client
            try:
                self._client = await self._client_factory()
            except Exception as e:
                logger.warning("[dispatcher] Temporal client not available at %s: %s", self.address, e)
                return None
            logger.info("[dispatcher] Temporal client connected address=%s namespace=%s", self.address, self.namespace)
            return self._client

    async def _require_client(self) -> Any:
        client = await self.get_client()
        if client is None:
            raise ServiceUnavailableError(NOT_CONFIGURED_ERROR)
        return client

    async def _start(self, client: Any, address: DispatchAddress, command: dict[str, Any]) -> Any:
        kwargs: dict[str, Any] = {"id": address.workflow_id, "task_queue": address.task_queue}
        if address.search_attributes:
            kwargs["search_attributes"] = typed_search_attributes(address.search_attributes)
        return await client.start_workflow(address.workflow_name, args=[command], **kwargs)

    async def _await_result(self, handle: Any, address: DispatchAddress) -> Any:
        """
        Wait for the workflow result, bounded by result_timeout_ms.

        On timeout only the local wait is abandoned; the workflow keeps running.
        """
        try:
            return await asyncio.wait_for(handle.result(), timeout=self.result_timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            raise WorkflowTimeoutError(self.result_timeout_ms, address.task_queue, address.workflow_name) from e

    async def dispatch_ingestion(
        self,
        rag_tag: str | None,
        file_names: list[str],
        options: CommandOptions | None = None,
    ) -> IngestionResult:
        """Start the ingestion workflow without waiting for it."""
        try:
            client = await self._require_client()
        except ServiceUnavailableError as e:
            return IngestionResult(started=False, workflow_id=None, error=e.message)

        timestamp = now_ms()
        command = self.builder.build_upload_command(rag_tag, file_names, options, timestamp=timestamp)
        address = resolve_ingestion_address(rag_tag, command, timestamp, self.addressing)
        logger.info(
            "[dispatcher:ingestion] IN  workflow_name=%s workflow_id=%s task_queue=%s search_attributes=%s payload=%s",
            address.workflow_name, address.workflow_id, address.task_queue, address.search_attributes,
            json.dumps(command, ensure_ascii=False),
        )
        try:
            handle = await self._start(client, address, command)
        except Exception as e:
            logger.error("[dispatcher:ingestion] start failed workflow_id=%s: %s", address.workflow_id, e)
            return IngestionResult(started=False, workflow_id=address.workflow_id, error=str(e))

        run_id = getattr(handle, "first_execution_run_id", None) or getattr(handle, "result_run_id", None)
        logger.info("[dispatcher:ingestion] OUT workflow_id=%s run_id=%s", handle.id, run_id)
        return IngestionResult(started=True, workflow_id=handle.id, run_id=run_id)

    async def dispatch_chat(
        self,
        pipeline_id: str | None,
        rag_tag: str | None,
        messages: list[dict[str, Any]],
        options: CommandOptions | None = None,
    ) -> ChatResult:
        """Start the chat workflow and wait (bounded) for its reply."""
        try:
            client = await self._require_client()
        except ServiceUnavailableError as e:
            if self.use_stub:
                logger.info("[dispatcher:chat] Temporal unavailable; returning stub reply")
                return ChatResult(success=True, reply=stub_reply(messages))
            return ChatResult(
                success=False,
                error=f"{e.message}. Set USE_STUB_LLM=1 for stub replies.",
            )

        timestamp = now_ms()
        command = self.builder.build_chat_command(pipeline_id, rag_tag, messages, options, timestamp=timestamp)
        address = resolve_chat_address(pipeline_id, command, timestamp, self.addressing)
        logger.info(
            "[dispatcher:chat] IN  workflow_name=%s workflow_id=%s task_queue=%s pipeline_id=%s rag_tag=%s "
            "search_attributes=%s payload=%s",
            address.workflow_name, address.workflow_id, address.task_queue, pipeline_id, rag_tag,
            address.search_attributes, json.dumps(command, ensure_ascii=False),
        )
        try:
            handle = await self._start(client, address, command)
            result = await self._await_result(handle, address)
        except WorkflowTimeoutError as e:
            logger.error("[dispatcher:chat] timeout workflow_id=%s: %s", address.workflow_id, e)
            return ChatResult(success=False, error=str(e), timed_out=True)
        except Exception as e:
            logger.error("[dispatcher:chat] failed workflow_id=%s: %s", address.workflow_id, e)
            return ChatResult(success=False, error=str(e))

        logger.info(
            "[dispatcher:chat] OUT workflow_id=%s result=%s",
            address.workflow_id, json.dumps(result, ensure_ascii=False, default=str),
        )
        return ChatResult(success=True, reply=extract_reply(result))

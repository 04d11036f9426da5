"""
Build the ExecutionCommand payload that Temporal workers expect:

    { tenantId, userId, operation, input, pipelineName, metadata [, debug, debugID ] }

Chat templates can use {{pipelineName}}, {{ragTag}}, {{messages}}, {{timestamp}};
upload.tpl can use {{ragTag}}, {{fileNames}}, {{timestamp}}.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, TypedDict

from app.core.config import DEFAULT_CHAT_PIPELINE, TEMPORAL_TENANT_ID, TEMPORAL_USER_ID
from app.services.templates import KIND_CHAT, KIND_UPLOAD, TemplateRenderer, sanitize_identifier

logger = logging.getLogger(__name__)

CHAT_OPERATION = "question-answer"
INGESTION_OPERATION = "documentIngestion"


class ExecutionCommand(TypedDict, total=False):
    tenantId: str
    userId: str
    operation: str
    input: Any
    pipelineName: str
    metadata: Any
    debug: bool
    debugID: str


@dataclass
class CommandOptions:
    """Per-call options. Debug fields are added only when both are set."""

    debug: bool = False
    debug_id: str | None = None


def now_ms() -> int:
    return int(time.time() * 1000)


def _apply_debug(command: dict[str, Any], options: CommandOptions | None) -> dict[str, Any]:
    if options and options.debug and options.debug_id:
        command["debug"] = True
        command["debugID"] = options.debug_id
    return command


def _pick(raw: dict[str, Any], *keys: str, default: Any) -> Any:
    """First non-None raw[key], else default."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


class CommandBuilder:
    """Turns a conversation turn or an upload into an ExecutionCommand, template first, defaults second."""

    def __init__(
        self,
        renderer: TemplateRenderer,
        *,
        tenant_id: str = TEMPORAL_TENANT_ID,
        user_id: str = TEMPORAL_USER_ID,
        default_pipeline: str = DEFAULT_CHAT_PIPELINE,
    ) -> None:
        self.renderer = renderer
        self.tenant_id = tenant_id or "default"
        self.user_id = user_id or "default"
        self.default_pipeline = default_pipeline

    def build_chat_command(
        self,
        pipeline_id: str | None,
        rag_tag: str | None,
        messages: list[dict[str, Any]] | None,
        options: CommandOptions | None = None,
        timestamp: int | None = None,
    ) -> ExecutionCommand:
        """
        Render <pipeline>_chat.tpl and overlay it field-by-field on the computed defaults.

        pipelineName falls back raw.pipelineName -> raw.pipelineId -> pipeline_id -> "llama-oss".
        """
        timestamp = timestamp if timestamp is not None else now_ms()
        messages = messages or []
        pipeline_name = pipeline_id or self.default_pipeline
        variables = {
            "pipelineName": pipeline_name,
            "ragTag": rag_tag or "",
            "messages": json.dumps(messages, ensure_ascii=False),
            "timestamp": timestamp,
        }
        rendered = self.renderer.render(pipeline_id, KIND_CHAT, variables)
        raw = rendered if isinstance(rendered, dict) else {}

        command: dict[str, Any] = {
            "tenantId": _pick(raw, "tenantId", default=self.tenant_id),
            "userId": _pick(raw, "userId", default=self.user_id),
            "operation": _pick(raw, "operation", default=CHAT_OPERATION),
            "input": _pick(raw, "input", default={"messages": messages}),
            "pipelineName": _pick(raw, "pipelineName", "pipelineId", default=pipeline_name),
            "metadata": _pick(raw, "metadata", default={"ragTag": rag_tag or None, "timestamp": timestamp}),
        }
        return _apply_debug(command, options)

    def build_upload_command(
        self,
        rag_tag: str | None,
        file_names: list[str] | None,
        options: CommandOptions | None = None,
        timestamp: int | None = None,
    ) -> ExecutionCommand:
        """Render upload.tpl as-is; without a usable template, build the default ingestion command."""
        timestamp = timestamp if timestamp is not None else now_ms()
        file_names = list(file_names or [])
        variables = {
            "ragTag": rag_tag or "",
            "fileNames": json.dumps(file_names, ensure_ascii=False),
            "timestamp": timestamp,
        }
        rendered = self.renderer.render(None, KIND_UPLOAD, variables)
        if isinstance(rendered, dict):
            command = rendered
        else:
            command = self._default_upload_command(rag_tag, file_names, timestamp)
        return _apply_debug(command, options)

    def _default_upload_command(self, rag_tag: str | None, file_names: list[str], timestamp: int) -> dict[str, Any]:
        tag = rag_tag or None
        return {
            "ragTag": tag,
            "fileNames": file_names,
            "timestamp": timestamp,
            "tenantId": self.tenant_id,
            "userId": self.user_id,
            "operation": INGESTION_OPERATION,
            "input": {"ragTag": tag, "fileNames": file_names},
            "pipelineName": f"doc-{sanitize_identifier(rag_tag)}",
            "metadata": {"ragTag": tag, "timestamp": timestamp},
        }

"""
Where a command goes: workflow name, workflow id, task queue, and search attributes.

All three strings are templates rendered with the same {{name}} rule as payload
templates, against sanitized runtime variables (pipelineId or ragTag, timestamp).
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from app.core.config import (
    DEFAULT_TASK_QUEUE,
    DEFAULT_WORKFLOW_NAME,
    LEGACY_WORKFLOW_NAMES,
    TEMPORAL_CHAT_WORKFLOW,
    TEMPORAL_DOC_TASK_QUEUE,
    TEMPORAL_DOC_WORKFLOW,
    TEMPORAL_DOC_WORKFLOW_ID_TEMPLATE,
    TEMPORAL_TASK_QUEUE,
    TEMPORAL_TENANT_ID,
    TEMPORAL_USER_ID,
    TEMPORAL_WORKFLOW_CLASS,
    TEMPORAL_WORKFLOW_ID_TEMPLATE,
)
from app.services.templates import fill_template, sanitize_identifier

logger = logging.getLogger(__name__)

SEARCH_ATTRIBUTE_KEYS = ("pipelineName", "operation", "tenantId", "userId")

# Search-attribute operation labels (the payload's own operation wins when present)
CHAT_ATTRIBUTE_OPERATION = "chat"
INGESTION_ATTRIBUTE_OPERATION = "documentIngestion"


@dataclass(frozen=True)
class DispatchAddress:
    workflow_name: str
    workflow_id: str
    task_queue: str
    search_attributes: dict[str, list[str]] | None = None


@dataclass(frozen=True)
class AddressingConfig:
    """Name/id/queue templates for both purposes, plus identity defaults for attributes."""

    chat_workflow: str = TEMPORAL_CHAT_WORKFLOW
    doc_workflow: str = TEMPORAL_DOC_WORKFLOW
    chat_id_template: str = TEMPORAL_WORKFLOW_ID_TEMPLATE
    doc_id_template: str = TEMPORAL_DOC_WORKFLOW_ID_TEMPLATE
    task_queue: str = TEMPORAL_TASK_QUEUE
    chat_task_queue: str = TEMPORAL_WORKFLOW_CLASS
    doc_task_queue: str = TEMPORAL_DOC_TASK_QUEUE
    tenant_id: str = TEMPORAL_TENANT_ID
    user_id: str = TEMPORAL_USER_ID

    def chat_queue_template(self) -> str:
        return self.chat_task_queue or self.task_queue or DEFAULT_TASK_QUEUE

    def doc_queue_template(self) -> str:
        return self.doc_task_queue or self.task_queue or DEFAULT_TASK_QUEUE


def normalize_workflow_name(raw: str | None) -> str:
    """Empty or legacy workflow names map to the canonical CoreWorkflow."""
    name = (raw or "").strip()
    if not name or name in LEGACY_WORKFLOW_NAMES:
        return DEFAULT_WORKFLOW_NAME
    return name


def repair_placeholders(text: str, variables: dict[str, Any]) -> str:
    """
    Replace leftover {{name}} or {{name} tokens (a template typo missing one brace)
    with the variable's value so a malformed id template still yields a usable id.
    """
    for name, value in variables.items():
        replacement = "" if value is None else str(value)
        text = re.sub(r"\{\{" + re.escape(name) + r"\}\}?", lambda _m: replacement, text)
    return text


def build_search_attributes(
    *,
    pipeline_name: Any = None,
    operation: Any = None,
    tenant_id: Any = None,
    user_id: Any = None,
) -> dict[str, list[str]] | None:
    """
    Keyword search attributes for the Temporal UI. Values are one-element lists;
    empty values are omitted entirely. None when nothing is left.
    """
    values = dict(zip(SEARCH_ATTRIBUTE_KEYS, (pipeline_name, operation, tenant_id, user_id)))
    attrs: dict[str, list[str]] = {}
    for key, value in values.items():
        if value is None:
            continue
        text = str(value).strip()
        if text:
            attrs[key] = [text]
    return attrs or None


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_chat_address(
    pipeline_id: str | None,
    command: dict[str, Any],
    timestamp: int,
    config: AddressingConfig,
) -> DispatchAddress:
    variables = {"pipelineId": sanitize_identifier(pipeline_id), "timestamp": timestamp}
    workflow_name = fill_template(normalize_workflow_name(config.chat_workflow), variables)
    workflow_id = repair_placeholders(fill_template(config.chat_id_template, variables), variables)
    task_queue = fill_template(config.chat_queue_template(), variables)
    attributes = build_search_attributes(
        pipeline_name=_first_present(command.get("pipelineName"), pipeline_id, "default"),
        operation=_first_present(command.get("operation"), CHAT_ATTRIBUTE_OPERATION),
        tenant_id=_first_present(command.get("tenantId"), config.tenant_id, "default"),
        user_id=_first_present(command.get("userId"), config.user_id, "default"),
    )
    return DispatchAddress(workflow_name, workflow_id, task_queue, attributes)


def resolve_ingestion_address(
    rag_tag: str | None,
    command: dict[str, Any],
    timestamp: int,
    config: AddressingConfig,
) -> DispatchAddress:
    safe_tag = sanitize_identifier(rag_tag)
    variables = {"ragTag": safe_tag, "timestamp": timestamp}
    workflow_name = fill_template(normalize_workflow_name(config.doc_workflow), variables)
    workflow_id = repair_placeholders(fill_template(config.doc_id_template, variables), variables)
    task_queue = fill_template(config.doc_queue_template(), variables)
    attributes = build_search_attributes(
        pipeline_name=_first_present(command.get("pipelineName"), f"doc-{safe_tag}"),
        operation=_first_present(command.get("operation"), INGESTION_ATTRIBUTE_OPERATION),
        tenant_id=_first_present(command.get("tenantId"), config.tenant_id, "default"),
        user_id=_first_present(command.get("userId"), config.user_id, "default"),
    )
    return DispatchAddress(workflow_name, workflow_id, task_queue, attributes)

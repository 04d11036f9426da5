"""
Unit tests for dispatch addressing: workflow name/id/queue and search attributes.
"""

from app.services.addressing import (
    AddressingConfig,
    build_search_attributes,
    normalize_workflow_name,
    repair_placeholders,
    resolve_chat_address,
    resolve_ingestion_address,
)

BASE = AddressingConfig(
    chat_workflow="CoreWorkflow",
    doc_workflow="CoreWorkflow",
    chat_id_template="chat-{{pipelineId}}-{{timestamp}}",
    doc_id_template="doc-ingest-{{ragTag}}-{{timestamp}}",
    task_queue="",
    chat_task_queue="",
    doc_task_queue="",
    tenant_id="default",
    user_id="default",
)


def _config(**overrides) -> AddressingConfig:
    return AddressingConfig(**{**BASE.__dict__, **overrides})


class TestWorkflowName:
    def test_legacy_aliases_normalize(self) -> None:
        assert normalize_workflow_name("chatPipelineWorkflow") == "CoreWorkflow"
        assert normalize_workflow_name("documentIngestionWorkflow") == "CoreWorkflow"
        assert normalize_workflow_name("") == "CoreWorkflow"
        assert normalize_workflow_name("MyWorkflow") == "MyWorkflow"

    def test_legacy_chat_name_is_resolved_to_canonical(self) -> None:
        address = resolve_chat_address("p", {}, 1, _config(chat_workflow="chatPipelineWorkflow"))
        assert address.workflow_name == "CoreWorkflow"


class TestChatAddress:
    def test_defaults(self) -> None:
        address = resolve_chat_address("llama-oss", {"pipelineName": "llama-oss", "operation": "question-answer"}, 123, BASE)
        assert address.workflow_name == "CoreWorkflow"
        assert address.workflow_id == "chat-llama-oss-123"
        assert address.task_queue == "core-task-queue"

    def test_pipeline_id_is_sanitized_in_id(self) -> None:
        assert resolve_chat_address("chat-llama3.2", {}, 1, BASE).workflow_id == "chat-chat-llama3_2-1"
        assert resolve_chat_address(None, {}, 1, BASE).workflow_id == "chat-default-1"

    def test_queue_fallback_order(self) -> None:
        assert resolve_chat_address("p", {}, 1, _config(task_queue="global")).task_queue == "global"
        assert resolve_chat_address("p", {}, 1, _config(task_queue="global", chat_task_queue="chat-q")).task_queue == "chat-q"

    def test_queue_is_a_template(self) -> None:
        assert resolve_chat_address("p1", {}, 1, _config(chat_task_queue="q-{{pipelineId}}")).task_queue == "q-p1"

    def test_attributes_prefer_command_values(self) -> None:
        address = resolve_chat_address("p", {"pipelineName": "named", "operation": "qa", "tenantId": "t"}, 1, BASE)
        assert address.search_attributes == {
            "pipelineName": ["named"],
            "operation": ["qa"],
            "tenantId": ["t"],
            "userId": ["default"],
        }

    def test_attribute_defaults(self) -> None:
        attrs = resolve_chat_address("p", {}, 1, BASE).search_attributes
        assert attrs["pipelineName"] == ["p"]
        assert attrs["operation"] == ["chat"]


class TestIngestionAddress:
    def test_tag_is_sanitized_in_id_and_pipeline_attribute(self) -> None:
        address = resolve_ingestion_address("a b/c", {}, 99, BASE)
        assert address.workflow_id == "doc-ingest-a_b_c-99"
        assert address.search_attributes["pipelineName"] == ["doc-a_b_c"]
        assert address.search_attributes["operation"] == ["documentIngestion"]

    def test_malformed_id_template_is_repaired(self) -> None:
        address = resolve_ingestion_address("docs", {}, 5, _config(doc_id_template="doc-{{ragTag}-{{timestamp}}"))
        assert address.workflow_id == "doc-docs-5"
        assert "{" not in address.workflow_id

    def test_doc_queue_fallback_order(self) -> None:
        assert resolve_ingestion_address("t", {}, 1, BASE).task_queue == "core-task-queue"
        assert resolve_ingestion_address("t", {}, 1, _config(task_queue="g")).task_queue == "g"
        assert resolve_ingestion_address("t", {}, 1, _config(task_queue="g", doc_task_queue="d")).task_queue == "d"

    def test_legacy_doc_name_is_resolved_to_canonical(self) -> None:
        address = resolve_ingestion_address("t", {}, 1, _config(doc_workflow="documentIngestionWorkflow"))
        assert address.workflow_name == "CoreWorkflow"


class TestRepairPlaceholders:
    def test_repairs_missing_brace_and_leaves_other_text(self) -> None:
        assert repair_placeholders("x-{{ragTag}-y", {"ragTag": "t"}) == "x-t-y"
        assert repair_placeholders("x-{{ragTag}}-y", {"ragTag": "t"}) == "x-t-y"
        assert repair_placeholders("plain", {"ragTag": "t"}) == "plain"


class TestSearchAttributes:
    def test_empty_values_are_omitted(self) -> None:
        attrs = build_search_attributes(pipeline_name=" p ", operation="", tenant_id=None, user_id="u")
        assert attrs == {"pipelineName": ["p"], "userId": ["u"]}

    def test_all_empty_returns_none(self) -> None:
        assert build_search_attributes(pipeline_name="  ", operation=None) is None

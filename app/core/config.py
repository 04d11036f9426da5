"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
Components take these as keyword defaults so tests can pass their own values.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Project root (where templates-example/ and relative STORE_FILE paths resolve)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


# Temporal (workflow orchestration backend)
TEMPORAL_ADDRESS: str = _env("TEMPORAL_ADDRESS", "localhost:7233") or "localhost:7233"
TEMPORAL_NAMESPACE: str = _env("TEMPORAL_NAMESPACE", "default") or "default"
DEFAULT_TASK_QUEUE: str = "core-task-queue"
TEMPORAL_TASK_QUEUE: str = _env("TEMPORAL_TASK_QUEUE")
# Chat-specific queue override (historical name: "workflow class")
TEMPORAL_WORKFLOW_CLASS: str = _env("TEMPORAL_WORKFLOW_CLASS")
TEMPORAL_DOC_TASK_QUEUE: str = _env("TEMPORAL_DOC_TASK_QUEUE")

# Workflow name / id templates. {{pipelineId}}, {{ragTag}}, {{timestamp}} are filled at dispatch.
DEFAULT_WORKFLOW_NAME: str = "CoreWorkflow"
LEGACY_WORKFLOW_NAMES: frozenset[str] = frozenset({"chatPipelineWorkflow", "documentIngestionWorkflow"})
TEMPORAL_CHAT_WORKFLOW: str = _env("TEMPORAL_CHAT_WORKFLOW", DEFAULT_WORKFLOW_NAME) or DEFAULT_WORKFLOW_NAME
TEMPORAL_DOC_WORKFLOW: str = _env("TEMPORAL_DOC_WORKFLOW", DEFAULT_WORKFLOW_NAME) or DEFAULT_WORKFLOW_NAME
TEMPORAL_WORKFLOW_ID_TEMPLATE: str = (
    _env("TEMPORAL_WORKFLOW_ID_TEMPLATE") or "chat-{{pipelineId}}-{{timestamp}}"
)
TEMPORAL_DOC_WORKFLOW_ID_TEMPLATE: str = (
    _env("TEMPORAL_DOC_WORKFLOW_ID_TEMPLATE") or "doc-ingest-{{ragTag}}-{{timestamp}}"
)

# How long a chat turn waits for the workflow result (milliseconds)
TEMPORAL_CHAT_RESULT_TIMEOUT_MS: int = _env_int("TEMPORAL_CHAT_RESULT_TIMEOUT_MS", 120_000)

# ExecutionCommand identity defaults
TEMPORAL_TENANT_ID: str = _env("TEMPORAL_TENANT_ID") or "default"
TEMPORAL_USER_ID: str = _env("TEMPORAL_USER_ID") or "default"

# Stub replies when Temporal is unreachable (USE_STUB_LLM=1)
USE_STUB_LLM: bool = _env("USE_STUB_LLM") == "1"

# Payload templates: <pipeline>_chat.tpl and upload.tpl
TEMPLATES_DIR: str = _env("TEMPLATES_DIR")
TEMPLATES_FALLBACK_DIR: Path = PROJECT_ROOT / "templates-example"
DEFAULT_CHAT_PIPELINE: str = "llama-oss"

# Redis (durable store). Enabled when REDIS_URL or REDIS_HOST is set.
REDIS_URL: str = _env("REDIS_URL")
REDIS_HOST: str = _env("REDIS_HOST")
REDIS_PORT: int = _env_int("REDIS_PORT", 6379)
REDIS_PASSWORD: str | None = _env("REDIS_PASSWORD") or None
STORE_KEY_PREFIX: str = _env("STORE_KEY_PREFIX") or "chat-gateway"

# Local store snapshot file (absolute or relative to project root); empty disables snapshots
STORE_FILE: str = _env("STORE_FILE")

# Pipeline catalog overrides: "id:Label,id2:Label2"
PIPELINE_OPTIONS: str = _env("PIPELINE_OPTIONS")
PIPELINE_OPTIONS_RAG: str = _env("PIPELINE_OPTIONS_RAG")

# Conversations
DEFAULT_TITLE: str = "New chat"
TITLE_MAX_CHARS: int = 50

# Uploads
MAX_UPLOAD_FILES: int = 20


def resolve_project_path(raw: str) -> Path:
    """Absolute paths pass through; relative ones are anchored at the project root."""
    path = Path(raw).expanduser()
    return path if path.is_absolute() else PROJECT_ROOT / path

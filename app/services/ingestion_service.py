"""
Document ingestion: register the RAG tag and hand the upload to Temporal.

Responsibility: Validate the upload (tag, file names), record the tag, and start
the ingestion workflow without waiting for it. Called by the API layer; no HTTP
or FastAPI here. File bytes are not persisted by this service.
"""

import logging
import re
from pathlib import Path

from app.core.config import MAX_UPLOAD_FILES
from app.services.dispatcher import IngestionResult, WorkflowDispatcher
from app.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)


class InvalidUploadError(Exception):
    """Raised when an upload has no RAG tag, no files, or too many files."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def _sanitize_filename(filename: str) -> str:
    """Sanitize filename to prevent path traversal (../). Returns safe basename."""
    if not filename or not filename.strip():
        return "file"
    base = Path(filename.replace("\\", "/")).name
    safe = base.replace("..", "")
    safe = re.sub(r"[\x00-\x1f]", "_", safe)
    return safe.strip() or "file"


def validate_upload(rag_tag: str | None, file_names: list[str]) -> tuple[str, list[str]]:
    """
    Normalize and check an upload request.

    Returns:
        (stripped tag, sanitized file names).

    Raises:
        InvalidUploadError: If the tag is empty, there are no files, or more than MAX_UPLOAD_FILES.
    """
    tag = str(rag_tag or "").strip()
    if not tag:
        raise InvalidUploadError("ragTag (or tag) is required")
    if not file_names:
        raise InvalidUploadError("At least one file is required")
    if len(file_names) > MAX_UPLOAD_FILES:
        raise InvalidUploadError(f"At most {MAX_UPLOAD_FILES} files per upload")
    return tag, [_sanitize_filename(name) for name in file_names]


async def start_ingestion(
    store: ConversationStore,
    dispatcher: WorkflowDispatcher,
    rag_tag: str | None,
    file_names: list[str],
) -> IngestionResult:
    """Register the tag, then fire-and-forget the ingestion workflow."""
    tag, names = validate_upload(rag_tag, file_names)
    logger.info("[ingestion:start] IN  rag_tag=%s files=%s", tag, names)
    await store.register_rag_tag(tag)
    result = await dispatcher.dispatch_ingestion(tag, names)
    logger.info(
        "[ingestion:start] OUT started=%s workflow_id=%s error=%s",
        result.started, result.workflow_id, result.error,
    )
    return result

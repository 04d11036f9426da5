"""
API handlers: read request data (e.g. UploadFile), call services, map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Marshalling and exception-to-HTTP mapping.
Lives in the API layer so services stay free of FastAPI/HTTP types.
"""

import logging

from fastapi import HTTPException, Request, UploadFile

from app.core.errors import ConversationNotFoundError
from app.schemas.chat import ChatRequest, ChatResponse
from app.schemas.upload import UploadResponse
from app.services.chat_service import handle_chat_turn
from app.services.commands import CommandOptions
from app.services.dispatcher import WorkflowDispatcher
from app.services.ingestion_service import InvalidUploadError, start_ingestion, validate_upload
from app.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)


def get_store(request: Request) -> ConversationStore:
    return request.app.state.store


def get_dispatcher(request: Request) -> WorkflowDispatcher:
    return request.app.state.dispatcher


async def handle_chat(store: ConversationStore, dispatcher: WorkflowDispatcher, body: ChatRequest) -> ChatResponse:
    """Run one chat turn; 400 on blank content, 404 on unknown conversation."""
    options = CommandOptions(debug=body.debug, debug_id=body.debug_id)
    try:
        turn = await handle_chat_turn(store, dispatcher, body.conversation_id, body.content, options)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail="Conversation not found") from e
    return ChatResponse(message=turn.message, pipeline_id=turn.pipeline_id or "llm", rag_tag=turn.rag_tag)


async def handle_upload(
    store: ConversationStore,
    dispatcher: WorkflowDispatcher,
    rag_tag: str,
    files: list[UploadFile],
) -> UploadResponse:
    """
    Hand the uploaded file names to the ingestion workflow under rag_tag.
    400 on invalid input, 502 when the workflow could not be started.
    """
    file_names = [upload.filename or "file" for upload in files or []]
    try:
        tag, names = validate_upload(rag_tag, file_names)
        result = await start_ingestion(store, dispatcher, tag, names)
    except InvalidUploadError as e:
        raise HTTPException(status_code=400, detail=e.message) from e

    if not result.started:
        raise HTTPException(
            status_code=502,
            detail={
                "error": "Document ingestion could not be started.",
                "detail": result.error,
                "hint": "Ensure Temporal server is running and CoreWorkflow is registered.",
            },
        )

    return UploadResponse(
        rag_tag=tag,
        file_names=names,
        workflow_id=result.workflow_id,
        run_id=result.run_id,
    )

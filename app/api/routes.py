"""
API route aggregator: register endpoints; no logic, only delegation to handlers and the store.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile

from app.api.handlers import get_dispatcher, get_store, handle_chat, handle_upload
from app.schemas.chat import ChatRequest, ChatResponse, PipelinesResponse
from app.schemas.conversation import (
    ClearResult,
    Conversation,
    ConversationListResponse,
    CreateConversationRequest,
    MessageListResponse,
    UpdateConversationRequest,
)
from app.schemas.upload import RagTagsResponse, UploadResponse
from app.services.dispatcher import WorkflowDispatcher
from app.services.pipelines import get_pipelines, get_pipelines_rag
from app.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api")


# --- System ---

@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Conversations ---

@router.get(
    "/conversations",
    response_model=ConversationListResponse,
    tags=["conversations"],
    summary="List conversations in one bucket (newest first)",
)
async def list_conversations(scope: str = "chat", store: ConversationStore = Depends(get_store)):
    bucket = "rag" if scope == "rag" else "chat"
    return ConversationListResponse(conversations=await store.list_conversations(bucket))


@router.get("/conversations/{conversation_id}", response_model=Conversation, tags=["conversations"])
async def get_conversation(conversation_id: str, store: ConversationStore = Depends(get_store)):
    conv = await store.get_conversation(conversation_id)
    if conv is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conv


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse, tags=["conversations"])
async def get_messages(conversation_id: str, store: ConversationStore = Depends(get_store)):
    return MessageListResponse(messages=await store.get_messages(conversation_id))


@router.post(
    "/conversations",
    response_model=Conversation,
    status_code=201,
    tags=["conversations"],
    summary="Create a conversation",
    description="Creates the conversation in the store only; no workflow starts until the first message.",
)
async def create_conversation(body: CreateConversationRequest | None = None, store: ConversationStore = Depends(get_store)):
    body = body or CreateConversationRequest()
    return await store.create_conversation(body.rag_tag, body.pipeline_id)


@router.patch("/conversations/{conversation_id}", response_model=Conversation, tags=["conversations"])
async def update_conversation(
    conversation_id: str,
    body: UpdateConversationRequest,
    store: ConversationStore = Depends(get_store),
):
    conv = await store.update_conversation_title(conversation_id, body.title)
    if conv is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conv


@router.delete("/conversations/{conversation_id}", status_code=204, tags=["conversations"])
async def delete_conversation(conversation_id: str, store: ConversationStore = Depends(get_store)):
    if not await store.delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return Response(status_code=204)


# --- Chat ---

@router.post(
    "/chat",
    response_model=ChatResponse,
    tags=["chat"],
    summary="Send a message and wait for the pipeline reply",
    description="Stores the user message, runs the conversation's pipeline on Temporal, stores and returns the reply. "
    "Pipeline failures come back as an assistant message containing the error.",
)
async def post_chat(
    body: ChatRequest,
    store: ConversationStore = Depends(get_store),
    dispatcher: WorkflowDispatcher = Depends(get_dispatcher),
):
    logger.info("[api:post_chat] IN  conversation_id=%s content_len=%d", body.conversation_id, len(body.content))
    return await handle_chat(store, dispatcher, body)


# --- Documents ---

@router.get("/documents/rag-tags", response_model=RagTagsResponse, tags=["documents"], summary="List RAG tags used for uploads")
async def list_rag_tags(store: ConversationStore = Depends(get_store)):
    return RagTagsResponse(rag_tags=await store.list_rag_tags())


@router.post(
    "/documents/upload",
    response_model=UploadResponse,
    status_code=202,
    tags=["documents"],
    summary="Upload documents for ingestion under a RAG tag",
    description="Starts the ingestion workflow and returns immediately. 400 on missing tag/files, 502 if Temporal rejects the start.",
)
async def upload_documents(
    files: list[UploadFile] = File(default=[], description="One or more documents."),
    rag_tag: str = Form(default="", alias="ragTag"),
    tag: str = Form(default=""),
    store: ConversationStore = Depends(get_store),
    dispatcher: WorkflowDispatcher = Depends(get_dispatcher),
):
    return await handle_upload(store, dispatcher, rag_tag or tag, files)


# --- Pipelines ---

@router.get("/pipelines", response_model=PipelinesResponse, tags=["pipelines"])
def list_pipelines():
    return PipelinesResponse(
        pipelines=[p.model_dump() for p in get_pipelines()],
        pipelines_rag=[p.model_dump() for p in get_pipelines_rag()],
    )


# --- Store ---

@router.post("/store/clear", response_model=ClearResult, tags=["store"], summary="Wipe every key this app owns in Redis")
async def clear_store(store: ConversationStore = Depends(get_store)):
    await store.backend()
    if not store.is_remote:
        if store.redis_enabled:
            raise HTTPException(status_code=500, detail="Clear failed or Redis unavailable.")
        raise HTTPException(status_code=400, detail="Redis not in use. Clear all only applies to Redis store.")
    try:
        result = await store.clear_all_store()
    except Exception as e:
        logger.exception("Store clear failed")
        raise HTTPException(status_code=500, detail=str(e)) from e
    if not result.cleared:
        raise HTTPException(status_code=500, detail="Clear failed or Redis unavailable.")
    return result

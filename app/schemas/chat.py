"""Schemas for the chat endpoint."""

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.conversation import Message


class ChatRequest(BaseModel):
    """Request body for POST /api/chat. History is read from the store, not sent by the client."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(..., alias="conversationId", min_length=1, description="Existing conversation id.")
    content: str = Field(..., description="User message text.")
    debug: bool = Field(False, description="Ask workers to trace this run.")
    debug_id: str | None = Field(None, alias="debugID", description="Trace id; required for debug to take effect.")


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Message = Field(..., description="The stored assistant message (reply or pipeline error).")
    pipeline_id: str = Field(..., alias="pipelineId", description="Pipeline the turn ran on ('llm' when unset).")
    rag_tag: str | None = Field(None, alias="ragTag")


class PipelinesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pipelines: list[dict[str, str]]
    pipelines_rag: list[dict[str, str]] = Field(..., alias="pipelinesRag")

"""Conversation and message records: stored as JSON blobs and returned by the API (camelCase on the wire)."""

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.config import DEFAULT_TITLE

Bucket = Literal["chat", "rag"]
Role = Literal["user", "assistant"]
BUCKETS: tuple[Bucket, ...] = ("chat", "rag")


def new_id() -> str:
    return uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def bucket_for(rag_tag: str | None) -> Bucket:
    """RAG conversations are exactly those with a non-empty tag."""
    return "rag" if rag_tag else "chat"


class Conversation(BaseModel):
    """A conversation. bucket is derived from ragTag once, at creation."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    title: str = DEFAULT_TITLE
    rag_tag: str | None = Field(None, alias="ragTag")
    pipeline_id: str | None = Field(None, alias="pipelineId")
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    bucket: Bucket = "chat"

    @model_validator(mode="before")
    @classmethod
    def _derive_bucket(cls, data: Any) -> Any:
        # Snapshots written before buckets existed carry no bucket field
        if isinstance(data, dict) and not data.get("bucket"):
            tag = data.get("ragTag", data.get("rag_tag"))
            data = {**data, "bucket": bucket_for(tag)}
        return data

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class Message(BaseModel):
    """One append-only chat message."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    role: Role
    content: str = ""
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ClearResult(BaseModel):
    """Outcome of wiping the store."""

    model_config = ConfigDict(populate_by_name=True)

    cleared: bool
    keys_deleted: int = Field(0, alias="keysDeleted")


# --- API request/response bodies ---

class CreateConversationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rag_tag: str | None = Field(None, alias="ragTag", description="RAG scope tag; non-empty makes this a RAG conversation.")
    pipeline_id: str | None = Field(None, alias="pipelineId", description="Pipeline id used to pick <pipeline>_chat.tpl.")


class UpdateConversationRequest(BaseModel):
    title: str = Field(..., description="New conversation title.")


class ConversationListResponse(BaseModel):
    conversations: list[Conversation]


class MessageListResponse(BaseModel):
    messages: list[Message]

"""Schemas for the document upload endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class UploadResponse(BaseModel):
    """Response after handing an upload to the ingestion workflow (202 Accepted)."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "message": "Upload accepted for processing",
                    "ragTag": "handbook",
                    "fileNames": ["policy.pdf", "faq.txt"],
                    "workflowId": "doc-ingest-handbook-1718000000000",
                    "runId": "0f8e3c1a-5f7d-4c2e-9a41-3b6d2e1f0c99",
                }
            ]
        },
    )

    message: str = Field("Upload accepted for processing", description="Human-readable status.")
    rag_tag: str = Field(..., alias="ragTag", description="RAG tag the documents were filed under.")
    file_names: list[str] = Field(..., alias="fileNames", description="Sanitized names of the uploaded files.")
    workflow_id: str | None = Field(None, alias="workflowId", description="Temporal workflow id of the ingestion run.")
    run_id: str | None = Field(None, alias="runId", description="Temporal run id, when available.")


class RagTagsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rag_tags: list[str] = Field(..., alias="ragTags", description="All tags used for uploads, sorted.")

"""
Pipeline catalog: chat pipelines (no RAG) and RAG pipelines (require a tag).

Env override format: id:Label,id2:Label2 (comma-separated; label optional).
"""

from functools import lru_cache

from pydantic import BaseModel

from app.core.config import PIPELINE_OPTIONS, PIPELINE_OPTIONS_RAG


class PipelineOption(BaseModel):
    id: str
    label: str


DEFAULT_PIPELINES: list[tuple[str, str]] = [
    ("llama-oss", "Llama OSS"),
    ("openai-oss", "OpenAI OSS"),
    ("both", "Both models"),
    ("chat-mistral", "Mistral"),
    ("chat-llama3.2", "Llama 3.2"),
    ("chat-phi3", "Phi-3"),
    ("chat-gemma2-2b", "Gemma 2 2B"),
    ("chat-qwen2-1.5b", "Qwen2 1.5B"),
    ("query-all-models", "Query all models"),
]

DEFAULT_PIPELINES_RAG: list[tuple[str, str]] = [
    ("question-answer", "Question-Answer (RAG)"),
    ("rag-llama-oss", "RAG Llama OSS"),
    ("rag-openai-oss", "RAG OpenAI OSS"),
    ("rag-both", "RAG Both models"),
    ("rag-mistral", "RAG Mistral"),
    ("rag-llama3.2", "RAG Llama 3.2"),
    ("rag-phi3", "RAG Phi-3"),
    ("rag-gemma2-2b", "RAG Gemma 2 2B"),
    ("rag-qwen2-1.5b", "RAG Qwen2 1.5B"),
]


def parse_pipeline_options(raw: str | None, defaults: list[tuple[str, str]]) -> list[PipelineOption]:
    if not raw or not raw.strip():
        return [PipelineOption(id=i, label=label) for i, label in defaults]
    options: list[PipelineOption] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        pid, sep, label = part.partition(":")
        pid = pid.strip()
        if not pid:
            continue
        options.append(PipelineOption(id=pid, label=label.strip() if sep and label.strip() else pid))
    return options


@lru_cache(maxsize=1)
def get_pipelines() -> list[PipelineOption]:
    return parse_pipeline_options(PIPELINE_OPTIONS, DEFAULT_PIPELINES)


@lru_cache(maxsize=1)
def get_pipelines_rag() -> list[PipelineOption]:
    return parse_pipeline_options(PIPELINE_OPTIONS_RAG, DEFAULT_PIPELINES_RAG)

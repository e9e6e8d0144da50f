from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(slots=True)
class OpenAISettings:
    """Runtime model configuration for transcription, embedding and generation calls."""

    embedding_model: str = "text-embedding-3-small"
    chat_model: str = "gpt-4.1-mini"
    transcription_model: str = "gpt-4o-mini-transcribe"
    transcription_language: str | None = None
    request_timeout: float = 60.0
    max_attempts: int = 3


@dataclass(slots=True)
class PipelineSettings:
    """Segmentation, retrieval and answering parameters."""

    top_k: int = 5
    similarity_floor: float = 0.3
    token_budget: int = 2000
    chars_per_token: int = 4
    max_chunk_chars: int = 1200
    answer_language: str | None = None
    operation_timeout: float | None = None


@dataclass(slots=True)
class Paths:
    """Local persistence locations for the Chroma-backed chunk store."""

    chroma_dir: str = "artifacts/chroma"
    collection_name: str = "lecture_chunks"


def _optional_float(name: str) -> float | None:
    value = os.getenv(name)
    return float(value) if value else None


def load_settings() -> tuple[OpenAISettings, PipelineSettings, Paths]:
    """Load environment-backed settings and return typed config objects.

    Returns:
        Tuple containing model settings, pipeline settings and storage paths.
    """
    load_dotenv()
    return (
        OpenAISettings(
            embedding_model=os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
            chat_model=os.getenv("OPENAI_CHAT_MODEL", "gpt-4.1-mini"),
            transcription_model=os.getenv("OPENAI_TRANSCRIPTION_MODEL", "gpt-4o-mini-transcribe"),
            transcription_language=os.getenv("OPENAI_TRANSCRIPTION_LANGUAGE") or None,
            request_timeout=float(os.getenv("OPENAI_REQUEST_TIMEOUT", "60")),
            max_attempts=int(os.getenv("OPENAI_MAX_ATTEMPTS", "3")),
        ),
        PipelineSettings(
            top_k=int(os.getenv("LECTURE_RAG_TOP_K", "5")),
            similarity_floor=float(os.getenv("LECTURE_RAG_SIMILARITY_FLOOR", "0.3")),
            token_budget=int(os.getenv("LECTURE_RAG_TOKEN_BUDGET", "2000")),
            chars_per_token=int(os.getenv("LECTURE_RAG_CHARS_PER_TOKEN", "4")),
            max_chunk_chars=int(os.getenv("LECTURE_RAG_MAX_CHUNK_CHARS", "1200")),
            answer_language=os.getenv("LECTURE_RAG_ANSWER_LANGUAGE") or None,
            operation_timeout=_optional_float("LECTURE_RAG_OPERATION_TIMEOUT"),
        ),
        Paths(
            chroma_dir=os.getenv("LECTURE_RAG_CHROMA_DIR", "artifacts/chroma"),
            collection_name=os.getenv("LECTURE_RAG_COLLECTION", "lecture_chunks"),
        ),
    )

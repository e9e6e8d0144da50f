"""Lecture ingestion and retrieval-augmented answering."""

from .chunk_store import ChunkStore, InMemoryChunkStore
from .errors import (
    AnswerFailed,
    EmbeddingFailed,
    GenerationFailed,
    IngestionFailed,
    LectureRagError,
    ProviderError,
    StoreReadFailed,
    StoreWriteFailed,
    Timeout,
    TranscriptionFailed,
)
from .gateway import ModelGateway, OpenAIGateway
from .pipeline import LecturePipeline
from .schema import Answer, Chunk, RetrievalQuery, RetrievalResult, ScoredChunk

__all__ = [
    "Answer",
    "AnswerFailed",
    "Chunk",
    "ChunkStore",
    "EmbeddingFailed",
    "GenerationFailed",
    "InMemoryChunkStore",
    "IngestionFailed",
    "LecturePipeline",
    "LectureRagError",
    "ModelGateway",
    "OpenAIGateway",
    "ProviderError",
    "RetrievalQuery",
    "RetrievalResult",
    "ScoredChunk",
    "StoreReadFailed",
    "StoreWriteFailed",
    "Timeout",
    "TranscriptionFailed",
]

"""Shared pytest fixtures for lecture_rag unit tests."""
from __future__ import annotations

import asyncio
import re
import zlib

import pytest

from lecture_rag.chunk_store import InMemoryChunkStore
from lecture_rag.errors import EmbeddingFailed, GenerationFailed, TranscriptionFailed
from lecture_rag.gateway import ModelGateway
from lecture_rag.schema import Chunk

DIM = 256

STOPWORDS = {
    "a", "an", "and", "at", "by", "does", "is", "it", "of", "on", "s", "say",
    "that", "the", "to", "upon", "what", "which",
}

NEWTON_TRANSCRIPT = (
    "Newton's first law states that an object stays at rest unless acted upon by a force."
)


def bag_of_words(text: str) -> list[float]:
    """Deterministic hashed bag-of-words embedding."""
    vector = [0.0] * DIM
    for token in re.findall(r"[a-z]+", text.lower()):
        if token not in STOPWORDS:
            vector[zlib.crc32(token.encode()) % DIM] += 1.0
    return vector


class FakeGateway(ModelGateway):
    """In-process gateway with canned transcripts and answers."""

    def __init__(
        self,
        transcripts: dict[bytes, str] | None = None,
        answer: str = "According to the lecture content, an object remains at rest until a force acts on it.",
        fail_embed_at: int | None = None,
        embed_delay: float = 0.0,
        generate_delay: float = 0.0,
        fail_generate: bool = False,
    ):
        self.transcripts = transcripts or {}
        self.answer = answer
        self.fail_embed_at = fail_embed_at
        self.embed_delay = embed_delay
        self.generate_delay = generate_delay
        self.fail_generate = fail_generate
        self.transcribed: list[bytes] = []
        self.embedded: list[str] = []
        self.prompts: list[str] = []

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        self.transcribed.append(audio)
        text = self.transcripts.get(audio, "")
        if not text.strip():
            raise TranscriptionFailed("Provider returned an empty transcript")
        return text

    async def embed(self, text: str) -> list[float]:
        if not text.strip():
            raise EmbeddingFailed("Cannot embed empty text")
        index = len(self.embedded)
        self.embedded.append(text)
        if self.embed_delay:
            await asyncio.sleep(self.embed_delay)
        if self.fail_embed_at == index:
            raise EmbeddingFailed("embedding service unavailable", transient=True)
        return bag_of_words(text)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.generate_delay:
            await asyncio.sleep(self.generate_delay)
        if self.fail_generate:
            raise GenerationFailed("model overloaded", transient=True)
        return self.answer


def make_chunk(
    chunk_id: str,
    text: str = "lecture text",
    embedding: tuple[float, ...] = (1.0, 0.0, 0.0),
    source_id: str = "L-1",
    sequence: int = 0,
) -> Chunk:
    return Chunk(chunk_id=chunk_id, source_id=source_id, sequence=sequence, text=text, embedding=embedding)


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway(transcripts={b"newton-audio": NEWTON_TRANSCRIPT})


@pytest.fixture()
def store() -> InMemoryChunkStore:
    return InMemoryChunkStore()


@pytest.fixture()
def sample_chunks() -> list[Chunk]:
    return [
        make_chunk("C-a", "Momentum is mass times velocity.", (1.0, 0.0, 0.0), "L-1", 0),
        make_chunk("C-b", "Energy is conserved in closed systems.", (0.0, 1.0, 0.0), "L-1", 1),
        make_chunk("C-c", "Entropy never decreases in isolation.", (0.0, 0.0, 1.0), "L-2", 0),
    ]

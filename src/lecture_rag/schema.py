from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Sequence
from uuid import uuid4


@dataclass(frozen=True, slots=True)
class Chunk:
    """Immutable transcript segment with its embedding and provenance."""

    chunk_id: str
    source_id: str
    sequence: int
    text: str
    embedding: tuple[float, ...]

    def __post_init__(self) -> None:
        if not self.text.strip():
            raise ValueError("Chunk text must be non-empty")
        if len(self.embedding) == 0:
            raise ValueError(f"Chunk {self.chunk_id} has no embedding")

    @classmethod
    def create(cls, source_id: str, sequence: int, text: str, embedding: Sequence[float]) -> Chunk:
        """Build a new chunk with a freshly assigned id.

        Args:
            source_id: Lecture/upload the segment was transcribed from.
            sequence: Position of the segment within its source.
            text: Normalized segment text.
            embedding: Embedding vector for ``text``.

        Returns:
            A frozen ``Chunk``.
        """
        return cls(
            chunk_id=uuid4().hex,
            source_id=source_id,
            sequence=sequence,
            text=text,
            embedding=tuple(float(value) for value in embedding),
        )


@dataclass(slots=True)
class RetrievalQuery:
    """Ephemeral question plus the parameters it was retrieved with."""

    question: str
    top_k: int
    similarity_floor: float
    token_budget: int
    embedding: list[float] | None = None


@dataclass(frozen=True, slots=True)
class ScoredChunk:
    chunk: Chunk
    score: float


@dataclass(slots=True)
class RetrievalResult:
    """Chunks selected for a query, ordered by descending similarity."""

    query: RetrievalQuery
    items: list[ScoredChunk] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[ScoredChunk]:
        return iter(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def chunk_ids(self) -> list[str]:
        return [item.chunk.chunk_id for item in self.items]

    @property
    def texts(self) -> list[str]:
        return [item.chunk.text for item in self.items]


@dataclass(slots=True)
class Answer:
    """Synthesized answer and the chunk ids that grounded it."""

    text: str
    chunk_ids: list[str]
    grounded: bool = True

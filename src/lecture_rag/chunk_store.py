"""Chunk Store contract and an in-process implementation.

Store methods are synchronous and never yield to the event loop, so every call
(including :meth:`ChunkStore.replace_source`) is atomic for coroutines that share
the loop: a reader sees either the previous complete chunk set of a source or
the new complete one.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from loguru import logger

from .errors import StoreWriteFailed
from .schema import Chunk


def validate_batch(chunks: Sequence[Chunk], dimension: int | None, existing_ids: set[str]) -> int | None:
    """Check a write batch against the store's invariants.

    Args:
        chunks: Chunks about to be written.
        dimension: Expected embedding dimensionality, or ``None`` if not fixed yet.
        existing_ids: Ids already persisted (chunks are append-only).

    Returns:
        The dimensionality the store must use after the write.

    Raises:
        StoreWriteFailed: On duplicate ids or inconsistent embedding sizes.
    """
    seen: set[str] = set()
    for chunk in chunks:
        if chunk.chunk_id in seen or chunk.chunk_id in existing_ids:
            raise StoreWriteFailed("Duplicate chunk id", {"chunk_id": chunk.chunk_id})
        seen.add(chunk.chunk_id)

        if dimension is None:
            dimension = len(chunk.embedding)
        elif len(chunk.embedding) != dimension:
            raise StoreWriteFailed(
                "Embedding dimensionality mismatch",
                {"chunk_id": chunk.chunk_id, "expected": dimension, "actual": len(chunk.embedding)},
            )
    return dimension


class ChunkStore(ABC):
    """Append-only record of embedded lecture segments."""

    dimension: int | None = None

    @abstractmethod
    def put(self, chunks: Sequence[Chunk]) -> None:
        """Insert a batch atomically; raises ``StoreWriteFailed`` leaving prior state intact."""

    @abstractmethod
    def all(self) -> list[Chunk]:
        """Return every stored chunk ordered by source and sequence."""

    @abstractmethod
    def delete_by_source(self, source_id: str) -> None:
        """Remove all chunks of ``source_id``; a no-op for unknown sources."""

    @abstractmethod
    def replace_source(self, source_id: str, chunks: Sequence[Chunk]) -> None:
        """Swap the chunk set of ``source_id`` for ``chunks`` in one atomic step."""

    def by_source(self, source_id: str) -> list[Chunk]:
        return [chunk for chunk in self.all() if chunk.source_id == source_id]

    def __len__(self) -> int:
        return len(self.all())


def _ordered(chunks: Sequence[Chunk]) -> tuple[Chunk, ...]:
    return tuple(sorted(chunks, key=lambda chunk: (chunk.source_id, chunk.sequence, chunk.chunk_id)))


class InMemoryChunkStore(ChunkStore):
    """Chunk store holding an immutable snapshot that is swapped on every write."""

    def __init__(self, dimension: int | None = None):
        self.dimension = dimension
        self._snapshot: tuple[Chunk, ...] = ()

    def put(self, chunks: Sequence[Chunk]) -> None:
        if not chunks:
            return
        existing_ids = {chunk.chunk_id for chunk in self._snapshot}
        dimension = validate_batch(chunks, self.dimension, existing_ids)
        self._snapshot = _ordered([*self._snapshot, *chunks])
        self.dimension = dimension
        logger.debug(f"Stored {len(chunks)} chunks ({len(self._snapshot)} total)")

    def all(self) -> list[Chunk]:
        return list(self._snapshot)

    def delete_by_source(self, source_id: str) -> None:
        self._snapshot = tuple(chunk for chunk in self._snapshot if chunk.source_id != source_id)

    def replace_source(self, source_id: str, chunks: Sequence[Chunk]) -> None:
        kept = [chunk for chunk in self._snapshot if chunk.source_id != source_id]
        foreign = [chunk.chunk_id for chunk in chunks if chunk.source_id != source_id]
        if foreign:
            raise StoreWriteFailed("Batch contains chunks of another source", {"chunk_ids": foreign})
        dimension = validate_batch(chunks, self.dimension, {chunk.chunk_id for chunk in kept})
        self._snapshot = _ordered([*kept, *chunks])
        self.dimension = dimension

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

import chromadb
from chromadb.config import Settings
from loguru import logger

from .chunk_store import ChunkStore, validate_batch
from .errors import StoreReadFailed, StoreWriteFailed
from .schema import Chunk

_INCLUDE = ["embeddings", "documents", "metadatas"]


class ChromaChunkStore(ChunkStore):
    """Chunk store persisted in a Chroma collection.

    Chunk text goes to the collection documents, provenance to the metadata
    (``source_id``, ``sequence``), and the provider embedding is stored as-is.
    Failed writes are undone before ``StoreWriteFailed`` is raised.
    """

    def __init__(
        self,
        collection_name: str = "lecture_chunks",
        persist_dir: str = "artifacts/chroma",
        dimension: int | None = None,
        client: Any | None = None,
    ):
        """Open (or create) the persistent collection.

        Args:
            collection_name: Chroma collection name.
            persist_dir: Local path for Chroma persistence, ignored when
                ``client`` is given.
            dimension: Expected embedding size; inferred from stored rows when omitted.
            client: Existing Chroma client to reuse.
        """
        if client is None:
            Path(persist_dir).mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(path=persist_dir, settings=Settings(anonymized_telemetry=False))
        self._client = client
        self._collection = client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        self.dimension = dimension if dimension is not None else self._stored_dimension()
        logger.info(f"Chroma chunk store ready: collection={collection_name}, dimension={self.dimension}")

    def _stored_dimension(self) -> int | None:
        rows = self._collection.get(limit=1, include=["embeddings"])
        embeddings = rows.get("embeddings")
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    def _read(self, **query) -> list[Chunk]:
        try:
            rows = self._collection.get(include=_INCLUDE, **query)
        except Exception as exc:
            raise StoreReadFailed(f"Chroma read failed: {exc}") from exc

        embeddings = rows.get("embeddings")
        if embeddings is None:
            embeddings = [None] * len(rows["ids"])

        chunks: list[Chunk] = []
        for chunk_id, text, metadata, embedding in zip(
            rows["ids"], rows["documents"], rows["metadatas"], embeddings, strict=True
        ):
            if embedding is None or len(embedding) == 0:
                raise StoreReadFailed("Stored chunk has no embedding", {"chunk_id": chunk_id})
            chunks.append(
                Chunk(
                    chunk_id=chunk_id,
                    source_id=str(metadata["source_id"]),
                    sequence=int(metadata["sequence"]),
                    text=text,
                    embedding=tuple(float(value) for value in embedding),
                )
            )
        chunks.sort(key=lambda chunk: (chunk.source_id, chunk.sequence, chunk.chunk_id))
        return chunks

    def _add(self, chunks: Sequence[Chunk]) -> None:
        self._collection.add(
            ids=[chunk.chunk_id for chunk in chunks],
            embeddings=[list(chunk.embedding) for chunk in chunks],
            documents=[chunk.text for chunk in chunks],
            metadatas=[{"source_id": chunk.source_id, "sequence": chunk.sequence} for chunk in chunks],
        )

    def _existing_ids(self, chunks: Sequence[Chunk]) -> set[str]:
        if not chunks:
            return set()
        try:
            rows = self._collection.get(ids=[chunk.chunk_id for chunk in chunks], include=["metadatas"])
            return set(rows["ids"])
        except Exception as exc:
            raise StoreWriteFailed(f"Chroma lookup failed: {exc}") from exc

    def put(self, chunks: Sequence[Chunk]) -> None:
        if not chunks:
            return
        dimension = validate_batch(chunks, self.dimension, self._existing_ids(chunks))
        try:
            self._add(chunks)
        except Exception as exc:
            self._collection.delete(ids=[chunk.chunk_id for chunk in chunks])
            raise StoreWriteFailed(f"Chroma write failed: {exc}", {"batch_size": len(chunks)}) from exc
        self.dimension = dimension
        logger.info(f"Stored {len(chunks)} chunks in Chroma")

    def all(self) -> list[Chunk]:
        return self._read()

    def by_source(self, source_id: str) -> list[Chunk]:
        return self._read(where={"source_id": source_id})

    def delete_by_source(self, source_id: str) -> None:
        try:
            self._collection.delete(where={"source_id": source_id})
        except Exception as exc:
            raise StoreWriteFailed(f"Chroma delete failed: {exc}", {"source_id": source_id}) from exc

    def replace_source(self, source_id: str, chunks: Sequence[Chunk]) -> None:
        foreign = [chunk.chunk_id for chunk in chunks if chunk.source_id != source_id]
        if foreign:
            raise StoreWriteFailed("Batch contains chunks of another source", {"chunk_ids": foreign})
        dimension = validate_batch(chunks, self.dimension, self._existing_ids(chunks))

        previous = self.by_source(source_id)
        self.delete_by_source(source_id)
        try:
            if chunks:
                self._add(chunks)
        except Exception as exc:
            self._collection.delete(ids=[chunk.chunk_id for chunk in chunks])
            if previous:
                self._add(previous)
            raise StoreWriteFailed(
                f"Chroma write failed: {exc}",
                {"source_id": source_id, "batch_size": len(chunks)},
            ) from exc
        self.dimension = dimension
        logger.info(f"Replaced {len(previous)} chunks of {source_id} with {len(chunks)}")

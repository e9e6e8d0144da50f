from __future__ import annotations

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger

from .chunk_store import ChunkStore
from .chunking import segment_transcript
from .errors import EmbeddingFailed, IngestionFailed, TranscriptionFailed
from .gateway import ModelGateway
from .schema import Chunk


class Indexer:
    """Turn lecture audio into stored, embedded chunks.

    Nothing reaches the store until the transcript is segmented and every
    segment is embedded; the batch then replaces the source's previous chunk set
    in a single store call.  Ingestions of the same source are serialized.
    """

    def __init__(self, gateway: ModelGateway, store: ChunkStore, max_chunk_chars: int = 1200):
        self.gateway = gateway
        self.store = store
        self.max_chunk_chars = max_chunk_chars
        self._source_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    async def ingest(self, source_id: str, audio: bytes, mime_type: str) -> list[Chunk]:
        """Transcribe, segment, embed and store one lecture recording.

        Args:
            source_id: Identifier of the lecture/upload.
            audio: Raw audio bytes.
            mime_type: MIME type of ``audio``.

        Returns:
            The committed chunks in sequence order.

        Raises:
            IngestionFailed: Transcription or embedding failed, or the transcript
                was empty.  The store is unchanged.
        """
        self._check_source_id(source_id)
        async with self._source_lock(source_id):
            try:
                transcript = await self.gateway.transcribe(audio, mime_type)
            except TranscriptionFailed as exc:
                raise IngestionFailed(
                    f"Transcription failed: {exc.message}",
                    source_id,
                    {"transient": exc.transient},
                ) from exc
            return await self._index(source_id, transcript)

    async def ingest_transcript(self, source_id: str, transcript: str) -> list[Chunk]:
        """Index text that was transcribed elsewhere."""
        self._check_source_id(source_id)
        async with self._source_lock(source_id):
            return await self._index(source_id, transcript)

    @asynccontextmanager
    async def _source_lock(self, source_id: str) -> AsyncIterator[None]:
        """Hold the source's lock; it is dropped once no ingestion holds or awaits it."""
        lock = self._source_locks.setdefault(source_id, asyncio.Lock())
        self._lock_users[source_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[source_id] -= 1
            if not self._lock_users[source_id]:
                del self._lock_users[source_id]
                del self._source_locks[source_id]

    @staticmethod
    def _check_source_id(source_id: str) -> None:
        if not source_id or not source_id.strip():
            raise IngestionFailed("source_id must be non-empty", source_id)

    async def _index(self, source_id: str, transcript: str) -> list[Chunk]:
        segments = segment_transcript(transcript or "", self.max_chunk_chars)
        if not segments:
            raise IngestionFailed("Transcription produced no text", source_id)

        chunks: list[Chunk] = []
        for sequence, text in enumerate(segments):
            try:
                vector = await self.gateway.embed(text)
            except EmbeddingFailed as exc:
                raise IngestionFailed(
                    f"Embedding failed for segment {sequence + 1} of {len(segments)}: {exc.message}",
                    source_id,
                    {"sequence": sequence, "transient": exc.transient},
                ) from exc
            chunks.append(Chunk.create(source_id, sequence, text, vector))

        self.store.replace_source(source_id, chunks)
        logger.info(f"Ingested {source_id}: {len(chunks)} chunks")
        return chunks

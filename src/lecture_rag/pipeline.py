from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from .chunk_store import ChunkStore
from .errors import Timeout
from .gateway import ModelGateway, OpenAIGateway
from .indexer import Indexer
from .qa import AnswerSynthesizer
from .retrieval import Retriever
from .schema import Answer, Chunk, RetrievalResult
from .settings import PipelineSettings, load_settings
from .tracing import (
    ATTR_CHUNK_COUNT,
    ATTR_CHUNK_IDS,
    ATTR_GROUNDED,
    ATTR_OUTPUT_VALUE,
    ATTR_RETRIEVAL_DOCUMENTS,
    ATTR_SOURCE_ID,
    get_tracer,
    traced_span,
)
from .vector_store import ChromaChunkStore

T = TypeVar("T")

_UNSET = object()


class LecturePipeline:
    """Ingest lecture audio and answer questions grounded in it.

    Composes the Indexer, Retriever and Answer Synthesizer over one gateway and
    one chunk store.  Every operation accepts a ``timeout`` in seconds; when it
    expires the in-flight provider call is cancelled and ``Timeout`` is raised.
    Stores are only written after all provider calls of an ingestion succeed,
    so a timed-out ingestion commits nothing.
    """

    def __init__(self, gateway: ModelGateway, store: ChunkStore, settings: PipelineSettings | None = None):
        self.settings = settings or PipelineSettings()
        self.gateway = gateway
        self.store = store
        self.indexer = Indexer(gateway, store, max_chunk_chars=self.settings.max_chunk_chars)
        self.retriever = Retriever(
            gateway,
            store,
            top_k=self.settings.top_k,
            similarity_floor=self.settings.similarity_floor,
            token_budget=self.settings.token_budget,
            chars_per_token=self.settings.chars_per_token,
        )
        self.synthesizer = AnswerSynthesizer(gateway, language=self.settings.answer_language)

    @classmethod
    def from_settings(cls) -> LecturePipeline:
        """Build an OpenAI + Chroma pipeline from environment settings."""
        openai_settings, pipeline_settings, paths = load_settings()
        store = ChromaChunkStore(collection_name=paths.collection_name, persist_dir=paths.chroma_dir)
        return cls(OpenAIGateway(openai_settings), store, pipeline_settings)

    async def _run(self, operation: str, awaitable: Awaitable[T], timeout) -> T:
        seconds = self.settings.operation_timeout if timeout is _UNSET else timeout
        if seconds is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, seconds)
        except asyncio.TimeoutError as exc:
            raise Timeout(operation, seconds) from exc

    async def ingest(self, source_id: str, audio: bytes, mime_type: str, timeout=_UNSET) -> list[Chunk]:
        with traced_span(get_tracer("lecture_rag.pipeline"), "ingest") as span:
            span.set_attribute(ATTR_SOURCE_ID, source_id)
            chunks = await self._run("ingest", self.indexer.ingest(source_id, audio, mime_type), timeout)
            span.set_attribute(ATTR_CHUNK_COUNT, len(chunks))
            return chunks

    async def ingest_transcript(self, source_id: str, transcript: str, timeout=_UNSET) -> list[Chunk]:
        with traced_span(get_tracer("lecture_rag.pipeline"), "ingest") as span:
            span.set_attribute(ATTR_SOURCE_ID, source_id)
            chunks = await self._run("ingest", self.indexer.ingest_transcript(source_id, transcript), timeout)
            span.set_attribute(ATTR_CHUNK_COUNT, len(chunks))
            return chunks

    async def retrieve(self, question: str, timeout=_UNSET, **params) -> RetrievalResult:
        """Retrieve context for ``question``; ``params`` override top_k, similarity_floor, token_budget."""
        with traced_span(get_tracer("lecture_rag.pipeline"), "retrieve", question) as span:
            result = await self._run("retrieve", self.retriever.retrieve(question, **params), timeout)
            span.set_attribute(ATTR_RETRIEVAL_DOCUMENTS, len(result))
            span.set_attribute(ATTR_CHUNK_IDS, result.chunk_ids)
            return result

    async def answer(self, question: str, retrieval: RetrievalResult, timeout=_UNSET) -> Answer:
        with traced_span(get_tracer("lecture_rag.pipeline"), "answer", question) as span:
            result = await self._run("answer", self.synthesizer.answer(question, retrieval), timeout)
            span.set_attribute(ATTR_OUTPUT_VALUE, result.text[:500])
            span.set_attribute(ATTR_GROUNDED, result.grounded)
            return result

    async def ask(self, question: str, timeout=_UNSET, **params) -> Answer:
        """Retrieve and answer under a single deadline."""

        async def _ask() -> Answer:
            retrieval = await self.retrieve(question, timeout=None, **params)
            return await self.answer(question, retrieval, timeout=None)

        with traced_span(get_tracer("lecture_rag.pipeline"), "ask", question) as span:
            result = await self._run("ask", _ask(), timeout)
            span.set_attribute(ATTR_OUTPUT_VALUE, result.text[:500])
            return result

    def delete_source(self, source_id: str) -> None:
        self.store.delete_by_source(source_id)

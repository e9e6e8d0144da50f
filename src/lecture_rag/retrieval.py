from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from loguru import logger

from .chunk_store import ChunkStore
from .embeddings import cosine_similarity, embedding_matrix
from .gateway import ModelGateway
from .schema import Chunk, RetrievalQuery, RetrievalResult, ScoredChunk


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Approximate the token count of ``text`` from its character length."""
    return max(1, math.ceil(len(text) / chars_per_token))


def rank_chunks(query_embedding: Sequence[float], chunks: Sequence[Chunk]) -> list[ScoredChunk]:
    """Score every chunk against the query and sort best-first.

    Args:
        query_embedding: Embedded question.
        chunks: Candidate chunks.

    Returns:
        All chunks with cosine scores, ordered by descending score, then
        ascending sequence, then ascending chunk id.
    """
    if not chunks:
        return []

    query_vector = np.asarray(query_embedding, dtype=np.float64)
    matrix = embedding_matrix(chunks)
    if matrix.shape[1] != query_vector.shape[0]:
        raise ValueError(
            f"Query embedding has {query_vector.shape[0]} dimensions, stored chunks have {matrix.shape[1]}"
        )

    scores = cosine_similarity(query_vector, matrix)
    scored = [ScoredChunk(chunk=chunk, score=float(score)) for chunk, score in zip(chunks, scores, strict=True)]
    return sorted(scored, key=lambda item: (-item.score, item.chunk.sequence, item.chunk.chunk_id))


def select_chunks(
    ranked: Sequence[ScoredChunk],
    top_k: int,
    similarity_floor: float,
    token_budget: int,
    chars_per_token: int = 4,
) -> list[ScoredChunk]:
    """Greedily take ranked chunks that clear the floor while K and the budget allow.

    Selection stops at the first chunk whose token cost would push the total
    past ``token_budget``.
    """
    selected: list[ScoredChunk] = []
    spent = 0
    for item in ranked:
        if len(selected) >= top_k or item.score < similarity_floor:
            break
        cost = estimate_tokens(item.chunk.text, chars_per_token)
        if spent + cost > token_budget:
            break
        selected.append(item)
        spent += cost
    return selected


class Retriever:
    """Top-K cosine retrieval over the chunk store."""

    def __init__(
        self,
        gateway: ModelGateway,
        store: ChunkStore,
        top_k: int = 5,
        similarity_floor: float = 0.3,
        token_budget: int = 2000,
        chars_per_token: int = 4,
    ):
        if chars_per_token < 1:
            raise ValueError("chars_per_token must be at least 1")
        self.gateway = gateway
        self.store = store
        self.top_k = top_k
        self.similarity_floor = similarity_floor
        self.token_budget = token_budget
        self.chars_per_token = chars_per_token

    async def retrieve(
        self,
        question: str,
        top_k: int | None = None,
        similarity_floor: float | None = None,
        token_budget: int | None = None,
    ) -> RetrievalResult:
        """Return the chunks most similar to ``question``.

        Args:
            question: Free-form question text.
            top_k: Maximum number of chunks; defaults to the retriever setting.
            similarity_floor: Minimum cosine score a chunk must reach.
            token_budget: Approximate token cap over all selected chunk texts.

        Returns:
            Ranked result, empty when nothing is stored or nothing clears the floor.
        """
        query = RetrievalQuery(
            question=question,
            top_k=self.top_k if top_k is None else top_k,
            similarity_floor=self.similarity_floor if similarity_floor is None else similarity_floor,
            token_budget=self.token_budget if token_budget is None else token_budget,
        )
        if query.top_k < 0:
            raise ValueError("top_k must be non-negative")
        if query.token_budget < 0:
            raise ValueError("token_budget must be non-negative")
        if not -1.0 <= query.similarity_floor <= 1.0:
            raise ValueError("similarity_floor must be within [-1, 1]")

        chunks = self.store.all()
        if not chunks:
            logger.info("Chunk store is empty; no context to retrieve")
            return RetrievalResult(query=query)

        query.embedding = await self.gateway.embed(question)
        ranked = rank_chunks(query.embedding, chunks)
        selected = select_chunks(
            ranked,
            top_k=query.top_k,
            similarity_floor=query.similarity_floor,
            token_budget=query.token_budget,
            chars_per_token=self.chars_per_token,
        )
        logger.info(
            f"Retrieved {len(selected)} of {len(chunks)} chunks "
            f"(top score {ranked[0].score:.3f}, floor {query.similarity_floor})"
        )
        return RetrievalResult(query=query, items=selected)

"""Tests for schema.py — Chunk invariants and RetrievalResult helpers."""
from __future__ import annotations

import dataclasses

import pytest

from conftest import make_chunk
from lecture_rag.schema import Answer, Chunk, RetrievalQuery, RetrievalResult, ScoredChunk


class TestChunk:
    def test_create_assigns_unique_ids(self):
        first = Chunk.create("L-1", 0, "Text.", [1.0, 2.0])
        second = Chunk.create("L-1", 0, "Text.", [1.0, 2.0])
        assert first.chunk_id != second.chunk_id

    def test_create_stores_embedding_as_float_tuple(self):
        chunk = Chunk.create("L-1", 0, "Text.", [1, 2])
        assert chunk.embedding == (1.0, 2.0)

    def test_is_immutable(self):
        chunk = make_chunk("C-1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            chunk.text = "changed"

    def test_rejects_empty_text(self):
        with pytest.raises(ValueError):
            make_chunk("C-1", text="   ")

    def test_rejects_missing_embedding(self):
        with pytest.raises(ValueError):
            make_chunk("C-1", embedding=())


class TestRetrievalResult:
    @pytest.fixture()
    def result(self, sample_chunks) -> RetrievalResult:
        query = RetrievalQuery(question="Q?", top_k=5, similarity_floor=0.3, token_budget=2000)
        return RetrievalResult(
            query=query,
            items=[ScoredChunk(chunk=sample_chunks[1], score=0.9), ScoredChunk(chunk=sample_chunks[0], score=0.5)],
        )

    def test_chunk_ids_in_order(self, result):
        assert result.chunk_ids == ["C-b", "C-a"]

    def test_texts_in_order(self, result):
        assert result.texts[0] == "Energy is conserved in closed systems."

    def test_len_and_iter(self, result):
        assert len(result) == 2
        assert [item.score for item in result] == [0.9, 0.5]

    def test_empty_result(self):
        query = RetrievalQuery(question="Q?", top_k=5, similarity_floor=0.3, token_budget=2000)
        assert RetrievalResult(query=query).is_empty


class TestAnswer:
    def test_grounded_by_default(self):
        assert Answer(text="A.", chunk_ids=["C-1"]).grounded is True

"""Tests for qa.py — prompt construction and AnswerSynthesizer."""
from __future__ import annotations

import pytest

from conftest import FakeGateway, make_chunk
from lecture_rag.errors import AnswerFailed, GenerationFailed
from lecture_rag.qa import INSUFFICIENT_CONTEXT_ANSWER, AnswerSynthesizer, build_context, build_prompt
from lecture_rag.schema import RetrievalQuery, RetrievalResult, ScoredChunk


def _retrieval(*texts: str) -> RetrievalResult:
    query = RetrievalQuery(question="Q?", top_k=5, similarity_floor=0.3, token_budget=2000)
    items = [
        ScoredChunk(chunk=make_chunk(f"C-{idx}", text=text, sequence=idx), score=0.9 - idx * 0.1)
        for idx, text in enumerate(texts)
    ]
    return RetrievalResult(query=query, items=items)


# ---------------------------------------------------------------------------
# build_context / build_prompt — pure functions
# ---------------------------------------------------------------------------


class TestBuildContext:
    def test_single_chunk_format(self):
        assert build_context(["Inertia."]) == "Excerpt 1: Inertia."

    def test_chunks_numbered_in_order(self):
        result = build_context(["First.", "Second."])
        assert result == "Excerpt 1: First.\n\nExcerpt 2: Second."

    def test_empty_list_returns_empty_string(self):
        assert build_context([]) == ""


class TestBuildPrompt:
    def test_contains_question_verbatim(self):
        question = "What does Newton's first law say?"
        assert question in build_prompt(question, ["ctx"])

    def test_instructs_to_use_only_context(self):
        assert "Use only information contained in the context" in build_prompt("Q?", ["ctx"])

    def test_instructs_to_state_insufficiency(self):
        assert "do not have enough information" in build_prompt("Q?", ["ctx"])

    def test_context_in_retrieval_order(self):
        prompt = build_prompt("Q?", ["Best match.", "Second match."])
        assert prompt.index("Best match.") < prompt.index("Second match.")

    def test_language_rule_optional(self):
        assert "Answer in" not in build_prompt("Q?", ["ctx"])
        assert "Answer in Brazilian Portuguese." in build_prompt("Q?", ["ctx"], language="Brazilian Portuguese")


# ---------------------------------------------------------------------------
# AnswerSynthesizer
# ---------------------------------------------------------------------------


class TestAnswerSynthesizer:
    @pytest.mark.asyncio
    async def test_returns_generated_text_and_chunk_ids(self):
        gateway = FakeGateway(answer="  Momentum is conserved.  ")
        answer = await AnswerSynthesizer(gateway).answer("Q?", _retrieval("Momentum is conserved.", "Other."))
        assert answer.text == "Momentum is conserved."
        assert answer.chunk_ids == ["C-0", "C-1"]
        assert answer.grounded is True

    @pytest.mark.asyncio
    async def test_prompt_embeds_chunks_and_question(self):
        gateway = FakeGateway()
        await AnswerSynthesizer(gateway).answer("Why does it stop?", _retrieval("Friction slows motion."))
        assert "Friction slows motion." in gateway.prompts[0]
        assert "Why does it stop?" in gateway.prompts[0]

    @pytest.mark.asyncio
    async def test_configured_language_in_prompt(self):
        gateway = FakeGateway()
        await AnswerSynthesizer(gateway, language="Spanish").answer("Q?", _retrieval("ctx"))
        assert "Answer in Spanish." in gateway.prompts[0]

    @pytest.mark.asyncio
    async def test_empty_retrieval_short_circuits(self):
        gateway = FakeGateway()
        answer = await AnswerSynthesizer(gateway).answer("Q?", _retrieval())
        assert answer.text == INSUFFICIENT_CONTEXT_ANSWER
        assert answer.chunk_ids == []
        assert answer.grounded is False
        assert gateway.prompts == []

    @pytest.mark.asyncio
    async def test_generation_failure_becomes_answer_failed(self):
        gateway = FakeGateway(fail_generate=True)
        with pytest.raises(AnswerFailed) as excinfo:
            await AnswerSynthesizer(gateway).answer("Q?", _retrieval("ctx"))
        assert isinstance(excinfo.value.__cause__, GenerationFailed)
        assert excinfo.value.details["transient"] is True

from __future__ import annotations

from loguru import logger

from .errors import AnswerFailed, GenerationFailed
from .gateway import ModelGateway
from .schema import Answer, RetrievalResult

INSUFFICIENT_CONTEXT_ANSWER = (
    "I don't have enough information in the lecture content to answer this question."
)


def build_context(chunks: list[str]) -> str:
    return "\n\n".join([f"Excerpt {idx + 1}: {chunk}" for idx, chunk in enumerate(chunks)])


def build_prompt(question: str, context_chunks: list[str], language: str | None = None) -> str:
    context_block = build_context(context_chunks)
    language_rule = f"- Answer in {language}.\n" if language else ""
    return (
        "You are a teaching assistant. Answer the question clearly and precisely "
        "using the lecture excerpts below as context.\n\n"
        f"CONTEXT:\n{context_block}\n\n"
        f"QUESTION:\n{question}\n\n"
        "INSTRUCTIONS:\n"
        "- Use only information contained in the context above.\n"
        "- If the answer is not in the context, say that you do not have enough "
        "information to answer.\n"
        "- Be objective.\n"
        "- Keep an educational and professional tone.\n"
        "- Quote relevant passages of the context when appropriate.\n"
        '- When referring to the context, call it "the lecture content".\n'
        f"{language_rule}"
    ).strip()


class AnswerSynthesizer:
    """Generate answers grounded in retrieved lecture chunks.

    An empty retrieval never reaches the model: the synthesizer answers with
    ``INSUFFICIENT_CONTEXT_ANSWER`` locally, so no answer is produced without
    context.
    """

    def __init__(self, gateway: ModelGateway, language: str | None = None):
        self.gateway = gateway
        self.language = language

    async def answer(self, question: str, retrieval: RetrievalResult) -> Answer:
        if retrieval.is_empty:
            logger.warning("No relevant lecture content retrieved; answering with insufficiency message")
            return Answer(text=INSUFFICIENT_CONTEXT_ANSWER, chunk_ids=[], grounded=False)

        prompt = build_prompt(question, retrieval.texts, self.language)
        try:
            text = await self.gateway.generate(prompt)
        except GenerationFailed as exc:
            raise AnswerFailed(
                f"Answer generation failed: {exc.message}",
                {"transient": exc.transient, "chunk_ids": retrieval.chunk_ids},
            ) from exc

        logger.info(f"Answered from {len(retrieval)} chunks")
        return Answer(text=text.strip(), chunk_ids=retrieval.chunk_ids)

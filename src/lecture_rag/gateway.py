"""Model Gateway: the pipeline's only door to the generative-AI provider.

The core depends on :class:`ModelGateway`; :class:`OpenAIGateway` is the
production implementation.  Transient provider errors (connection problems,
rate limits, 5xx responses) are retried with exponential backoff through
tenacity.  Everything else is normalized immediately into the capability's
failure type.
"""
from __future__ import annotations

import mimetypes
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, TypeVar

import openai
from loguru import logger
from openai import AsyncOpenAI
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from .errors import EmbeddingFailed, GenerationFailed, ProviderError, TranscriptionFailed
from .settings import OpenAISettings

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)

TRANSCRIPTION_PROMPT = (
    "Transcribe the lecture audio accurately and naturally. "
    "Keep proper punctuation and break the text into paragraphs where appropriate."
)

_AUDIO_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/flac": "flac",
}


RETRYABLE_STATUS_CODES = (408, 409)


def is_transient(exc: BaseException) -> bool:
    """Return True when ``exc`` is worth retrying.

    Request timeouts (408) and lock conflicts (409) are retried like 429 and 5xx.
    """
    if isinstance(exc, openai.APIStatusError) and exc.status_code in RETRYABLE_STATUS_CODES:
        return True
    return isinstance(exc, TRANSIENT_ERRORS)


def audio_filename(mime_type: str) -> str:
    """Pick an upload filename whose extension matches ``mime_type``."""
    base_type = mime_type.split(";", 1)[0].strip().lower()
    extension = _AUDIO_EXTENSIONS.get(base_type)
    if extension is None:
        guessed = mimetypes.guess_extension(base_type)
        extension = guessed.lstrip(".") if guessed else "bin"
    return f"lecture.{extension}"


class ModelGateway(ABC):
    """Transcribe / embed / generate capabilities of a generative-AI provider."""

    @abstractmethod
    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        """Convert audio to text; raises ``TranscriptionFailed``."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed one text; raises ``EmbeddingFailed``."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Complete a prompt; raises ``GenerationFailed``."""


class OpenAIGateway(ModelGateway):
    """Model Gateway backed by the OpenAI async client."""

    def __init__(
        self,
        settings: OpenAISettings | None = None,
        client: AsyncOpenAI | None = None,
        initial_backoff: float = 0.5,
        max_backoff: float = 8.0,
    ):
        """Initialize the gateway.

        Args:
            settings: Model names, request timeout and retry budget.
            client: Pre-built client, mainly for tests.  When omitted a client
                is created with SDK-level retries disabled since the gateway
                owns the retry policy.
            initial_backoff: First backoff interval in seconds.
            max_backoff: Upper bound for a single backoff interval.
        """
        self.settings = settings or OpenAISettings()
        self.client = client or AsyncOpenAI(timeout=self.settings.request_timeout, max_retries=0)
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        if not audio:
            raise TranscriptionFailed("Audio payload is empty")

        kwargs = {
            "model": self.settings.transcription_model,
            "file": (audio_filename(mime_type), audio, mime_type),
            "prompt": TRANSCRIPTION_PROMPT,
        }
        if self.settings.transcription_language:
            kwargs["language"] = self.settings.transcription_language

        response = await self._call(
            "transcribe",
            TranscriptionFailed,
            lambda: self.client.audio.transcriptions.create(**kwargs),
        )
        text = (getattr(response, "text", "") or "").strip()
        if not text:
            raise TranscriptionFailed(
                "Provider returned an empty transcript",
                details={"model": self.settings.transcription_model},
            )
        return text

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise EmbeddingFailed("Cannot embed empty text")

        response = await self._call(
            "embed",
            EmbeddingFailed,
            lambda: self.client.embeddings.create(model=self.settings.embedding_model, input=text),
        )
        vector = list(response.data[0].embedding) if response.data else []
        if not vector:
            raise EmbeddingFailed(
                "Provider returned an empty embedding",
                details={"model": self.settings.embedding_model},
            )
        return vector

    async def generate(self, prompt: str) -> str:
        response = await self._call(
            "generate",
            GenerationFailed,
            lambda: self.client.responses.create(model=self.settings.chat_model, input=prompt),
        )
        text = (response.output_text or "").strip()
        if not text:
            raise GenerationFailed(
                "Provider returned an empty response",
                details={"model": self.settings.chat_model},
            )
        return text

    async def _call(
        self,
        operation: str,
        failure: type[ProviderError],
        request: Callable[[], Awaitable[T]],
    ) -> T:
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_transient),
            stop=stop_after_attempt(self.settings.max_attempts),
            wait=wait_exponential(multiplier=self.initial_backoff, max=self.max_backoff),
            before_sleep=self._log_retry(operation),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await request()
        except openai.OpenAIError as exc:
            transient = is_transient(exc)
            logger.error(f"{operation} failed (transient={transient}): {exc}")
            raise failure(
                f"{operation} failed: {exc}",
                transient=transient,
                details={"error_type": type(exc).__name__},
            ) from exc

    def _log_retry(self, operation: str) -> Callable[[RetryCallState], None]:
        def _before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                f"{operation} attempt {retry_state.attempt_number}/{self.settings.max_attempts} "
                f"failed with {type(exc).__name__}; retrying"
            )

        return _before_sleep

"""Exception hierarchy for the lecture ingestion and answering pipeline.

Provider-layer failures carry a ``transient`` flag so callers can tell a
provider outage (retried and exhausted) from a request that can never succeed.
"""
from __future__ import annotations

from typing import Any


class LectureRagError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ProviderError(LectureRagError):
    """Raised when the external model provider cannot fulfil a capability call."""

    def __init__(
        self,
        message: str,
        transient: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.transient = transient
        super().__init__(message, details)


class TranscriptionFailed(ProviderError):
    """Audio could not be converted to text."""


class EmbeddingFailed(ProviderError):
    """Text could not be embedded."""


class GenerationFailed(ProviderError):
    """The model produced no answer."""


class IngestionFailed(LectureRagError):
    """Raised when a source could not be indexed; nothing was committed."""

    def __init__(self, message: str, source_id: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["source_id"] = source_id
        self.source_id = source_id
        super().__init__(message, details)


class StoreError(LectureRagError):
    """Base class for chunk persistence failures."""


class StoreWriteFailed(StoreError):
    """A batch write was rejected; the store is unchanged."""


class StoreReadFailed(StoreError):
    """Stored chunks could not be read."""


class AnswerFailed(LectureRagError):
    """Generation failed while synthesizing an answer."""


class Timeout(LectureRagError):
    """Raised when a caller-imposed deadline expires before an operation completes."""

    def __init__(self, operation: str, seconds: float) -> None:
        self.operation = operation
        self.seconds = seconds
        super().__init__(
            f"{operation} did not finish within {seconds:g}s",
            {"operation": operation, "timeout_seconds": seconds},
        )

"""OpenTelemetry tracing helpers for the lecture pipeline.

:class:`~lecture_rag.pipeline.LecturePipeline` opens one span per operation
(``ingest``, ``retrieve``, ``answer``, and ``ask`` as the parent of the last
two).  Spans are discarded until :func:`configure_tracing` installs a provider.

Usage with an OTLP backend such as Arize Phoenix:

    from lecture_rag.tracing import configure_tracing

    configure_tracing(
        endpoint="http://localhost:6006/v1/traces",
        service_name="lecture-rag",
    )

Usage without a backend (development / testing):

    configure_tracing()   # uses ConsoleSpanExporter by default
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor, SpanExporter

# ---------------------------------------------------------------------------
# OpenInference semantic-convention attribute names
# ---------------------------------------------------------------------------

ATTR_INPUT_VALUE = "input.value"
ATTR_OUTPUT_VALUE = "output.value"
ATTR_RETRIEVAL_DOCUMENTS = "retrieval.documents"
ATTR_SOURCE_ID = "lecture.source_id"
ATTR_CHUNK_COUNT = "lecture.chunk_count"
ATTR_CHUNK_IDS = "lecture.chunk_ids"
ATTR_GROUNDED = "lecture.grounded"

_provider: TracerProvider | None = None


def configure_tracing(
    endpoint: str | None = None,
    service_name: str = "lecture-rag",
    exporter: SpanExporter | None = None,
) -> TracerProvider:
    """Create and register a global TracerProvider.

    Args:
        endpoint: OTLP HTTP endpoint URL to send traces to.  When *None* and no
            custom *exporter* is given, spans are printed to stdout.
        service_name: Label identifying this application in the backend.
        exporter: Already-constructed exporter, e.g. an ``InMemorySpanExporter``
            in tests.  When provided, *endpoint* is ignored.

    Returns:
        The configured provider, also registered as the global OTel provider.
    """
    global _provider

    resource = Resource(attributes={SERVICE_NAME: service_name})
    provider = TracerProvider(resource=resource)

    if exporter is not None:
        chosen_exporter: SpanExporter = exporter
    elif endpoint is not None:
        try:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                OTLPSpanExporter,
            )
        except ImportError as exc:  # pragma: no cover
            raise ImportError(
                "opentelemetry-exporter-otlp-proto-http is required to export "
                "traces to an OTLP endpoint.  Install it with:\n"
                "  uv add opentelemetry-exporter-otlp-proto-http"
            ) from exc
        chosen_exporter = OTLPSpanExporter(endpoint=endpoint)
    else:
        chosen_exporter = ConsoleSpanExporter()

    provider.add_span_processor(SimpleSpanProcessor(chosen_exporter))
    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def get_tracer(name: str) -> trace.Tracer:
    """Return a tracer from the most recently configured provider.

    Falls back to the global (no-op until configured) provider.
    """
    if _provider is not None:
        return _provider.get_tracer(name)
    return trace.get_tracer(name)


@contextmanager
def traced_span(tracer: trace.Tracer, name: str, input_value: str = "") -> Iterator[trace.Span]:
    """Run a block inside a span that records OK/ERROR status.

    Exceptions raised in the block (including cancellation) are recorded on
    the span and re-raised.

    Example::

        with traced_span(get_tracer("lecture_rag"), "retrieve", question) as span:
            result = await retriever.retrieve(question)
            span.set_attribute(ATTR_RETRIEVAL_DOCUMENTS, len(result))
    """
    with tracer.start_as_current_span(name, record_exception=False, set_status_on_exception=False) as span:
        if input_value:
            span.set_attribute(ATTR_INPUT_VALUE, input_value)
        try:
            yield span
        except BaseException as exc:
            span.set_status(trace.StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise
        span.set_status(trace.StatusCode.OK)

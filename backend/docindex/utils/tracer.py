"""OpenTelemetry tracing for index operations and embedding requests."""
from contextlib import contextmanager
from typing import Iterator, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.openai import OpenAIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from docindex.utils.logger import logger

TRACER_NAME = "docindex"


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def index_span(
    operation: str,
    index_name: Optional[str] = None,
    tenant_id: Optional[str] = None,
    file_name: Optional[str] = None,
) -> Iterator[trace.Span]:
    """
    Open a span for one index operation.

    Spans are no-ops until `initialize_tracing` installs a provider.

    Args:
        operation: Span name, e.g. "index_slice" or "delete_by_file"
        index_name: Target index
        tenant_id: Tenant the operation is scoped to
        file_name: File the operation is scoped to
    """
    attributes = {"docindex.operation": operation}
    if index_name:
        attributes["docindex.index_name"] = index_name
    if tenant_id:
        attributes["docindex.tenant_id"] = tenant_id
    if file_name:
        attributes["docindex.file_name"] = file_name

    with get_tracer().start_as_current_span(operation, attributes=attributes) as span:
        yield span


def initialize_tracing(
    service_name: str = TRACER_NAME,
    otlp_endpoint: Optional[str] = None,
    tracing_enabled: bool = True,
) -> Optional[TracerProvider]:
    """
    Install a tracer provider for index spans and instrument the OpenAI SDK.

    Args:
        service_name: Service name reported with every span
        otlp_endpoint: OTLP/HTTP endpoint, console export when None
        tracing_enabled: Skip setup entirely when False

    Returns:
        The installed TracerProvider, or None when disabled or setup failed
    """
    if not tracing_enabled:
        logger.info("Tracing is disabled")
        return None

    try:
        tracer_provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
        exporter = OTLPSpanExporter(endpoint=otlp_endpoint) if otlp_endpoint else ConsoleSpanExporter()
        tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(tracer_provider)

        # Embedding requests show up as children of the indexing and query spans
        OpenAIInstrumentor().instrument()

        logger.info(f"Tracing initialized ({'OTLP ' + otlp_endpoint if otlp_endpoint else 'console'})")
        return tracer_provider

    except Exception as e:
        logger.error(f"Failed to initialize tracing: {str(e)}", exc_info=True)
        return None


def shutdown_tracing(tracer_provider: Optional[TracerProvider]) -> None:
    """Flush pending spans and shut the provider down."""
    if tracer_provider:
        try:
            tracer_provider.shutdown()
            logger.info("Tracing shutdown completed")
        except Exception as e:
            logger.warning(f"Error during tracing shutdown: {str(e)}")

import logging
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry import _logs as logs

logger = logging.getLogger(__name__)

_tracing_configured = False


def setup_tracing(service_name: str = "fiberscope"):
    """
    Initializes OpenTelemetry tracing with an OTLP exporter and logging instrumentation.

    Safe to call more than once; only the first call installs providers.
    Until it is called, tracers returned by get_tracer() are no-ops.
    """
    global _tracing_configured
    if _tracing_configured:
        return
    resource = Resource.create({"service.name": service_name})

    # --- Traces Setup ---
    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(trace_provider)

    # --- Logs Setup ---
    log_provider = LoggerProvider(resource=resource)
    log_provider.add_log_record_processor(BatchLogRecordProcessor(OTLPLogExporter()))
    logs.set_logger_provider(log_provider)

    # Attach the OTel handler to the root logger
    logging.getLogger().addHandler(LoggingHandler(logger_provider=log_provider))

    _tracing_configured = True
    logger.info("OpenTelemetry tracing initialized with OTLPLogExporter and OTLPSpanExporter.")


def get_tracer(name: str) -> trace.Tracer:
    """
    Returns a tracer with the specified name.

    Spans are only exported after setup_tracing() has been run.
    """
    return trace.get_tracer(name)

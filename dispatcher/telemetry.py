"""OpenTelemetry wiring for dispatched requests.

Every request is traced as a ``dispatch`` span and counted per tool. Spans
and metrics leave the process only when OTLP export is switched on;
otherwise they stay in local SDK providers and are dropped.
"""

import logging
import os

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider

from dispatcher.config import DispatcherConfig

# Collector outages must not flood the CLI with gRPC retries
logging.getLogger("opentelemetry.exporter.otlp.proto.grpc").setLevel(logging.ERROR)

# Instruments used by record_request/record_session (None until create_metrics)
requests_counter: metrics.Counter | None = None
request_duration: metrics.Histogram | None = None
sessions_counter: metrics.Counter | None = None


def otlp_export_enabled(config: DispatcherConfig) -> bool:
    """True when OTLP_ENABLED=true and the config names a collector."""
    return os.getenv("OTLP_ENABLED", "false").lower() == "true" and bool(
        config.otlp_endpoint
    )


def setup_telemetry(config: DispatcherConfig) -> tuple[trace.Tracer, metrics.Meter]:
    """Install tracer and meter providers for the dispatcher process.

    Dispatch spans and request metrics are tagged with
    ``config.service_name``. They are shipped to ``config.otlp_endpoint``
    only when otlp_export_enabled() says so, which keeps the exporter
    packages (the ``otlp`` extra) optional for plain CLI use.

    Returns:
        (tracer, meter) to hand to Dispatcher and create_metrics()
    """
    resource = Resource.create({SERVICE_NAME: config.service_name})

    if otlp_export_enabled(config):
        # Export spans and metrics to the collector
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
            OTLPMetricExporter,
        )
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        tracer_provider = TracerProvider(resource=resource)
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_endpoint))
        )
        meter_provider = MeterProvider(
            resource=resource,
            metric_readers=[
                PeriodicExportingMetricReader(
                    OTLPMetricExporter(endpoint=config.otlp_endpoint)
                )
            ],
        )
    else:
        # Use no-op providers (in-memory, no export)
        tracer_provider = TracerProvider(resource=resource)
        meter_provider = MeterProvider(resource=resource)

    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)

    return trace.get_tracer(config.service_name), metrics.get_meter(config.service_name)


def create_metrics(meter: metrics.Meter) -> None:
    """Create metric instruments for dispatch tracking.

    Counters:
    - Requests dispatched (by tool and outcome)
    - Sessions created (by tool)

    Histograms:
    - Request duration distribution

    Args:
        meter: OpenTelemetry meter for creating instruments
    """
    global requests_counter, request_duration, sessions_counter

    requests_counter = meter.create_counter(
        "dispatcher_requests_total",
        description="Total requests dispatched",
    )

    request_duration = meter.create_histogram(
        "dispatcher_request_duration_seconds",
        description="Request execution duration",
        unit="s",
    )

    sessions_counter = meter.create_counter(
        "dispatcher_sessions_total",
        description="Total sessions created",
    )


def record_request(tool: str, success: bool, duration_seconds: float) -> None:
    """Record one finished request. No-op until create_metrics() has run."""
    attributes = {"tool": tool, "status": "success" if success else "failed"}
    if requests_counter is not None:
        requests_counter.add(1, attributes)
    if request_duration is not None:
        request_duration.record(duration_seconds, attributes)


def record_session(tool: str) -> None:
    if sessions_counter is not None:
        sessions_counter.add(1, {"tool": tool})

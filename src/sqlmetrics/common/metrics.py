"""Collector self-metrics with OpenTelemetry support."""
from typing import Optional
from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

_meter = metrics.get_meter("sqlmetrics.core")
rows_scanned_counter = _meter.create_counter(
    name="sqlmetrics.rows.scanned",
    description="Number of result rows scanned from servers",
    unit="1",
)
records_emitted_counter = _meter.create_counter(
    name="sqlmetrics.records.emitted",
    description="Number of metric records forwarded to the sink",
    unit="1",
)
task_error_counter = _meter.create_counter(
    name="sqlmetrics.task.errors",
    description="Number of (server, query) tasks that ended with an error",
    unit="1",
)
task_duration_histogram = _meter.create_histogram(
    name="sqlmetrics.task.duration",
    description="Duration of one (server, query) task in seconds",
    unit="s",
)


def configure_metrics(exporter_type: str = "none", otlp_endpoint: Optional[str] = None):
    """Configures the OpenTelemetry Metric Provider.

    Args:
        exporter_type: 'none', 'console', or 'otlp'
        otlp_endpoint: Optional endpoint for OTLP exporter
    """
    if exporter_type == "none":
        return

    reader = None
    if exporter_type == "console":
        reader = PeriodicExportingMetricReader(ConsoleMetricExporter())
    elif exporter_type == "otlp":
        endpoint = otlp_endpoint or "http://localhost:4317"
        reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=endpoint))

    if reader:
        provider = MeterProvider(metric_readers=[reader])
        metrics.set_meter_provider(provider)

"""Monitoring and observability setup.

Tracing and metrics are exported over OTLP when ``OTEL_ENABLED`` is set.
With export disabled the OpenTelemetry API falls back to its no-op
providers, so the instruments below can be used unconditionally.

Exemplars are attached automatically to ``order_amount_histogram`` when it
is recorded inside an active trace, linking large or unusual checkouts to
the request that produced them.
"""
import logging
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
import pyroscope

from config import (
    API_VERSION,
    ENVIRONMENT,
    OTEL_ENABLED,
    OTEL_EXPORTER_OTLP_ENDPOINT,
    PROFILING_ENABLED,
    PYROSCOPE_SERVER,
    SERVICE_NAME,
)

logger = logging.getLogger(__name__)


def init_tracing() -> trace.Tracer:
    """
    Initialize OpenTelemetry tracing.

    Returns:
        Tracer instance
    """
    if OTEL_ENABLED:
        resource = Resource.create({"service.name": SERVICE_NAME})

        tracer_provider = TracerProvider(resource=resource)
        otlp_span_exporter = OTLPSpanExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
        trace.set_tracer_provider(tracer_provider)

        logger.info(f"Tracing initialized with endpoint: {OTEL_EXPORTER_OTLP_ENDPOINT}")

    return trace.get_tracer(__name__)


def init_metrics() -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Returns:
        Meter instance
    """
    if OTEL_ENABLED:
        resource = Resource.create({"service.name": SERVICE_NAME})

        otlp_metric_exporter = OTLPMetricExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        otlp_metric_reader = PeriodicExportingMetricReader(
            otlp_metric_exporter,
            export_interval_millis=5000
        )

        meter_provider = MeterProvider(
            resource=resource,
            metric_readers=[otlp_metric_reader]
        )
        metrics.set_meter_provider(meter_provider)

        logger.info("Metrics initialized with OTLP exporter")

    return metrics.get_meter(__name__)


def init_profiling() -> None:
    """Initialize Pyroscope profiling."""
    if not PROFILING_ENABLED:
        return
    try:
        pyroscope.configure(
            application_name=SERVICE_NAME,
            server_address=PYROSCOPE_SERVER,
            tags={"env": ENVIRONMENT, "version": API_VERSION}
        )
        logger.info(f"Profiling initialized with server: {PYROSCOPE_SERVER}")
    except Exception as e:
        logger.warning(f"Failed to initialize profiling: {e}")


# Initialize tracer and meter
tracer = init_tracing()
meter = init_metrics()

# Catalog metrics
product_views_counter = meter.create_counter(
    "marketplace.products.views",
    description="Total number of product catalog listings served",
    unit="1"
)

product_detail_views_counter = meter.create_counter(
    "marketplace.products.detail_views",
    description="Total number of individual product detail views",
    unit="1"
)

catalog_changes_counter = meter.create_counter(
    "marketplace.catalog.changes",
    description="Category and product mutations by action",
    unit="1"
)

# Cart metrics
cart_additions_counter = meter.create_counter(
    "marketplace.cart.additions",
    description="Total number of items added to cart",
    unit="1"
)

# Order metrics
orders_created_counter = meter.create_counter(
    "marketplace.orders.created",
    description="Total number of orders placed",
    unit="1"
)

order_amount_histogram = meter.create_histogram(
    "marketplace.orders.amount",
    description="Order total in USD",
    unit="USD"
)

order_status_transitions_counter = meter.create_counter(
    "marketplace.orders.status_transitions",
    description="Order status changes by source and target status",
    unit="1"
)

checkout_failures_counter = meter.create_counter(
    "marketplace.checkout.failures",
    description="Checkouts rejected by validation",
    unit="1"
)

# Reviews and scheduling
reviews_counter = meter.create_counter(
    "marketplace.reviews",
    description="Review mutations by action",
    unit="1"
)

schedules_counter = meter.create_counter(
    "marketplace.schedules",
    description="Work schedule mutations by action",
    unit="1"
)

# Audit trail
audit_entries_counter = meter.create_counter(
    "marketplace.audit.entries",
    description="Total number of audit log entries written",
    unit="1"
)

# Security monitoring metrics
auth_failures_counter = meter.create_counter(
    "marketplace.auth.failures",
    description="Total number of authentication failures",
    unit="1"
)

auth_attempts_counter = meter.create_counter(
    "marketplace.auth.attempts",
    description="Total number of authentication attempts",
    unit="1"
)

access_denied_counter = meter.create_counter(
    "marketplace.auth.access_denied",
    description="Total number of role or ownership check failures",
    unit="1"
)

rate_limit_exceeded_counter = meter.create_counter(
    "marketplace.rate_limit.exceeded",
    description="Total number of rate limit violations",
    unit="1"
)

suspicious_activity_counter = meter.create_counter(
    "marketplace.security.suspicious_activity",
    description="Total number of suspicious activity detections",
    unit="1"
)

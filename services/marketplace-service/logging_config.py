"""Structured logging configuration."""
import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger
from opentelemetry import trace

from config import (
    API_VERSION,
    ENVIRONMENT,
    LOG_LEVEL,
    OTEL_ENABLED,
    OTEL_EXPORTER_OTLP_ENDPOINT,
    SERVICE_NAME,
)

# OpenTelemetry logging SDK is still experimental
try:
    from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
    from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
    from opentelemetry.sdk.resources import Resource
    OTLP_LOGGING_AVAILABLE = True
except ImportError:
    OTLP_LOGGING_AVAILABLE = False

# Libraries whose INFO output drowns out business events
NOISY_LOGGERS = ("uvicorn.access", "httpx", "sqlalchemy.engine")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps each record with the active trace and the service identity."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        span = trace.get_current_span()
        if span and span.get_span_context().is_valid:
            ctx = span.get_span_context()
            log_record['trace_id'] = format(ctx.trace_id, '032x')
            log_record['span_id'] = format(ctx.span_id, '016x')

        log_record['service'] = SERVICE_NAME
        log_record['version'] = API_VERSION
        log_record['env'] = ENVIRONMENT

        if 'message' in log_record:
            log_record['msg'] = log_record.pop('message')


def _add_otlp_handler(root_logger: logging.Logger) -> None:
    """Ship log records to the collector alongside traces and metrics."""
    try:
        resource = Resource.create({
            "service.name": SERVICE_NAME,
            "service.version": API_VERSION,
            "deployment.environment": ENVIRONMENT
        })

        logger_provider = LoggerProvider(resource=resource)
        logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True))
        )

        from opentelemetry._logs import set_logger_provider
        set_logger_provider(logger_provider)

        root_logger.addHandler(LoggingHandler(level=logging.INFO, logger_provider=logger_provider))
        logging.info("OTLP log export enabled", extra={"endpoint": OTEL_EXPORTER_OTLP_ENDPOINT})
    except Exception as e:
        logging.warning(f"Failed to configure OTLP logging handler: {e}")


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure structured JSON logging on the root logger.

    Args:
        level: Log level name; defaults to the LOG_LEVEL setting
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level or LOG_LEVEL)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = CustomJsonFormatter(
        '%(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level'}
    )
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if OTEL_ENABLED:
        if OTLP_LOGGING_AVAILABLE:
            _add_otlp_handler(root_logger)
        else:
            logging.warning("OTLP logging SDK not available - logs will only go to stdout")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

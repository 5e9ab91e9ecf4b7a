"""
OpenTelemetry Instrumentation for FastAPI

Works alongside Dapr for automatic span creation and trace enrichment.
Dapr handles trace context propagation and OTLP export.
"""

from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from app.core.logger import logger


def instrument_app(app):
    """
    Instrument FastAPI application with OpenTelemetry for automatic span creation.

    Outgoing write-service calls go through httpx, so instrumenting the
    client gives one span per imported row.

    Args:
        app: FastAPI application instance
    """
    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumented with OpenTelemetry")

        HTTPXClientInstrumentor().instrument()
        logger.info("HTTPX client instrumented with OpenTelemetry")

    except Exception as e:
        logger.error(f"Failed to instrument application: {e}", error=e)

"""Tracing utilities built on OpenTelemetry."""

import asyncio
import functools
import os
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.asyncpg import AsyncPGInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode


def _build_otlp_exporter_kwargs(endpoint_override: Optional[str] = None) -> Dict[str, Any]:
    endpoint = (
        endpoint_override
        or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        or "http://otel-collector:4317"
    )
    headers: Dict[str, str] = {}
    for segment in os.getenv("OTEL_EXPORTER_OTLP_HEADERS", "").split(","):
        if "=" not in segment:
            continue
        key, value = segment.split("=", 1)
        if key.strip():
            headers[key.strip()] = value.strip()

    exporter_kwargs: Dict[str, Any] = {"endpoint": endpoint}
    if headers:
        exporter_kwargs["headers"] = headers
    if endpoint.startswith("http://"):
        exporter_kwargs["insecure"] = True
    return exporter_kwargs


def configure_tracing(service_name: str, otel_exporter: Optional[str] = None, enable_console: bool = False) -> None:
    """Configure OpenTelemetry tracing for a service."""
    resource = Resource.create({
        "service.name": service_name,
        "service.version": "1.0.0",
        "service.namespace": "publishing-access",
        "service.instance.id": os.getenv("HOSTNAME", "unknown"),
        "deployment.environment": os.getenv("ACCESS_ENV", "development"),
    })

    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)

    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(**_build_otlp_exporter_kwargs(otel_exporter)))
    )
    if enable_console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    FastAPIInstrumentor().instrument()
    RedisInstrumentor().instrument()
    AsyncPGInstrumentor().instrument()


def get_tracer(name: str):
    """Get a tracer instance."""
    return trace.get_tracer(name)


def add_span_attributes(**attributes):
    """Attach non-empty attributes to the current span."""
    span = trace.get_current_span()
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)


def add_span_event(name: str, **attributes):
    """Record an event on the current span."""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, {k: str(v) for k, v in attributes.items() if v is not None})


def trace_function(operation_name: Optional[str] = None, **attributes):
    """Decorator to trace a function."""

    def decorator(func):
        name = operation_name or f"{func.__module__}.{func.__name__}"

        def _start(span):
            span.set_attribute("function.name", func.__name__)
            span.set_attribute("function.module", func.__module__)
            for key, value in attributes.items():
                span.set_attribute(key, value)

        def _fail(span, exc: Exception):
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.set_attribute("error", True)
            span.set_attribute("error.message", str(exc))

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with get_tracer(__name__).start_as_current_span(name) as span:
                    _start(span)
                    try:
                        result = await func(*args, **kwargs)
                    except Exception as exc:
                        _fail(span, exc)
                        raise
                    span.set_status(Status(StatusCode.OK))
                    return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with get_tracer(__name__).start_as_current_span(name) as span:
                _start(span)
                try:
                    result = func(*args, **kwargs)
                except Exception as exc:
                    _fail(span, exc)
                    raise
                span.set_status(Status(StatusCode.OK))
                return result

        return wrapper

    return decorator

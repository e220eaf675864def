"""
Observability facade for the Publishing Access Layer.
Integrates logging, metrics, and tracing.
"""

from typing import Optional

from .logging import clear_context, configure_logging, get_logger, set_actor_context, set_request_id
from .metrics import MetricsCollector, get_metrics_collector
from .tracing import add_span_attributes, add_span_event, configure_tracing


class ObservabilityManager:
    """Centralized observability manager for services."""

    def __init__(self, service_name: str, log_level: str = "info",
                 otel_exporter: Optional[str] = None, enable_tracing: bool = False,
                 enable_console: bool = False, metrics: Optional[MetricsCollector] = None):
        self.service_name = service_name
        self.log_level = log_level

        configure_logging(service_name, log_level)
        if enable_tracing:
            configure_tracing(service_name, otel_exporter, enable_console)
        self.metrics = metrics or get_metrics_collector(service_name)

        self.logger = get_logger(f"{service_name}.observability")
        self.logger.info("Observability initialized",
                         log_level=log_level,
                         tracing_enabled=enable_tracing)

    def trace_request(self, request_id: Optional[str] = None,
                      user_id: Optional[str] = None,
                      tenant_id: Optional[str] = None,
                      workspace_id: Optional[str] = None):
        """Bind request and actor context for logs and spans."""
        if request_id:
            set_request_id(request_id)
        set_actor_context(user_id, tenant_id, workspace_id)
        add_span_attributes(
            request_id=request_id,
            user_id=user_id,
            tenant_id=tenant_id,
            workspace_id=workspace_id
        )

    def clear_request_context(self):
        """Clear request context."""
        clear_context()

    def log_error(self, error_type: str, error_message: str, **kwargs):
        """Log error with full context."""
        self.logger.error(
            "Error occurred",
            error_type=error_type,
            error_message=error_message,
            **kwargs
        )
        self.metrics.record_error(error_type)
        add_span_event("error", error_type=error_type, error_message=error_message)

    def log_business_event(self, event_type: str, **kwargs):
        """Log business event with full context."""
        self.logger.info(
            "Business event",
            event_type=event_type,
            **kwargs
        )
        self.metrics.record_business_event(event_type)
        add_span_event("business_event", event_type=event_type, **kwargs)

    def measure_operation(self, operation_name: str, **labels):
        """Context manager to measure operation performance."""
        return self.metrics.time_operation(operation_name, **labels)


def get_observability_manager(service_name: str, **kwargs) -> ObservabilityManager:
    """Get an observability manager for a service."""
    return ObservabilityManager(service_name, **kwargs)

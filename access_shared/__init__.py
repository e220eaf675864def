"""
Shared utilities for the Publishing Access Layer.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace and actor correlation
- metrics: Prometheus metrics helpers
- tracing: OpenTelemetry tracing config
- observability: Facade tying logging, metrics and tracing together
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton (health, metrics, error handlers)

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into access_shared/.
"""

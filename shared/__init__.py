"""
Shared utilities for the page render service.

This package holds the building blocks the service is assembled from:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- tracing: OpenTelemetry tracing config
- errors: Canonical error types and responses
- retry: Retry decorator for async calls
- circuit_breaker: Resilient external call protection
- base_service: FastAPI service scaffolding

Do not import from service packages into shared/.
"""

"""
Shared utilities for the Conditional Container service.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request/container correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Backoff calculation and polling helpers
- base_service: FastAPI service skeleton with health and metrics routes

Any cross-service logic should live here to avoid import cycles. Do not
import from service packages into shared/.
"""

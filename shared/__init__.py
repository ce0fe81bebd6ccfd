"""
Shared utilities for the UI Rules layer.

This package aggregates common building blocks consumed by services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Resilient external call protection
- base_service: FastAPI service skeleton (middleware, health, metrics)

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service packages into shared/.
"""

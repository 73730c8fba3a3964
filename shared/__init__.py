"""
Shared utilities for the dataset gateway.

Common building blocks consumed by the gateway service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Resilient external call protection
- base_service: FastAPI application skeleton

Do not import from service packages into shared/.
"""

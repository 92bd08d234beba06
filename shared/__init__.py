"""
Shared utilities for the LTI Consumer services.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace and Tool correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Protection for calls to Tool-hosted endpoints

Do not import from service_* packages into shared/.
"""

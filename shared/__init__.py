"""
Shared utilities for the Ledger Paywall Access Layer.

This package aggregates common building blocks consumed by services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton (health, metrics, error handling)
- test_helpers: Redis client double for tests

Modules here never import from service packages.
"""

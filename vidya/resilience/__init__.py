"""Resilience module for circuit breakers and provider health."""

from vidya.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
)
from vidya.resilience.provider_health import ProviderHealth

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitState",
    "ProviderHealth",
]

"""Shared provider health: circuit breakers and cached healthy endpoints.

One ``ProviderHealth`` instance is shared by every request handler. It
owns a breaker per provider and, for providers with several candidate
endpoints, a pointer to the endpoint that last answered correctly. The
pointer is replaced only through compare-and-set so two handlers that
race on a failover cannot clobber each other's newer result.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from vidya.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EndpointPointer:
    """Cached healthy endpoint for one provider."""

    url: str
    recorded_at: float


@dataclass(frozen=True)
class ProbeResult:
    """Cached outcome of a health probe against one endpoint."""

    healthy: bool
    checked_at: float


class ProviderHealth:
    """Breakers, endpoint pointers and probe cache for all providers.

    Args:
        failure_threshold: Consecutive failures that open a breaker
        cooldown: Seconds a breaker stays open
        endpoint_ttl: Seconds a cached endpoint or probe result stays valid
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        cooldown: float = 600.0,
        endpoint_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.cooldown = cooldown
        self.endpoint_ttl = endpoint_ttl
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._endpoints: dict[str, EndpointPointer] = {}
        self._probes: dict[str, ProbeResult] = {}
        self._mutex = threading.Lock()

    def now(self) -> float:
        return self._clock()

    # Breakers

    def breaker(self, provider: str, call_timeout: float = 5.0) -> CircuitBreaker:
        """Get or create the breaker for ``provider``."""
        with self._mutex:
            breaker = self._breakers.get(provider)
            if breaker is None:
                breaker = CircuitBreaker(
                    provider,
                    CircuitBreakerConfig(
                        failure_threshold=self.failure_threshold,
                        cooldown=self.cooldown,
                        call_timeout=call_timeout,
                    ),
                    clock=self._clock,
                )
                self._breakers[provider] = breaker
            return breaker

    def is_available(self, provider: str) -> bool:
        """Whether the provider's breaker would admit a call now."""
        breaker = self._breakers.get(provider)
        return breaker is None or breaker.allows_calls()

    # Endpoint pointer

    def preferred_endpoint(self, provider: str) -> str | None:
        """Cached healthy endpoint, or None when absent or expired."""
        return self._live_url(provider)

    def _live_url(self, provider: str) -> str | None:
        pointer = self._endpoints.get(provider)
        if pointer is None or self._clock() - pointer.recorded_at > self.endpoint_ttl:
            return None
        return pointer.url

    def compare_and_set_endpoint(
        self,
        provider: str,
        expected: str | None,
        new: str | None,
    ) -> bool:
        """Replace the endpoint pointer only if it still equals ``expected``.

        Args:
            provider: Provider name
            expected: Endpoint the caller last observed (None for unset)
            new: Endpoint to store, None to clear

        Returns:
            True if the pointer was updated
        """
        with self._mutex:
            current_url = self._live_url(provider)
            if current_url != expected:
                return False
            if new is None:
                self._endpoints.pop(provider, None)
            else:
                self._endpoints[provider] = EndpointPointer(url=new, recorded_at=self._clock())
        if new != expected:
            logger.info(f"Preferred endpoint for '{provider}': {expected} -> {new}")
        return True

    def demote_endpoint(self, provider: str, url: str) -> bool:
        """Clear the pointer if it still names ``url``."""
        return self.compare_and_set_endpoint(provider, expected=url, new=None)

    # Probe cache

    def cached_probe(self, url: str) -> bool | None:
        """Cached probe outcome for ``url``, None when unknown or stale."""
        result = self._probes.get(url)
        if result is None or self._clock() - result.checked_at > self.endpoint_ttl:
            return None
        return result.healthy

    def record_probe(self, url: str, healthy: bool) -> None:
        with self._mutex:
            self._probes[url] = ProbeResult(healthy=healthy, checked_at=self._clock())

    def snapshot(self) -> dict[str, Any]:
        """Current breaker and endpoint state for diagnostics."""
        return {
            "breakers": {
                name: breaker.get_stats_summary() for name, breaker in self._breakers.items()
            },
            "endpoints": {name: pointer.url for name, pointer in self._endpoints.items()},
            "probes": {url: probe.healthy for url, probe in self._probes.items()},
        }

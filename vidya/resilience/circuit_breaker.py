"""Circuit breaker for translation and other external providers.

A breaker opens after a run of consecutive failures and rejects calls
until a cooldown has elapsed, then lets trial calls through (half-open)
until enough of them succeed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Rejecting calls until cooldown elapses
    HALF_OPEN = "half_open"  # Trial calls allowed


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 3  # Consecutive failures before opening
    success_threshold: int = 1  # Half-open successes before closing
    cooldown: float = 600.0  # Seconds open before a trial call
    call_timeout: float = 5.0  # Max seconds per call


@dataclass
class CircuitBreakerStats:
    """Counters for one breaker."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    last_failure_at: float | None = None
    last_state_change_at: float = 0.0


class CircuitBreakerError(Exception):
    """Raised when a breaker is open and rejects a call."""

    def __init__(self, message: str, state: CircuitState) -> None:
        super().__init__(message)
        self.state = state


class CircuitBreaker:
    """Circuit breaker protecting one provider.

    Args:
        service_name: Name of the protected provider
        config: Breaker thresholds and timeouts
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        service_name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service_name = service_name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._stats = CircuitBreakerStats(last_state_change_at=clock())
        self._lock = asyncio.Lock()

        logger.debug(
            f"Circuit breaker created for '{service_name}' "
            f"(failure_threshold={self.config.failure_threshold}, "
            f"cooldown={self.config.cooldown}s)"
        )

    @property
    def state(self) -> CircuitState:
        """Current state, without applying the cooldown transition."""
        return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        return self._stats

    def allows_calls(self) -> bool:
        """Whether a call made now would be let through."""
        return self._state is not CircuitState.OPEN or self._cooldown_elapsed()

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute ``func`` under breaker protection.

        Args:
            func: Coroutine function to call
            *args: Function arguments
            **kwargs: Function keyword arguments

        Returns:
            Function result

        Raises:
            CircuitBreakerError: If the circuit is open
            TimeoutError: If the call exceeds ``call_timeout``
            Exception: Whatever ``func`` raises
        """
        await self._admit()

        try:
            result = await asyncio.wait_for(func(*args, **kwargs), timeout=self.config.call_timeout)
        except TimeoutError:
            logger.warning(
                f"⏱️ Call to '{self.service_name}' timed out after {self.config.call_timeout}s"
            )
            await self.record_failure()
            raise
        except Exception as e:
            logger.warning(f"❌ Call to '{self.service_name}' failed: {e.__class__.__name__}: {e}")
            await self.record_failure()
            raise

        await self.record_success()
        return result

    async def _admit(self) -> None:
        async with self._lock:
            if self._state is not CircuitState.OPEN:
                return
            if self._cooldown_elapsed():
                logger.info(f"⚡ Circuit '{self.service_name}' entering HALF_OPEN state")
                self._transition(CircuitState.HALF_OPEN)
                self._stats.consecutive_successes = 0
                return
            self._stats.rejected_calls += 1
            raise CircuitBreakerError(
                f"Circuit '{self.service_name}' is OPEN - rejecting call",
                self._state,
            )

    async def record_success(self) -> None:
        """Count a success, closing a half-open circuit at the threshold."""
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.successful_calls += 1
            self._stats.consecutive_failures = 0
            self._stats.consecutive_successes += 1

            if (
                self._state is CircuitState.HALF_OPEN
                and self._stats.consecutive_successes >= self.config.success_threshold
            ):
                logger.info(f"✅ Circuit '{self.service_name}' CLOSED (service recovered)")
                self._transition(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        """Count a failure, opening the circuit at the threshold."""
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.failed_calls += 1
            self._stats.consecutive_failures += 1
            self._stats.consecutive_successes = 0
            self._stats.last_failure_at = self._clock()

            if self._state is CircuitState.HALF_OPEN:
                logger.warning(f"⚠️ Circuit '{self.service_name}' HALF_OPEN failed - back to OPEN")
                self._transition(CircuitState.OPEN)
            elif (
                self._state is CircuitState.CLOSED
                and self._stats.consecutive_failures >= self.config.failure_threshold
            ):
                logger.error(
                    f"🔴 Circuit '{self.service_name}' OPEN "
                    f"({self._stats.consecutive_failures} consecutive failures)"
                )
                self._transition(CircuitState.OPEN)

    def reset(self) -> None:
        """Force the circuit closed and clear failure counters."""
        self._state = CircuitState.CLOSED
        self._stats.consecutive_failures = 0
        self._stats.consecutive_successes = 0
        self._stats.last_state_change_at = self._clock()

    def _cooldown_elapsed(self) -> bool:
        if self._stats.last_failure_at is None:
            return True
        return self._clock() - self._stats.last_failure_at >= self.config.cooldown

    def _transition(self, state: CircuitState) -> None:
        self._state = state
        self._stats.last_state_change_at = self._clock()

    def get_stats_summary(self) -> dict[str, Any]:
        """Get summary of circuit statistics."""
        return {
            "service_name": self.service_name,
            "state": self._state.value,
            "total_calls": self._stats.total_calls,
            "successful_calls": self._stats.successful_calls,
            "failed_calls": self._stats.failed_calls,
            "rejected_calls": self._stats.rejected_calls,
            "consecutive_failures": self._stats.consecutive_failures,
            "success_rate": (
                self._stats.successful_calls / self._stats.total_calls
                if self._stats.total_calls > 0
                else 0
            ),
        }

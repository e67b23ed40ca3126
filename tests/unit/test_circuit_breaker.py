"""Tests for circuit breaker resilience patterns."""

from __future__ import annotations

import asyncio

import pytest

from vidya.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def failing_func() -> str:
    raise ValueError("Service error")


async def success_func() -> str:
    return "success"


class TestCircuitBreakerConfig:
    """Test suite for CircuitBreakerConfig."""

    def test_default_config(self) -> None:
        """Test default configuration values."""
        config = CircuitBreakerConfig()

        assert config.failure_threshold == 3
        assert config.success_threshold == 1
        assert config.cooldown == 600.0
        assert config.call_timeout == 5.0


class TestCircuitBreaker:
    """Test suite for CircuitBreaker."""

    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture
    def breaker(self, clock: FakeClock) -> CircuitBreaker:
        """Create circuit breaker with test configuration."""
        config = CircuitBreakerConfig(failure_threshold=3, cooldown=600.0, call_timeout=1.0)
        return CircuitBreaker("test-service", config, clock=clock)

    @pytest.mark.asyncio
    async def test_initial_state(self, breaker: CircuitBreaker) -> None:
        """Test circuit starts in CLOSED state."""
        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.total_calls == 0
        assert breaker.allows_calls()

    @pytest.mark.asyncio
    async def test_successful_call(self, breaker: CircuitBreaker) -> None:
        """Test successful call through circuit breaker."""
        result = await breaker.call(success_func)

        assert result == "success"
        assert breaker.stats.total_calls == 1
        assert breaker.stats.successful_calls == 1
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failed_call(self, breaker: CircuitBreaker) -> None:
        """Test failed call increments failure counter and re-raises."""
        with pytest.raises(ValueError):
            await breaker.call(failing_func)

        assert breaker.stats.failed_calls == 1
        assert breaker.stats.consecutive_failures == 1
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker: CircuitBreaker) -> None:
        """Three consecutive failures open the circuit."""
        for _ in range(3):
            with pytest.raises(ValueError):
                await breaker.call(failing_func)

        assert breaker.state == CircuitState.OPEN
        assert not breaker.allows_calls()

    @pytest.mark.asyncio
    async def test_success_resets_consecutive_failures(self, breaker: CircuitBreaker) -> None:
        """Failures must be consecutive to open the circuit."""
        for _ in range(2):
            with pytest.raises(ValueError):
                await breaker.call(failing_func)
        await breaker.call(success_func)
        with pytest.raises(ValueError):
            await breaker.call(failing_func)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_open_circuit_rejects_calls(self, breaker: CircuitBreaker) -> None:
        """An open circuit rejects without calling the function."""
        for _ in range(3):
            with pytest.raises(ValueError):
                await breaker.call(failing_func)

        called = False

        async def tracked() -> str:
            nonlocal called
            called = True
            return "x"

        with pytest.raises(CircuitBreakerError) as exc_info:
            await breaker.call(tracked)

        assert exc_info.value.state == CircuitState.OPEN
        assert not called
        assert breaker.stats.rejected_calls == 1

    @pytest.mark.asyncio
    async def test_half_open_after_cooldown_then_closes(
        self, breaker: CircuitBreaker, clock: FakeClock
    ) -> None:
        """After the cooldown a trial call is admitted and closes the circuit."""
        for _ in range(3):
            with pytest.raises(ValueError):
                await breaker.call(failing_func)

        clock.advance(599.0)
        assert not breaker.allows_calls()

        clock.advance(1.0)
        assert breaker.allows_calls()
        assert await breaker.call(success_func) == "success"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        """A failed trial call sends the circuit straight back to OPEN."""
        for _ in range(3):
            with pytest.raises(ValueError):
                await breaker.call(failing_func)

        clock.advance(600.0)
        with pytest.raises(ValueError):
            await breaker.call(failing_func)

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerError):
            await breaker.call(success_func)

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, clock: FakeClock) -> None:
        """Calls exceeding call_timeout fail with TimeoutError."""
        breaker = CircuitBreaker(
            "slow-service",
            CircuitBreakerConfig(failure_threshold=1, call_timeout=0.05),
            clock=clock,
        )

        async def slow() -> str:
            await asyncio.sleep(1.0)
            return "late"

        with pytest.raises(TimeoutError):
            await breaker.call(slow)

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_reset(self, breaker: CircuitBreaker) -> None:
        """Test manual circuit reset."""
        for _ in range(3):
            with pytest.raises(ValueError):
                await breaker.call(failing_func)

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_stats_summary(self, breaker: CircuitBreaker) -> None:
        """Test statistics summary generation."""
        await breaker.call(success_func)
        with pytest.raises(ValueError):
            await breaker.call(failing_func)

        summary = breaker.get_stats_summary()

        assert summary["service_name"] == "test-service"
        assert summary["state"] == "closed"
        assert summary["total_calls"] == 2
        assert summary["success_rate"] == 0.5

"""
Unit tests for the circuit breaker guarding remote catalog calls.
"""

import pytest
from unittest.mock import AsyncMock

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestCircuitBreaker:
    """Test cases for CircuitBreaker."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def breaker(self, clock):
        return CircuitBreaker(failure_threshold=2, recovery_timeout=30.0, name="catalog", clock=clock)

    @pytest.mark.asyncio
    async def test_passes_results_through(self, breaker):
        func = AsyncMock(return_value=["effect"])

        assert await breaker.call(func, "v1") == ["effect"]
        func.assert_awaited_once_with("v1")
        assert breaker.get_state()["state"] == "closed"

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker):
        """Test consecutive failures open the circuit."""
        func = AsyncMock(side_effect=ConnectionError("down"))

        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(func)

        assert breaker.is_open() is True
        with pytest.raises(CircuitBreakerOpenException):
            await breaker.call(func)
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_half_open_after_recovery_timeout(self, breaker, clock):
        """Test a successful probe closes the circuit again."""
        failing = AsyncMock(side_effect=ConnectionError("down"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(failing)

        clock.now += 31

        assert await breaker.call(AsyncMock(return_value="ok")) == "ok"
        assert breaker.is_open() is False
        assert breaker.get_state()["failure_count"] == 0

    @pytest.mark.asyncio
    async def test_failed_probe_reopens(self, breaker, clock):
        failing = AsyncMock(side_effect=ConnectionError("down"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(failing)

        clock.now += 31
        with pytest.raises(ConnectionError):
            await breaker.call(failing)

        assert breaker.is_open() is True

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        with pytest.raises(ConnectionError):
            await breaker.call(AsyncMock(side_effect=ConnectionError("down")))
        await breaker.call(AsyncMock(return_value=None))
        with pytest.raises(ConnectionError):
            await breaker.call(AsyncMock(side_effect=ConnectionError("down")))

        assert breaker.is_open() is False

"""
Reliability utilities for store access.

Includes the Circuit Breaker pattern and a bounded-call helper that turns
infrastructure failures into ``StoreUnavailable``.
"""

import time
import asyncio
import logging
from typing import Awaitable, Callable, Any

from sqlalchemy.exc import OperationalError, InterfaceError

from tickto.app.core.config import settings
from tickto.app.core.exceptions import StoreUnavailable

logger = logging.getLogger("tickto.reliability")

# Failures that mean the store itself is unreachable
INFRASTRUCTURE_ERRORS = (OperationalError, InterfaceError, OSError, asyncio.TimeoutError)


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    If 'failure_threshold' failures occur within 'reset_timeout', 
    the circuit opens and rejects calls for 'reset_timeout' seconds.
    """
    def __init__(self, failure_threshold: int = 5, reset_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED" # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.monotonic() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError("Circuit is OPEN")

        try:
            result = await func(*args, **kwargs)
        except INFRASTRUCTURE_ERRORS:
            self.record_failure()
            raise
        if self.state == "HALF_OPEN" or self.failures:
            self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.monotonic()
        if self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit opened after %d failures", self.failures)
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


# Global instance guarding the trip store
store_circuit_breaker = CircuitBreaker(
    failure_threshold=settings.store_failure_threshold,
    reset_timeout=settings.store_reset_timeout,
)


async def bounded_store_call(awaitable_factory: Callable[[], Awaitable[Any]], timeout: float = None) -> Any:
    """
    Run one store call under the circuit breaker and a timeout.
    
    Args:
        awaitable_factory: Zero-argument callable producing the store coroutine
        timeout: Seconds before giving up (defaults to settings.store_timeout_seconds)
    
    Raises:
        StoreUnavailable: On timeout, connection failure or an open circuit
    """
    limit = timeout if timeout is not None else settings.store_timeout_seconds

    async def _guarded():
        return await asyncio.wait_for(awaitable_factory(), timeout=limit)

    try:
        return await store_circuit_breaker.call(_guarded)
    except CircuitOpenError as e:
        raise StoreUnavailable("circuit open") from e
    except asyncio.TimeoutError as e:
        raise StoreUnavailable(f"timed out after {limit}s") from e
    except (OperationalError, InterfaceError, OSError) as e:
        raise StoreUnavailable(f"{type(e).__name__}: {e}") from e

"""
Reliability utilities.

Circuit breaker guarding calls to the payment provider.
"""

import time
import logging
from typing import Callable, Any

logger = logging.getLogger(__name__)


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    After 'failure_threshold' consecutive failures the circuit opens and
    rejects calls for 'reset_timeout' seconds, then lets one trial call through.
    """
    def __init__(self, failure_threshold: int = 5, reset_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED" # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.monotonic() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError("Circuit is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.monotonic()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit opened after %d failures", self.failures)
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"

"""
Circuit breakers for the engine's two out-of-process collaborators.

The database and the payment gateway each sit behind a
:class:`CircuitBreaker`.  Consecutive failures of the expected kind open
the circuit; while open, calls are refused with
:class:`CircuitBreakerError` (mapped to ``503`` + ``Retry-After``) instead
of queueing on a dead dependency.  Once ``recovery_timeout`` has passed a
single probe is admitted: success closes the circuit, failure re-opens it.

   CLOSED ──(threshold failures)──▶ OPEN ──(timeout)──▶ HALF_OPEN
     ▲                                                     │
     └──────────────────(probe succeeds)───────────────────┘

Nothing here retries.  A failed charge is reported to the investor, who
repeats the payment step; the gateway de-duplicates on the investment id.
"""

import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Tuple, Type

from fundry.core.config import settings

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """A call was refused because ``name``'s circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit '{name}' is open; calls refused for another {retry_after:.1f}s"
        )


class CircuitBreaker:
    """
    Async circuit breaker.

    Parameters
    ----------
    name : str
        Identifier reported by ``/health`` (``"database"``, ``"payment-gateway"``).
    failure_threshold : int
        Consecutive counted failures that open the circuit.
    recovery_timeout : float
        Seconds the circuit stays open before a probe is admitted.
    expected_exceptions : tuple
        Exception types that count as failures.  Anything else (a
        declined card, a constraint violation) propagates without touching
        the circuit.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions
        self.reset()

    def reset(self) -> None:
        """Close the circuit and forget all counters."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = 0.0

    def _seconds_since_failure(self) -> float:
        return time.monotonic() - self._last_failure_time

    def _move_to(self, state: CircuitState, level: int, reason: str) -> None:
        if state != self._state:
            logger.log(
                level, "Circuit '%s' %s → %s: %s", self.name, self._state.value, state.value, reason
            )
        self._state = state

    @property
    def state(self) -> CircuitState:
        """Current state; an expired OPEN circuit reads as HALF_OPEN."""
        if (
            self._state == CircuitState.OPEN
            and self._seconds_since_failure() >= self.recovery_timeout
        ):
            self._move_to(CircuitState.HALF_OPEN, logging.INFO, "admitting one probe")
        return self._state

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Await ``func(*args, **kwargs)`` unless the circuit is open."""
        if self.state == CircuitState.OPEN:
            remaining = self.recovery_timeout - self._seconds_since_failure()
            raise CircuitBreakerError(self.name, max(remaining, 0.0))

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions as exc:
            self._on_failure(exc)
            raise

        self._on_success()
        return result

    def _on_success(self) -> None:
        self._move_to(
            CircuitState.CLOSED,
            logging.INFO,
            f"probe succeeded after {self._failure_count} failure(s)",
        )
        self._failure_count = 0
        self._success_count += 1

    def _on_failure(self, exc: Exception) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._move_to(
                CircuitState.OPEN,
                logging.ERROR,
                f"{type(exc).__name__} (failure {self._failure_count}); "
                f"refusing calls for {self.recovery_timeout:.0f}s",
            )
        else:
            logger.warning(
                "Circuit '%s' failure %d/%d: %s",
                self.name,
                self._failure_count,
                self.failure_threshold,
                exc,
            )

    def get_status(self) -> dict:
        """Snapshot for the ``/health`` endpoint."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "recovery_timeout_s": self.recovery_timeout,
        }


# ── Global circuit breaker instances ──

db_circuit_breaker = CircuitBreaker(
    name="database",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=(ConnectionError, OSError, TimeoutError),
)

# HttpPaymentGateway converts httpx transport errors to these two types.
payment_circuit_breaker = CircuitBreaker(
    name="payment-gateway",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=(ConnectionError, TimeoutError),
)

BREAKERS: Dict[str, CircuitBreaker] = {
    "database": db_circuit_breaker,
    "payment_gateway": payment_circuit_breaker,
}


def breaker_report() -> Dict[str, dict]:
    return {key: breaker.get_status() for key, breaker in BREAKERS.items()}

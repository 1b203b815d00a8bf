import inspect
import time
from enum import Enum
from typing import Callable, Any, Optional, Tuple, Type
from sqlalchemy.exc import SQLAlchemyError
import structlog

from donation_ledger.core.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised instead of calling the store while the circuit is open"""
    pass


class CircuitBreaker:
    """Fail-fast guard in front of the backing store.

    The breaker never retries. It counts consecutive store failures and, past
    the threshold, rejects calls until the recovery timeout has elapsed; the
    next call is then let through as a probe (half-open).
    """

    def __init__(self,
                 name: str,
                 failure_threshold: int = 5,
                 recovery_timeout_seconds: float = 30,
                 expected_exceptions: Tuple[Type[BaseException], ...] = (SQLAlchemyError, OSError)):
        """
        Args:
            name: Label used in logs
            failure_threshold: Consecutive failures before opening the circuit
            recovery_timeout_seconds: Time to wait before probing again
            expected_exceptions: Exception types counted as store failures
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout_seconds = recovery_timeout_seconds
        self.expected_exceptions = expected_exceptions

        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self.state = CircuitState.CLOSED

    def _should_attempt_reset(self) -> bool:
        if self.state != CircuitState.OPEN or self.opened_at is None:
            return False
        return time.monotonic() - self.opened_at >= self.recovery_timeout_seconds

    def _on_success(self):
        self.failure_count = 0
        self.opened_at = None

        if self.state != CircuitState.CLOSED:
            logger.info("Circuit breaker closed after successful call", breaker=self.name)
            self.state = CircuitState.CLOSED

    def _on_failure(self, exception: BaseException):
        self.failure_count += 1

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                logger.warning("Circuit breaker opened",
                               breaker=self.name,
                               failure_count=self.failure_count,
                               threshold=self.failure_threshold,
                               error=str(exception))
            self.state = CircuitState.OPEN
            self.opened_at = time.monotonic()

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """Run func (sync or async) under breaker protection"""
        if self._should_attempt_reset():
            logger.info("Circuit breaker attempting half-open state", breaker=self.name)
            self.state = CircuitState.HALF_OPEN

        if self.state == CircuitState.OPEN:
            raise CircuitBreakerError(f"Circuit breaker '{self.name}' is OPEN - store temporarily unavailable")

        try:
            if inspect.iscoroutinefunction(func):
                result = await func(*args, **kwargs)
            else:
                result = func(*args, **kwargs)
        except self.expected_exceptions as e:
            self._on_failure(e)
            raise

        self._on_success()
        return result

    def reset(self):
        """Force the breaker back to CLOSED"""
        self.failure_count = 0
        self.opened_at = None
        self.state = CircuitState.CLOSED

    def get_state(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout_seconds": self.recovery_timeout_seconds,
        }


# Global circuit breaker shared by every store gateway
db_circuit_breaker = CircuitBreaker(
    name="ledger-store",
    failure_threshold=settings.store_failure_threshold,
    recovery_timeout_seconds=settings.store_recovery_timeout_seconds,
)

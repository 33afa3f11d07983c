"""
Retry policy, cancellation and correlation-aware logging

Provides the backoff policy applied uniformly by the RPC engine, a
cancellation token shared between a caller and in-flight requests, and
structured logging with correlation IDs for request tracing.
"""

import logging
import random
import threading
import uuid
import contextvars
from dataclasses import dataclass
from typing import Optional

from ..config import config as global_config

logger = logging.getLogger(__name__)

# Context variable for correlation ID (thread-safe)
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return uuid.uuid4().hex[:12]


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """Set the correlation ID in context. Returns token for reset."""
    return _correlation_id.set(correlation_id)


class CorrelationContext:
    """
    Context manager for correlation ID scoping.

    Usage:
        with CorrelationContext("overview") as cid:
            logger.info(f"[{cid}] Loading account")
            balance = tokens.get_balance("alice")
    """

    def __init__(self, prefix: Optional[str] = None):
        self.correlation_id = generate_correlation_id()
        if prefix:
            self.correlation_id = f"{prefix}_{self.correlation_id}"
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = set_correlation_id(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _correlation_id.reset(self._token)


def _log_with_correlation(
    level: int,
    message: str,
    operation_name: str,
    attempt: Optional[int] = None,
    max_retries: Optional[int] = None,
    **extra
):
    """
    Log message with correlation ID and structured context.

    Args:
        level: Logging level (logging.INFO, logging.WARNING, etc.)
        message: Log message
        operation_name: Name of the operation being executed
        attempt: Current attempt number (1-indexed)
        max_retries: Maximum number of attempts
        **extra: Additional context fields
    """
    cid = get_correlation_id()

    parts = []
    if cid:
        parts.append(f"[{cid}]")
    parts.append(f"[{operation_name}]")
    if attempt is not None and max_retries is not None:
        parts.append(f"[{attempt}/{max_retries}]")
    parts.append(message)

    extra_context = {
        "correlation_id": cid,
        "operation": operation_name,
        "attempt": attempt,
        "max_retries": max_retries,
        **extra
    }

    logger.log(level, " ".join(parts), extra=extra_context)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff policy

    The delay before retry n (0-indexed attempt that just failed) is
    base_delay * 2**n, plus up to jitter * that amount of random slack.

    Attributes:
        max_attempts: Total attempts, including the first
        base_delay: Seconds before the first retry
        jitter: Fraction of the delay added at random (0 = deterministic)
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    jitter: float = 0.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.jitter < 0:
            raise ValueError("jitter must be >= 0")

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        rpc = global_config.rpc
        return cls(
            max_attempts=max(1, rpc.max_retries),
            base_delay=rpc.retry_delay_seconds,
            jitter=rpc.retry_jitter,
        )

    def delay_for(self, attempt: int) -> float:
        delay = self.base_delay * (2 ** attempt)
        if self.jitter:
            delay += random.uniform(0, self.jitter * delay)
        return delay

    def has_next(self, attempt: int) -> bool:
        """Whether another attempt follows the 0-indexed `attempt`"""
        return attempt < self.max_attempts - 1


class CancellationToken:
    """
    Cooperative cancellation shared between a caller and its requests

    Cancelling wakes any backoff wait immediately and makes in-flight
    requests return RequestCancelled to their caller.

    Usage:
        token = CancellationToken()
        threading.Timer(2.0, token.cancel).start()
        rpc.find("tokens", "balances", {"account": "alice"}, cancel_token=token)
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; True if cancelled meanwhile"""
        return self._event.wait(timeout)

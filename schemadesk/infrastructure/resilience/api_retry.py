"""Service for executing a single network exchange with automatic retries.

Each attempt runs under its own deadline. Transient failures (transport
errors, timeouts and 5xx responses) are retried with linear or exponential
backoff; client errors (4xx) surface immediately.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from schemadesk.domain.events.api_events import EventDispatcher, RetryScheduled, log_event
from schemadesk.domain.models.api import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_RETRY_POLICY = RetryPolicy(max_retries=3, delay_ms=1000, backoff="linear")


# --- Custom Exceptions ---

class HttpStatusError(Exception):
    """Raised by an attempt to hand a failed HTTP response to the executor."""
    def __init__(self, response: httpx.Response):
        self.response = response
        self.status = response.status_code
        super().__init__(f"HTTP {response.status_code}: {response.reason_phrase}")


class AttemptTimeoutError(Exception):
    """Raised when a single attempt overruns its deadline."""
    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Request timeout after {timeout_ms}ms")


class MaxRetryError(Exception):
    """Exception raised when max retries are exceeded."""
    def __init__(self, original_exception: Exception, attempts: int):
        self.original_exception = original_exception
        self.attempts = attempts
        super().__init__(f"Max retries exceeded after {attempts} attempts. Last error: {original_exception}")


RETRYABLE_EXCEPTIONS = (HttpStatusError, AttemptTimeoutError, httpx.TransportError)


# --- Retry Service ---

class RetryExecutor:
    """Runs an attempt function until it succeeds, fails permanently, or retries run out."""

    def __init__(
        self,
        default_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        event_dispatcher: Optional[EventDispatcher] = None,
    ):
        """Initializes the RetryExecutor.

        Args:
            default_policy: Policy used for fields a call leaves unset.
            sleep: Coroutine used for backoff waits.
            event_dispatcher: Receives RetryScheduled events.
        """
        self.default_policy = default_policy.resolve(DEFAULT_RETRY_POLICY)
        self._sleep = sleep
        self._dispatch = event_dispatcher or log_event
        logger.info(
            f"RetryExecutor initialized: max_retries={self.default_policy.max_retries}, "
            f"delay={self.default_policy.delay_ms}ms, backoff={self.default_policy.backoff}"
        )

    @staticmethod
    def compute_delay_ms(policy: RetryPolicy, attempt: int) -> int:
        """Delay before the retry that follows zero-based ``attempt``."""
        delay = policy.delay_ms or 0
        if policy.backoff == "exponential":
            return delay * (2 ** attempt)
        return delay * (attempt + 1)

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """Client errors never retry; transport, timeout and server errors do."""
        if not isinstance(error, RETRYABLE_EXCEPTIONS):
            return False
        status = getattr(error, "status", None)
        if status is not None and 400 <= status < 500:
            return False
        return True

    async def _run_attempt(self, attempt_fn: Callable[[], Awaitable[Any]], timeout_ms: Optional[int]) -> Any:
        if timeout_ms is None or timeout_ms <= 0:
            return await attempt_fn()
        try:
            return await asyncio.wait_for(attempt_fn(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            raise AttemptTimeoutError(timeout_ms) from e

    async def execute(
        self,
        attempt_fn: Callable[[], Awaitable[Any]],
        timeout_ms: Optional[int] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> Any:
        """Executes ``attempt_fn`` with per-attempt deadline and backoff retries.

        Args:
            attempt_fn: Zero-argument coroutine factory performing one attempt.
            timeout_ms: Deadline for each attempt; None or 0 disables it.
            policy: Call specific policy; unset fields use the default policy.

        Returns:
            The result of the first successful attempt.

        Raises:
            MaxRetryError: If every attempt failed with a retryable error.
            Exception: The first non-retryable error, unchanged.
        """
        effective = (policy or RetryPolicy()).resolve(self.default_policy)
        max_retries = max(0, effective.max_retries or 0)
        attempt = 0

        while True:
            try:
                return await self._run_attempt(attempt_fn, timeout_ms)
            except Exception as e:
                if not self.is_retryable(e):
                    logger.debug(f"Non-retryable error on attempt {attempt + 1}: {type(e).__name__}: {e}")
                    raise
                if attempt >= max_retries:
                    logger.error(f"Max retries ({max_retries}) reached. Last error: {type(e).__name__}: {e}")
                    raise MaxRetryError(e, attempt + 1) from e

                delay_ms = self.compute_delay_ms(effective, attempt)
                logger.warning(
                    f"Retryable error on attempt {attempt + 1}/{max_retries + 1}: {type(e).__name__}. "
                    f"Retrying after {delay_ms}ms..."
                )
                self._dispatch(RetryScheduled(
                    attempt_number=attempt + 1,
                    delay_seconds=delay_ms / 1000,
                    error_type=type(e).__name__,
                ))
                await self._sleep(delay_ms / 1000)
                attempt += 1

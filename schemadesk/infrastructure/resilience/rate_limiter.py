"""Rate limited admission queue for outbound requests.

Requests are queued per key and drained by a single worker per key in
strict FIFO order. A request is admitted only when the local sliding
window, the per-second burst budget and the server advertised
X-RateLimit-* state all allow it.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Mapping, Optional, Tuple

import httpx

from schemadesk.domain.events.api_events import EventDispatcher, RequestDeferred, log_event
from schemadesk.domain.models.api import RateLimitInfo
from schemadesk.domain.models.common import DEFAULT_RATE_LIMIT_KEY

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS_PER_MINUTE = 60
DEFAULT_MAX_BURST = 10
DEFAULT_WINDOW_SECONDS = 60.0
BURST_WINDOW_SECONDS = 1.0


class QueueClearedError(Exception):
    """Raised to callers whose queued request was dropped by ``clear()``."""


@dataclass
class QueuedTask:
    """One pending attempt and the future its caller is awaiting."""
    execute: Callable[[], Awaitable[Any]]
    future: "asyncio.Future[Any]"

    def resolve(self, value: Any) -> None:
        if not self.future.done():
            self.future.set_result(value)

    def reject(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)


class AdmissionQueue:
    """Serializes requests per key behind local and server-side rate limits."""

    def __init__(
        self,
        max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE,
        max_burst: int = DEFAULT_MAX_BURST,
        enabled: bool = True,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        event_dispatcher: Optional[EventDispatcher] = None,
    ):
        """Initializes the AdmissionQueue.

        Args:
            max_requests_per_minute: Admissions allowed per sliding window.
            max_burst: Admissions allowed within any one second.
            enabled: When False, tasks run immediately without queueing.
            window_seconds: Length of the sliding window.
            clock: Returns epoch seconds; must agree with X-RateLimit-Reset.
            sleep: Coroutine used while admission is denied.
            event_dispatcher: Receives RequestDeferred events.
        """
        if max_requests_per_minute <= 0 or max_burst <= 0 or window_seconds <= 0:
            raise ValueError("Rate limits and window must be positive.")

        self.max_requests_per_minute = max_requests_per_minute
        self.max_burst = max_burst
        self.enabled = enabled
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._dispatch = event_dispatcher or log_event

        self._queues: Dict[str, Deque[QueuedTask]] = {}
        self._timestamps: Dict[str, Deque[float]] = {}
        self._drainers: Dict[str, "asyncio.Task[None]"] = {}
        self._in_flight: Dict[str, QueuedTask] = {}
        self._rate_limit_info: Optional[RateLimitInfo] = None
        logger.info(
            f"AdmissionQueue initialized: {max_requests_per_minute} requests / {window_seconds:g}s, "
            f"burst={max_burst}, enabled={enabled}"
        )

    # --- Server state ---

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """Refreshes the server rate limit view from response headers."""
        normalized = httpx.Headers(headers)
        limit = normalized.get("X-RateLimit-Limit")
        remaining = normalized.get("X-RateLimit-Remaining")
        reset = normalized.get("X-RateLimit-Reset")
        if not (limit and remaining and reset):
            return

        try:
            info = RateLimitInfo(
                limit=int(limit),
                remaining=int(remaining),
                reset=int(float(reset)),
                received_at=self._clock(),
            )
        except ValueError:
            logger.warning(f"Ignoring malformed rate limit headers: limit={limit}, remaining={remaining}, reset={reset}")
            return

        retry_after = normalized.get("Retry-After")
        if retry_after:
            try:
                info.retry_after = int(retry_after)
            except ValueError:
                logger.debug(f"Ignoring non-numeric Retry-After: {retry_after}")

        current = self._rate_limit_info
        if (
            current is not None
            and current.reset == info.reset
            and info.received_at < current.reset
            and info.remaining > current.remaining
        ):
            # Same window: a stale response must not hand back spent quota
            info.remaining = current.remaining

        self._rate_limit_info = info
        logger.debug(f"Rate limit info updated: {info.as_dict()}")

    def get_rate_limit_info(self) -> Optional[RateLimitInfo]:
        return self._rate_limit_info

    # --- Admission ---

    def _prune(self, key: str, now: float) -> Deque[float]:
        timestamps = self._timestamps.setdefault(key, deque())
        while timestamps and timestamps[0] <= now - self.window_seconds:
            timestamps.popleft()
        return timestamps

    def _server_wait(self, now: float) -> float:
        info = self._rate_limit_info
        if info is None or info.remaining > 0:
            return 0.0
        if info.retry_after is not None:
            return max(0.0, info.received_at + info.retry_after - now)
        return max(0.0, info.reset - now)

    def _admission_wait(self, key: str) -> Tuple[float, str]:
        """Seconds until ``key`` may admit its next task, and why."""
        now = self._clock()

        server_wait = self._server_wait(now)
        if server_wait > 0:
            return server_wait, "server_limit"

        timestamps = self._prune(key, now)
        if len(timestamps) >= self.max_requests_per_minute:
            wait = timestamps[0] + self.window_seconds - now
            if wait <= 0:
                wait = self.window_seconds / self.max_requests_per_minute
            return wait, "local_window"

        recent = [t for t in timestamps if t > now - BURST_WINDOW_SECONDS]
        if len(recent) >= self.max_burst:
            return max(recent[-self.max_burst] + BURST_WINDOW_SECONDS - now, 0.001), "burst"

        return 0.0, ""

    def get_wait_time(self, key: str = DEFAULT_RATE_LIMIT_KEY) -> float:
        """Estimates the time needed before ``key`` can admit another request."""
        return self._admission_wait(key)[0]

    def can_proceed(self, key: str = DEFAULT_RATE_LIMIT_KEY) -> bool:
        return self.get_wait_time(key) <= 0

    # --- Execution ---

    async def execute(self, task: Callable[[], Awaitable[Any]], key: str = DEFAULT_RATE_LIMIT_KEY) -> Any:
        """Queues ``task`` under ``key`` and returns its result once it has run.

        Exceptions raised by the task are re-raised to the caller.
        """
        if not self.enabled:
            return await task()

        loop = asyncio.get_running_loop()
        queued = QueuedTask(execute=task, future=loop.create_future())
        self._queues.setdefault(key, deque()).append(queued)
        if key not in self._drainers:
            self._drainers[key] = loop.create_task(self._drain(key))
        return await queued.future

    async def _drain(self, key: str) -> None:
        queue = self._queues[key]
        try:
            while queue:
                wait, reason = self._admission_wait(key)
                if wait > 0:
                    logger.info(f"Rate limit reached ({reason}) for '{key}', waiting {wait:.2f}s")
                    self._dispatch(RequestDeferred(key=key, wait_time_seconds=wait, reason=reason))
                    await self._sleep(wait)
                    continue

                queued = queue.popleft()
                if queued.future.done():
                    # Caller stopped waiting before admission
                    continue

                self._timestamps.setdefault(key, deque()).append(self._clock())
                self._in_flight[key] = queued
                try:
                    result = await queued.execute()
                except asyncio.CancelledError:
                    queued.reject(QueueClearedError("Request queue was cleared"))
                    raise
                except Exception as e:
                    queued.reject(e)
                else:
                    queued.resolve(result)
                finally:
                    self._in_flight.pop(key, None)
        finally:
            if self._drainers.get(key) is asyncio.current_task():
                del self._drainers[key]

    def pending_count(self, key: str = DEFAULT_RATE_LIMIT_KEY) -> int:
        return len(self._queues.get(key, ()))

    def clear(self) -> None:
        """Drops all queued work and tracked state.

        Pending and in-flight callers receive QueueClearedError.
        """
        for drainer in self._drainers.values():
            drainer.cancel()
        self._drainers.clear()

        error = QueueClearedError("Request queue was cleared")
        for queued in self._in_flight.values():
            queued.reject(error)
        self._in_flight.clear()
        for queue in self._queues.values():
            while queue:
                queue.popleft().reject(error)
        self._queues.clear()
        self._timestamps.clear()
        self._rate_limit_info = None
        logger.debug("AdmissionQueue cleared")

"""Domain models for requests and responses flowing through the API client.

Includes the per-call request configuration, the structured response
returned to callers, error information and the server's rate limit view.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar

from .common import BackoffKind, HeaderMap

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for a single call. Omitted fields fall back to configuration."""
    max_retries: Optional[int] = None
    delay_ms: Optional[int] = None
    backoff: Optional[BackoffKind] = None

    def resolve(self, defaults: "RetryPolicy") -> "RetryPolicy":
        """Returns a fully populated policy, filling gaps from ``defaults``."""
        return RetryPolicy(
            max_retries=self.max_retries if self.max_retries is not None else defaults.max_retries,
            delay_ms=self.delay_ms if self.delay_ms is not None else defaults.delay_ms,
            backoff=self.backoff or defaults.backoff,
        )


@dataclass(frozen=True)
class RequestConfig:
    """Per-call request configuration.

    Instances are immutable; interceptors hand back derived copies.
    ``body`` values that are dicts or lists are sent as JSON, strings and
    bytes are sent unchanged.
    """
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    params: Optional[Mapping[str, Any]] = None
    timeout_ms: Optional[int] = None
    skip_auth: bool = False
    skip_interceptors: bool = False
    retry: Optional[RetryPolicy] = None

    def with_headers(self, extra: Mapping[str, str]) -> "RequestConfig":
        """Returns a copy with ``extra`` merged over the current headers."""
        merged: HeaderMap = dict(self.headers)
        merged.update(extra)
        return dataclasses.replace(self, headers=merged)

    def replace(self, **changes: Any) -> "RequestConfig":
        return dataclasses.replace(self, **changes)


@dataclass
class ResponseMetadata:
    """Pagination and bookkeeping info attached to a response."""
    page: Optional[int] = None
    limit: Optional[int] = None
    total: Optional[int] = None
    timestamp: Optional[str] = None
    request_id: Optional[str] = None


@dataclass
class ApiResponse(Generic[T]):
    """Structured result of a call. ``data`` is meaningful only when ``success``."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None
    details: Any = None
    status: Optional[int] = None
    metadata: Optional[ResponseMetadata] = None


@dataclass
class ApiError:
    """Error information carried through error interceptors and failed responses."""
    error: str
    code: str
    details: Any = None
    timestamp: Optional[str] = None
    path: Optional[str] = None
    status: Optional[int] = None

    def to_response(self) -> ApiResponse:
        return ApiResponse(
            success=False,
            error=self.error,
            code=self.code,
            details=self.details,
            status=self.status,
            metadata=ResponseMetadata(timestamp=self.timestamp) if self.timestamp else None,
        )


@dataclass
class RateLimitInfo:
    """Server advertised rate limit state from the latest response headers."""
    limit: int
    remaining: int
    reset: int                          # Epoch seconds when the window resets
    retry_after: Optional[int] = None   # Seconds, relative to received_at
    received_at: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset": self.reset,
            "retry_after": self.retry_after,
        }

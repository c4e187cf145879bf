"""Events emitted by the request pipeline.

The admission queue, retry executor, connectivity monitor and credential
manager report what they do through these; the default dispatcher logs them.
"""

from dataclasses import dataclass, field
import logging
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Marker base for everything passed to an EventDispatcher."""
    pass


# --- Request lifecycle ---

@dataclass
class RequestInitiated(DomainEvent):
    """Event triggered when a request is about to be sent."""
    method: str
    endpoint: str
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestSucceeded(DomainEvent):
    """Event triggered when a request completes with a 2xx/3xx response."""
    method: str
    endpoint: str
    status: int
    latency_ms: float
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestFailed(DomainEvent):
    """Event triggered when a request fails definitively (after retries)."""
    method: str
    endpoint: str
    error_code: str
    error_message: str
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestDeferred(DomainEvent):
    """Event triggered when the admission queue holds back a request."""
    key: str
    wait_time_seconds: float
    reason: str  # 'server_limit', 'local_window' or 'burst'
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    attempt_number: int
    delay_seconds: float
    error_type: str
    timestamp: float = field(default_factory=time.time)

# --- State transitions ---

@dataclass
class ConnectivityChanged(DomainEvent):
    """Event triggered when the connectivity monitor sees a transition."""
    online: bool
    timestamp: float = field(default_factory=time.time)

@dataclass
class CredentialsInvalidated(DomainEvent):
    """Event triggered when stored credentials are dropped after an auth failure."""
    error_code: str
    path: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


EventDispatcher = Callable[[DomainEvent], Any]


def log_event(event: DomainEvent) -> None:
    """Default dispatcher: events are only logged."""
    logger.debug(f"EVENT: {event}")

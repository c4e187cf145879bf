"""Defines common Value Objects used across the request pipeline.

These objects represent simple values like request ids, queue keys and
error codes, keeping signatures self-describing.
"""

from typing import NewType, Dict, Literal

# === Core Value Objects ===

RequestId = NewType("RequestId", str)          # Correlation id sent as X-Request-ID
RateLimitKey = NewType("RateLimitKey", str)    # Admission queue partition
HeaderMap = Dict[str, str]

BackoffKind = Literal["linear", "exponential"]

DEFAULT_RATE_LIMIT_KEY = RateLimitKey("default")


class ErrorCode:
    """Error codes surfaced on failed responses.

    HTTP failures without a server supplied code use ``HTTP_<status>``.
    """

    OFFLINE_ERROR = "OFFLINE_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    REQUEST_ERROR = "REQUEST_ERROR"

    # Codes the server uses for credential problems
    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"

    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    MAINTENANCE = "MAINTENANCE"

    @staticmethod
    def for_status(status: int) -> str:
        return f"HTTP_{status}"


AUTH_FAILURE_CODES = frozenset({
    ErrorCode.UNAUTHORIZED,
    ErrorCode.TOKEN_EXPIRED,
    ErrorCode.INVALID_TOKEN,
    ErrorCode.for_status(401),
})

"""Response side interceptors.

The default interceptor timestamps responses and errors. Authentication
failures drop the stored credential and notify the application, except
for protection endpoints whose business errors reuse auth-like codes.
"""

import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Pattern, Tuple

from schemadesk.domain.events.api_events import CredentialsInvalidated, EventDispatcher, log_event
from schemadesk.domain.models.api import ApiError, ApiResponse, ResponseMetadata
from schemadesk.domain.models.common import AUTH_FAILURE_CODES, ErrorCode
from schemadesk.infrastructure.auth.credential_manager import CredentialManager
from schemadesk.infrastructure.interceptors.base import InterceptorRegistry, ResponseInterceptor, resolve

logger = logging.getLogger(__name__)

AuthFailureCallback = Callable[[ApiError], None]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class DefaultResponseInterceptor(ResponseInterceptor):
    """Timestamps results and reacts to error codes."""

    def __init__(
        self,
        credentials: CredentialManager,
        on_auth_failure: Optional[AuthFailureCallback] = None,
        protected_endpoints: Iterable[str] = (),
        event_dispatcher: Optional[EventDispatcher] = None,
    ):
        """Initializes the interceptor.

        Args:
            credentials: Store cleared on authentication failures.
            on_auth_failure: Called after credentials are cleared (e.g. show login).
            protected_endpoints: Regexes of paths exempt from credential clearing.
            event_dispatcher: Receives CredentialsInvalidated events.
        """
        self.credentials = credentials
        self.on_auth_failure = on_auth_failure
        self.protected_endpoints: Tuple[Pattern[str], ...] = tuple(re.compile(p) for p in protected_endpoints)
        self._dispatch = event_dispatcher or log_event

    def is_protected(self, path: Optional[str]) -> bool:
        if not path:
            return False
        bare_path = path.split("?", 1)[0]
        return any(pattern.search(bare_path) for pattern in self.protected_endpoints)

    def on_response(self, response: ApiResponse) -> ApiResponse:
        if response.success and response.data is not None:
            metadata = response.metadata or ResponseMetadata()
            response.metadata = replace(metadata, timestamp=utc_timestamp())
        logger.debug(f"API response: success={response.success}, metadata={response.metadata}")
        return response

    def on_error(self, error: ApiError) -> ApiError:
        error.timestamp = utc_timestamp()
        logger.error(f"API error: code={error.code}, error={error.error}, path={error.path}, status={error.status}")

        if error.code in AUTH_FAILURE_CODES:
            if self.is_protected(error.path):
                logger.info(f"Auth-like error on protection endpoint {error.path}; keeping credentials")
            else:
                logger.warning("Authentication error, clearing credentials")
                self.credentials.clear()
                self._dispatch(CredentialsInvalidated(error_code=error.code, path=error.path))
                if self.on_auth_failure is not None:
                    self.on_auth_failure(error)
        elif error.code == ErrorCode.RATE_LIMIT_EXCEEDED:
            logger.warning("Rate limit exceeded")
        elif error.code == ErrorCode.MAINTENANCE:
            logger.warning("API is under maintenance")

        return error


class ResponseInterceptorManager:
    """Runs response interceptors head to tail. A failing hook is logged and skipped."""

    def __init__(self, default: ResponseInterceptor):
        self.registry: InterceptorRegistry[ResponseInterceptor] = InterceptorRegistry(default)

    def use(self, interceptor: ResponseInterceptor) -> int:
        return self.registry.use(interceptor)

    def eject(self, handle: int) -> bool:
        return self.registry.eject(handle)

    async def execute_success(self, response: ApiResponse) -> ApiResponse:
        current = response
        for interceptor in self.registry:
            try:
                current = await resolve(interceptor.on_response(current))
            except Exception as e:
                logger.error(f"Response interceptor error in {type(interceptor).__name__}: {e}", exc_info=True)
        return current

    async def execute_error(self, error: ApiError) -> ApiError:
        current = error
        for interceptor in self.registry:
            try:
                current = await resolve(interceptor.on_error(current))
            except Exception as e:
                logger.error(f"Error interceptor error in {type(interceptor).__name__}: {e}", exc_info=True)
        return current

    def clear(self) -> None:
        self.registry.clear()

"""Request Orchestrator: the single entry point for calls to the schema builder API.

``ApiClient.request`` checks connectivity, runs the request interceptor
chain, queues the exchange behind the admission queue, performs it with
retries, decodes the body and routes the outcome through the response
interceptor chain. Callers always receive an ApiResponse; network and
HTTP failures never escape as exceptions.
"""

import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from schemadesk.core.endpoints.api_keys import ApiKeyEndpoints
from schemadesk.core.endpoints.auth import AuthEndpoints
from schemadesk.core.endpoints.data import DataEndpoints
from schemadesk.core.endpoints.fields import FieldEndpoints
from schemadesk.core.endpoints.health import HealthEndpoints
from schemadesk.core.endpoints.projects import ProjectEndpoints
from schemadesk.core.endpoints.tables import TableEndpoints
from schemadesk.domain.events.api_events import (
    EventDispatcher, RequestFailed, RequestInitiated, RequestSucceeded, log_event,
)
from schemadesk.domain.interfaces.requester import Requester
from schemadesk.domain.models.api import ApiError, ApiResponse, RateLimitInfo, RequestConfig, ResponseMetadata
from schemadesk.domain.models.common import DEFAULT_RATE_LIMIT_KEY, ErrorCode
from schemadesk.infrastructure.auth.credential_manager import CredentialManager
from schemadesk.infrastructure.config.settings import ApiSettings
from schemadesk.infrastructure.interceptors.base import RequestInterceptor, ResponseInterceptor
from schemadesk.infrastructure.interceptors.request_interceptor import (
    REQUEST_ID_HEADER, DefaultRequestInterceptor, RequestInterceptorManager,
)
from schemadesk.infrastructure.interceptors.response_interceptor import (
    AuthFailureCallback, DefaultResponseInterceptor, ResponseInterceptorManager,
)
from schemadesk.infrastructure.network.connectivity import (
    ConnectivityMonitor, ManualConnectivitySource, find_best_url,
)
from schemadesk.infrastructure.resilience.api_retry import (
    AttemptTimeoutError, HttpStatusError, MaxRetryError, RetryExecutor,
)
from schemadesk.infrastructure.resilience.rate_limiter import AdmissionQueue

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "No internet connection available"
TIMEOUT_MESSAGE = "Request timeout - please check your internet connection"
CONNECTION_MESSAGE = "Unable to connect to server - please check your internet connection"
NETWORK_MESSAGE = "Network error occurred"
PARSE_MESSAGE = "Invalid response format"


def classify_network_error(error: BaseException) -> ApiError:
    """Maps a transport level exception to TIMEOUT/CONNECTION/NETWORK errors."""
    if isinstance(error, (AttemptTimeoutError, httpx.TimeoutException)):
        return ApiError(error=TIMEOUT_MESSAGE, code=ErrorCode.TIMEOUT_ERROR)
    if isinstance(error, httpx.ConnectError):
        return ApiError(error=CONNECTION_MESSAGE, code=ErrorCode.CONNECTION_ERROR)
    return ApiError(error=NETWORK_MESSAGE, code=ErrorCode.NETWORK_ERROR)


def encode_body(body: Any) -> Optional[bytes]:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


BODYLESS_STATUSES = (204, 205)


def decode_body(response: httpx.Response) -> Any:
    """Decodes a JSON body.

    204/205 responses and empty error responses decode to None; the latter
    are then reported from their status line.

    Raises:
        ValueError: If a success body is empty or the body is not valid JSON.
    """
    if response.status_code in BODYLESS_STATUSES:
        return None
    if response.is_error and not response.content.strip():
        return None
    return response.json()


def extract_metadata(data: Any, request_id: Optional[str]) -> ResponseMetadata:
    metadata = ResponseMetadata(request_id=request_id)
    pagination = data.get("pagination") if isinstance(data, dict) else None
    if isinstance(pagination, dict):
        metadata.page = pagination.get("page")
        metadata.limit = pagination.get("limit")
        metadata.total = pagination.get("total")
    return metadata


class ApiClient(Requester):
    """Composes connectivity, credentials, interceptors, admission and retries."""

    def __init__(
        self,
        settings: ApiSettings,
        connectivity: Optional[ConnectivityMonitor] = None,
        credentials: Optional[CredentialManager] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        admission_queue: Optional[AdmissionQueue] = None,
        retry_executor: Optional[RetryExecutor] = None,
        on_auth_failure: Optional[AuthFailureCallback] = None,
        event_dispatcher: Optional[EventDispatcher] = None,
        rate_limit_key: str = DEFAULT_RATE_LIMIT_KEY,
    ):
        """Initializes the ApiClient.

        Args:
            settings: Base URL, defaults and limits.
            connectivity: Online/offline monitor; defaults to an always-online source.
            credentials: Credential store shared with the endpoint modules.
            http_client: Transport; created (and owned) when omitted.
            admission_queue: Rate limited queue; built from settings when omitted.
            retry_executor: Retry/backoff executor; built from settings when omitted.
            on_auth_failure: Called when an auth failure clears the credentials.
            event_dispatcher: Receives request lifecycle events.
            rate_limit_key: Admission queue key shared by all calls of this client.
        """
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self._dispatch = event_dispatcher or log_event
        self.rate_limit_key = rate_limit_key

        self.connectivity = connectivity or ConnectivityMonitor(
            ManualConnectivitySource(online=True), event_dispatcher=self._dispatch
        )
        self.credentials = credentials or CredentialManager()
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()
        self.admission_queue = admission_queue or AdmissionQueue(
            max_requests_per_minute=settings.requests_per_minute,
            max_burst=settings.max_burst,
            enabled=settings.rate_limit_enabled,
            event_dispatcher=self._dispatch,
        )
        self.retry_executor = retry_executor or RetryExecutor(
            default_policy=settings.retry, event_dispatcher=self._dispatch
        )
        self.request_interceptors = RequestInterceptorManager(DefaultRequestInterceptor(self.credentials))
        self.response_interceptors = ResponseInterceptorManager(DefaultResponseInterceptor(
            self.credentials,
            on_auth_failure=on_auth_failure,
            protected_endpoints=settings.protected_endpoints,
            event_dispatcher=self._dispatch,
        ))

        # Endpoint modules
        self.auth = AuthEndpoints(self, self.credentials)
        self.projects = ProjectEndpoints(self)
        self.tables = TableEndpoints(self)
        self.fields = FieldEndpoints(self)
        self.data = DataEndpoints(self)
        self.api_keys = ApiKeyEndpoints(self)
        self.health = HealthEndpoints(self)

        logger.info(f"ApiClient initialized: base_url={self.base_url}")

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def initialize(self) -> str:
        """Switches to the first reachable base URL (primary, then backups)."""
        self.base_url = await find_best_url(
            self.http_client,
            self.settings.base_url.rstrip("/"),
            self.settings.backup_urls,
            self.settings.health_path,
        )
        logger.info(f"API initialized with URL: {self.base_url}")
        return self.base_url

    def build_url(self, endpoint: str) -> str:
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self.base_url}{endpoint}"

    async def request(self, endpoint: str, config: Optional[RequestConfig] = None) -> ApiResponse:
        """Executes a request and returns a structured response.

        Args:
            endpoint: Path relative to the base URL.
            config: Per-call configuration; defaults to a plain GET.

        Returns:
            ApiResponse with ``success`` False and an error ``code`` on any failure.
        """
        options = config or RequestConfig()
        method = options.method.upper()

        if not self.connectivity.is_online():
            logger.warning(f"Offline, not sending {method} {endpoint}")
            return ApiResponse(success=False, error=OFFLINE_MESSAGE, code=ErrorCode.OFFLINE_ERROR)

        effective = options
        if not options.skip_interceptors:
            try:
                effective = await self.request_interceptors.execute(options)
            except Exception as e:
                logger.error(f"Request interceptor chain failed for {method} {endpoint}: {e}", exc_info=True)
                return ApiResponse(
                    success=False,
                    error=f"Request interceptor failed: {e}",
                    code=ErrorCode.REQUEST_ERROR,
                )

        url = self.build_url(endpoint)
        headers: Dict[str, str] = dict(self.settings.headers)
        headers.update(effective.headers)
        if not effective.skip_auth:
            headers.update(self.credentials.get_auth_headers())
        headers["Accept"] = "application/json"
        request_id = headers.get(REQUEST_ID_HEADER)

        content = encode_body(effective.body)
        params = dict(effective.params) if effective.params else None
        timeout_ms = effective.timeout_ms or self.settings.timeout_ms

        async def attempt() -> httpx.Response:
            response = await self.http_client.request(
                method, url, headers=headers, content=content, params=params, timeout=timeout_ms / 1000,
            )
            self.admission_queue.update_from_headers(response.headers)
            if response.status_code >= 500:
                raise HttpStatusError(response)
            return response

        async def run_with_retries() -> httpx.Response:
            return await self.retry_executor.execute(attempt, timeout_ms=timeout_ms, policy=effective.retry)

        self._dispatch(RequestInitiated(method=method, endpoint=endpoint, request_id=request_id))
        started = time.perf_counter()
        try:
            response = await self.admission_queue.execute(run_with_retries, key=self.rate_limit_key)
        except MaxRetryError as e:
            last_error = e.original_exception
            if not isinstance(last_error, HttpStatusError):
                return await self._network_failure(last_error, options, method, endpoint, request_id)
            # Server errors that outlived every retry are reported like any other response
            response = last_error.response
        except HttpStatusError as e:
            response = e.response
        except Exception as e:
            return await self._network_failure(e, options, method, endpoint, request_id)

        latency_ms = (time.perf_counter() - started) * 1000
        return await self._handle_response(response, options, method, endpoint, request_id, latency_ms)

    async def _handle_response(
        self,
        response: httpx.Response,
        options: RequestConfig,
        method: str,
        endpoint: str,
        request_id: Optional[str],
        latency_ms: float,
    ) -> ApiResponse:
        status = response.status_code
        try:
            data = decode_body(response)
        except ValueError as e:
            logger.error(f"Failed to parse JSON response from {method} {endpoint}: {e}")
            error = ApiError(error=PARSE_MESSAGE, code=ErrorCode.PARSE_ERROR, path=endpoint, status=status)
            return await self._fail(error, options, method, endpoint, request_id)

        if response.is_error:
            body = data if isinstance(data, dict) else {}
            message = body.get("error") or body.get("message") or f"HTTP {status}: {response.reason_phrase}"
            error = ApiError(
                error=str(message),
                code=str(body.get("code") or ErrorCode.for_status(status)),
                details=body.get("details"),
                path=endpoint,
                status=status,
            )
            logger.error(f"API error ({status}) for {method} {endpoint}: {data}")
            return await self._fail(error, options, method, endpoint, request_id)

        result: ApiResponse = ApiResponse(
            success=True,
            data=data,
            status=status,
            metadata=extract_metadata(data, request_id),
        )
        self._dispatch(RequestSucceeded(
            method=method, endpoint=endpoint, status=status, latency_ms=latency_ms, request_id=request_id,
        ))
        if options.skip_interceptors:
            return result
        return await self.response_interceptors.execute_success(result)

    async def _network_failure(
        self,
        error: BaseException,
        options: RequestConfig,
        method: str,
        endpoint: str,
        request_id: Optional[str],
    ) -> ApiResponse:
        logger.error(f"API request {method} {endpoint} failed: {type(error).__name__}: {error}")
        api_error = classify_network_error(error)
        api_error.path = endpoint
        return await self._fail(api_error, options, method, endpoint, request_id)

    async def _fail(
        self,
        error: ApiError,
        options: RequestConfig,
        method: str,
        endpoint: str,
        request_id: Optional[str],
    ) -> ApiResponse:
        if not options.skip_interceptors:
            error = await self.response_interceptors.execute_error(error)
        self._dispatch(RequestFailed(
            method=method, endpoint=endpoint, error_code=error.code, error_message=error.error, request_id=request_id,
        ))
        result = error.to_response()
        if request_id:
            result.metadata = result.metadata or ResponseMetadata()
            result.metadata.request_id = request_id
        return result

    # --- Registration points & diagnostics ---

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> int:
        return self.request_interceptors.use(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> int:
        return self.response_interceptors.use(interceptor)

    def eject_request_interceptor(self, handle: int) -> bool:
        return self.request_interceptors.eject(handle)

    def eject_response_interceptor(self, handle: int) -> bool:
        return self.response_interceptors.eject(handle)

    def get_rate_limit_info(self) -> Optional[RateLimitInfo]:
        return self.admission_queue.get_rate_limit_info()

    # --- Teardown ---

    def destroy(self) -> None:
        """Releases monitors, queued work and custom interceptors."""
        self.connectivity.destroy()
        self.admission_queue.clear()
        self.request_interceptors.clear()
        self.response_interceptors.clear()

    async def aclose(self) -> None:
        self.destroy()
        if self._owns_http_client:
            await self.http_client.aclose()

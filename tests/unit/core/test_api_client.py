import asyncio
import json

import httpx
import pytest

from schemadesk.core.api_client import ApiClient, classify_network_error, decode_body, encode_body
from schemadesk.domain.events.api_events import RequestFailed, RequestInitiated, RequestSucceeded
from schemadesk.domain.models.api import RequestConfig, RetryPolicy
from schemadesk.domain.models.common import ErrorCode
from schemadesk.infrastructure.auth.credential_manager import CredentialManager
from schemadesk.infrastructure.config.settings import ApiSettings
from schemadesk.infrastructure.interceptors.base import RequestInterceptor, ResponseInterceptor
from schemadesk.infrastructure.interceptors.request_interceptor import REQUEST_ID_HEADER
from schemadesk.infrastructure.resilience.api_retry import AttemptTimeoutError

BASE_URL = "https://api.test/v1"


class Recorder:
    """MockTransport handler replaying scripted responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        # Fresh copy per call so a replayed response is never consumed twice
        return httpx.Response(outcome.status_code, headers=outcome.headers, content=outcome.content)

    @property
    def calls(self):
        return len(self.requests)


@pytest.fixture
def credentials(fake_clock):
    manager = CredentialManager(clock=fake_clock)
    manager.set_token("secret-token")
    return manager


# --- Helpers ---

def test_encode_body():
    assert encode_body(None) is None
    assert encode_body(b"raw") == b"raw"
    assert encode_body("text") == b"text"
    assert json.loads(encode_body({"a": [1, 2]})) == {"a": [1, 2]}


def test_decode_body():
    assert decode_body(httpx.Response(204)) is None
    assert decode_body(httpx.Response(205)) is None
    assert decode_body(httpx.Response(404)) is None
    assert decode_body(httpx.Response(200, json={"ok": True})) == {"ok": True}
    with pytest.raises(ValueError):
        decode_body(httpx.Response(200, content=b"<html>oops</html>"))
    with pytest.raises(ValueError):
        decode_body(httpx.Response(200, content=b""))


@pytest.mark.parametrize("error, code", [
    (AttemptTimeoutError(10), ErrorCode.TIMEOUT_ERROR),
    (httpx.ReadTimeout("slow"), ErrorCode.TIMEOUT_ERROR),
    (httpx.ConnectError("refused"), ErrorCode.CONNECTION_ERROR),
    (httpx.ReadError("reset"), ErrorCode.NETWORK_ERROR),
    (RuntimeError("odd"), ErrorCode.NETWORK_ERROR),
])
def test_classify_network_error(error, code):
    assert classify_network_error(error).code == code


# --- Success path ---

@pytest.mark.asyncio
async def test_successful_request_returns_data_and_metadata(make_client, credentials):
    handler = Recorder(httpx.Response(200, json={
        "projects": [{"id": 1}],
        "pagination": {"page": 2, "limit": 10, "total": 25},
    }))
    client = make_client(handler, credentials=credentials)

    response = await client.request("/projects", RequestConfig(params={"page": 2}))

    assert response.success is True
    assert response.status == 200
    assert response.data["projects"] == [{"id": 1}]
    assert (response.metadata.page, response.metadata.limit, response.metadata.total) == (2, 10, 25)
    assert response.metadata.timestamp is not None

    sent = handler.requests[0]
    assert str(sent.url) == f"{BASE_URL}/projects?page=2"
    assert sent.headers["Authorization"] == "Bearer secret-token"
    assert sent.headers["Accept"] == "application/json"
    assert sent.headers[REQUEST_ID_HEADER] == response.metadata.request_id


@pytest.mark.asyncio
async def test_json_body_is_encoded(make_client):
    handler = Recorder(httpx.Response(201, json={"id": 9}))
    client = make_client(handler)

    response = await client.request("projects", RequestConfig(method="post", body={"name": "Demo"}))

    assert response.success is True
    assert response.status == 201
    sent = handler.requests[0]
    assert sent.method == "POST"
    assert str(sent.url) == f"{BASE_URL}/projects"
    assert json.loads(sent.content) == {"name": "Demo"}
    assert sent.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_no_content_is_a_successful_none(make_client):
    client = make_client(Recorder(httpx.Response(204)))

    response = await client.request("/projects/1", RequestConfig(method="DELETE"))

    assert response.success is True
    assert response.data is None


@pytest.mark.asyncio
async def test_skip_auth_sends_no_credentials(make_client, credentials):
    handler = Recorder(httpx.Response(200, json={}))
    client = make_client(handler, credentials=credentials)

    await client.request("/auth/login", RequestConfig(method="POST", skip_auth=True))

    assert "Authorization" not in handler.requests[0].headers


@pytest.mark.asyncio
async def test_skip_interceptors_bypasses_both_chains(make_client, credentials):
    handler = Recorder(httpx.Response(200, json={"ok": True}))
    client = make_client(handler, credentials=credentials)

    response = await client.request("/health", RequestConfig(skip_interceptors=True))

    sent = handler.requests[0]
    assert REQUEST_ID_HEADER not in sent.headers
    assert sent.headers["Authorization"] == "Bearer secret-token"
    assert response.metadata.timestamp is None


@pytest.mark.asyncio
async def test_events_follow_request_lifecycle(api_settings, events):
    client = ApiClient(
        settings=api_settings,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))),
        event_dispatcher=events.append,
    )

    await client.request("/health")

    kinds = [type(e) for e in events if isinstance(e, (RequestInitiated, RequestSucceeded, RequestFailed))]
    assert kinds == [RequestInitiated, RequestSucceeded]


# --- Failure paths ---

@pytest.mark.asyncio
async def test_offline_short_circuits_without_network_calls(make_client, connectivity_source):
    handler = Recorder(httpx.Response(200, json={}))
    client = make_client(handler)
    connectivity_source.set_online(False)

    response = await client.request("/projects")

    assert response.success is False
    assert response.code == ErrorCode.OFFLINE_ERROR
    assert handler.calls == 0

    connectivity_source.set_online(True)
    assert (await client.request("/projects")).success is True


@pytest.mark.asyncio
async def test_invalid_json_on_200_is_a_parse_error(make_client):
    client = make_client(Recorder(httpx.Response(200, content=b"<html>not json</html>")))

    response = await client.request("/projects")

    assert response.success is False
    assert response.code == ErrorCode.PARSE_ERROR


@pytest.mark.asyncio
async def test_empty_200_body_is_a_parse_error(make_client):
    client = make_client(Recorder(httpx.Response(200, content=b"")))

    response = await client.request("/projects")

    assert response.success is False
    assert response.code == ErrorCode.PARSE_ERROR
    assert response.status == 200


@pytest.mark.asyncio
async def test_server_errors_are_retried_then_succeed(make_client, fake_clock):
    handler = Recorder(
        httpx.Response(503),
        httpx.Response(503),
        httpx.Response(200, json={"status": "ok"}),
    )
    client = make_client(handler)

    response = await client.request("/health")

    assert response.success is True
    assert handler.calls == 3
    assert fake_clock.sleeps == pytest.approx([0.1, 0.2])


@pytest.mark.asyncio
async def test_exponential_backoff_per_call(make_client, fake_clock):
    handler = Recorder(
        httpx.Response(500), httpx.Response(500), httpx.Response(500), httpx.Response(200, json={}),
    )
    client = make_client(handler)

    response = await client.request("/health", RequestConfig(
        retry=RetryPolicy(max_retries=3, delay_ms=100, backoff="exponential"),
    ))

    assert response.success is True
    assert fake_clock.sleeps == pytest.approx([0.1, 0.2, 0.4])


@pytest.mark.asyncio
async def test_exhausted_server_errors_report_last_response(make_client):
    handler = Recorder(httpx.Response(503, json={"error": "Down for maintenance", "code": "MAINTENANCE"}))
    client = make_client(handler)

    response = await client.request("/projects")

    assert handler.calls == 3
    assert response.success is False
    assert response.status == 503
    assert response.code == ErrorCode.MAINTENANCE
    assert response.error == "Down for maintenance"


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(make_client, fake_clock):
    handler = Recorder(httpx.Response(404, json={"error": "Project not found", "details": {"id": "7"}}))
    client = make_client(handler)

    response = await client.request("/projects/7")

    assert handler.calls == 1
    assert fake_clock.sleeps == []
    assert response.success is False
    assert response.status == 404
    assert response.code == "HTTP_404"
    assert response.error == "Project not found"
    assert response.details == {"id": "7"}
    assert response.metadata.request_id.startswith("req_")


@pytest.mark.asyncio
async def test_error_without_body_uses_status_line(make_client):
    client = make_client(Recorder(httpx.Response(400)))

    response = await client.request("/projects", RequestConfig(method="POST", body={}))

    assert response.code == "HTTP_400"
    assert response.error == "HTTP 400: Bad Request"


@pytest.mark.asyncio
async def test_zero_max_retries_makes_a_single_attempt(make_client):
    handler = Recorder(httpx.Response(502))
    client = make_client(handler)

    response = await client.request("/health", RequestConfig(retry=RetryPolicy(max_retries=0)))

    assert handler.calls == 1
    assert response.code == "HTTP_502"


@pytest.mark.asyncio
async def test_connection_failures_are_retried_and_classified(make_client, fake_clock):
    handler = Recorder(httpx.ConnectError("refused"))
    client = make_client(handler)

    response = await client.request("/projects")

    assert handler.calls == 3
    assert fake_clock.sleeps == pytest.approx([0.1, 0.2])
    assert response.code == ErrorCode.CONNECTION_ERROR


@pytest.mark.asyncio
async def test_transport_timeout_is_classified(make_client):
    client = make_client(Recorder(httpx.ReadTimeout("slow")))

    response = await client.request("/projects", RequestConfig(retry=RetryPolicy(max_retries=0)))

    assert response.code == ErrorCode.TIMEOUT_ERROR


@pytest.mark.asyncio
async def test_attempt_deadline_is_classified_as_timeout(make_client):
    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json={})

    client = make_client(slow)

    response = await client.request("/projects", RequestConfig(timeout_ms=10, retry=RetryPolicy(max_retries=0)))

    assert response.success is False
    assert response.code == ErrorCode.TIMEOUT_ERROR


@pytest.mark.asyncio
async def test_other_transport_errors_are_network_errors(make_client):
    client = make_client(Recorder(httpx.ReadError("reset")))

    response = await client.request("/projects", RequestConfig(retry=RetryPolicy(max_retries=0)))

    assert response.code == ErrorCode.NETWORK_ERROR


@pytest.mark.asyncio
async def test_auth_failure_clears_credentials_and_calls_back(api_settings, fake_clock):
    credentials = CredentialManager(clock=fake_clock)
    credentials.set_token("expired")
    failures = []
    handler = Recorder(httpx.Response(401, json={"error": "Token expired", "code": "TOKEN_EXPIRED"}))
    client = ApiClient(
        settings=api_settings,
        credentials=credentials,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        on_auth_failure=failures.append,
    )

    response = await client.request("/projects")

    assert response.code == ErrorCode.TOKEN_EXPIRED
    assert credentials.get_token() is None
    assert [f.code for f in failures] == [ErrorCode.TOKEN_EXPIRED]


@pytest.mark.asyncio
async def test_auth_like_error_on_protection_endpoint_keeps_session(make_client, credentials):
    client = make_client(
        Recorder(httpx.Response(401, json={"error": "Wrong password", "code": "UNAUTHORIZED"})),
        credentials=credentials,
    )

    response = await client.request("/projects/5/protection", RequestConfig(method="DELETE"))

    assert response.code == ErrorCode.UNAUTHORIZED
    assert credentials.get_token() == "secret-token"


# --- Interceptors ---

@pytest.mark.asyncio
async def test_failing_request_interceptor_yields_request_error(make_client):
    class Broken(RequestInterceptor):
        def on_request(self, config):
            raise RuntimeError("cannot sign request")

    handler = Recorder(httpx.Response(200, json={}))
    client = make_client(handler)
    client.add_request_interceptor(Broken())

    response = await client.request("/projects")

    assert response.success is False
    assert response.code == ErrorCode.REQUEST_ERROR
    assert "cannot sign request" in response.error
    assert handler.calls == 0


@pytest.mark.asyncio
async def test_custom_interceptors_can_be_added_and_ejected(make_client):
    class Tenant(RequestInterceptor):
        def on_request(self, config):
            return config.with_headers({"X-Tenant": "acme"})

    class Stamp(ResponseInterceptor):
        async def on_response(self, response):
            response.data["stamped"] = True
            return response

    handler = Recorder(httpx.Response(200, json={}))
    client = make_client(handler)
    request_handle = client.add_request_interceptor(Tenant())
    response_handle = client.add_response_interceptor(Stamp())

    first = await client.request("/projects")
    assert handler.requests[0].headers["X-Tenant"] == "acme"
    assert first.data == {"stamped": True}

    assert client.eject_request_interceptor(request_handle) is True
    assert client.eject_response_interceptor(response_handle) is True
    assert client.eject_request_interceptor(0) is False

    second = await client.request("/projects")
    assert "X-Tenant" not in handler.requests[1].headers
    assert second.data == {}


# --- Rate limit integration ---

@pytest.mark.asyncio
async def test_server_rate_limit_headers_throttle_following_requests(make_client, fake_clock):
    reset = int(fake_clock.now) + 5
    handler = Recorder(
        httpx.Response(200, json={}, headers={
            "X-RateLimit-Limit": "100", "X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(reset),
        }),
        httpx.Response(200, json={}),
    )
    client = make_client(handler)

    await client.request("/projects")
    info = client.get_rate_limit_info()
    assert (info.limit, info.remaining, info.reset) == (100, 0, reset)

    await client.request("/projects")
    assert fake_clock.sleeps == pytest.approx([5.0])
    assert handler.calls == 2


# --- Lifecycle ---

@pytest.mark.asyncio
async def test_initialize_switches_to_reachable_backup(fake_clock):
    settings = ApiSettings(base_url="https://primary.test/api", backup_urls=("https://backup.test/api",))

    def handler(request):
        if request.url.host == "primary.test":
            raise httpx.ConnectError("down", request=request)
        return httpx.Response(200, json={"status": "ok"})

    client = ApiClient(settings=settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    assert await client.initialize() == "https://backup.test/api"
    assert client.build_url("/projects") == "https://backup.test/api/projects"


@pytest.mark.asyncio
async def test_aclose_releases_owned_http_client(api_settings):
    async with ApiClient(settings=api_settings) as client:
        client.add_request_interceptor(RequestInterceptor())
        assert not client.http_client.is_closed

    assert client.http_client.is_closed
    assert len(client.request_interceptors.registry) == 1

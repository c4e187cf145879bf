import asyncio
from typing import Any, Callable, List, Optional

import httpx
import pytest
from typer.testing import CliRunner

from schemadesk.core.api_client import ApiClient
from schemadesk.domain.models.api import RetryPolicy
from schemadesk.infrastructure.auth.credential_manager import CredentialManager
from schemadesk.infrastructure.cli.display import ConsoleDisplay
from schemadesk.infrastructure.config.settings import ApiSettings, clear_test_config
from schemadesk.infrastructure.network.connectivity import ConnectivityMonitor, ManualConnectivitySource
from schemadesk.infrastructure.resilience.api_retry import RetryExecutor
from schemadesk.infrastructure.resilience.rate_limiter import AdmissionQueue

BASE_URL = "https://api.test/v1"


class FakeClock:
    """Epoch clock that only moves when ``sleep`` is awaited."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        # Let other tasks observe the new time
        await asyncio.sleep(0)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_test_config():
    """Keeps configuration overrides from leaking between tests."""
    yield
    clear_test_config()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def events():
    """Collects dispatched domain events; pass ``events.append`` as the dispatcher."""
    collected: List[Any] = []
    return collected


@pytest.fixture
def api_settings():
    return ApiSettings(
        base_url=BASE_URL,
        timeout_ms=5000,
        retry=RetryPolicy(max_retries=2, delay_ms=100, backoff="linear"),
    )


@pytest.fixture
def connectivity_source():
    return ManualConnectivitySource(online=True)


@pytest.fixture
def make_client(api_settings, fake_clock, connectivity_source):
    """Factory building an ApiClient over an httpx.MockTransport handler.

    Time never passes for real: the admission queue and the retry executor
    both sleep on the fake clock.
    """
    def _make(
        handler: Callable[[httpx.Request], Any],
        settings: Optional[ApiSettings] = None,
        credentials: Optional[CredentialManager] = None,
        **queue_kwargs: Any,
    ) -> ApiClient:
        settings = settings or api_settings
        queue_options = {"max_requests_per_minute": 60, "max_burst": 10}
        queue_options.update(queue_kwargs)
        return ApiClient(
            settings=settings,
            connectivity=ConnectivityMonitor(connectivity_source),
            credentials=credentials or CredentialManager(clock=fake_clock),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            admission_queue=AdmissionQueue(clock=fake_clock, sleep=fake_clock.sleep, **queue_options),
            retry_executor=RetryExecutor(default_policy=settings.retry, sleep=fake_clock.sleep),
        )

    return _make


@pytest.fixture
def mock_console_display(mocker):
    """Mocks the ConsoleDisplay to capture output easily.

    Patches the ConsoleDisplay where main.py builds it.
    """
    mock = mocker.MagicMock(spec=ConsoleDisplay)
    mocker.patch("schemadesk.main.ConsoleDisplay", return_value=mock)
    return mock


@pytest.fixture
def cli_transport(mocker):
    """Routes the CLI's HTTP traffic to a handler; returns the list of sent requests.

    Call the returned ``install(handler)`` before invoking the CLI.
    """
    sent: List[httpx.Request] = []

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> List[httpx.Request]:
        def recording(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return handler(request)

        mocker.patch(
            "schemadesk.main.build_http_client",
            side_effect=lambda settings: httpx.AsyncClient(transport=httpx.MockTransport(recording)),
        )
        return sent

    mocker.patch("schemadesk.main.setup_logging")
    return install

import pytest
from unittest.mock import MagicMock

from schemadesk.core.endpoints import paths
from schemadesk.core.endpoints.api_keys import ApiKeyEndpoints
from schemadesk.core.endpoints.auth import AuthEndpoints
from schemadesk.core.endpoints.data import DataEndpoints
from schemadesk.core.endpoints.fields import FieldEndpoints
from schemadesk.core.endpoints.health import HealthEndpoints
from schemadesk.core.endpoints.projects import ProjectEndpoints
from schemadesk.core.endpoints.tables import TableEndpoints
from schemadesk.domain.interfaces.requester import Requester
from schemadesk.domain.models.api import ApiResponse, RequestConfig
from schemadesk.infrastructure.auth.credential_manager import CredentialManager


@pytest.fixture
def mock_requester():
    requester = MagicMock(spec=Requester)
    requester.request.return_value = ApiResponse(success=True, data={})
    return requester


@pytest.fixture
def credentials():
    return CredentialManager()


def sent(mock_requester):
    """Returns (endpoint, config) of the single request made."""
    mock_requester.request.assert_awaited_once()
    args = mock_requester.request.await_args.args
    return args[0], (args[1] if len(args) > 1 else None)


# --- Paths ---

def test_path_segments_are_escaped():
    assert paths.project("a/b") == "/projects/a%2Fb"
    assert paths.record(1, "my table", 7) == "/projects/1/tables/my%20table/data/7"


def test_pagination_query_keeps_known_params_in_order():
    assert paths.pagination_query("/projects", None) == "/projects"
    assert paths.pagination_query("/projects", {}) == "/projects"
    assert paths.pagination_query(
        "/projects", {"order": "desc", "page": 2, "limit": 20, "sort": "name"}
    ) == "/projects?page=2&limit=20&sort=name&order=desc"
    assert paths.pagination_query("/projects", {"page": 1, "sort": ""}) == "/projects?page=1"


# --- Auth ---

@pytest.mark.asyncio
async def test_login_skips_auth_and_never_retries(mock_requester, credentials):
    auth = AuthEndpoints(mock_requester, credentials)

    await auth.login({"email": "dev@example.com", "password": "pw"})

    endpoint, config = sent(mock_requester)
    assert endpoint == "/auth/login"
    assert config.method == "POST"
    assert config.skip_auth is True
    assert config.retry.max_retries == 0
    assert config.body == {"email": "dev@example.com", "password": "pw"}


@pytest.mark.asyncio
async def test_register_skips_auth(mock_requester, credentials):
    await AuthEndpoints(mock_requester, credentials).register(
        {"email": "dev@example.com", "password": "pw", "name": "Dev"}
    )

    endpoint, config = sent(mock_requester)
    assert endpoint == "/auth/register"
    assert config.skip_auth is True


@pytest.mark.asyncio
async def test_logout_clears_credentials_even_on_failure(mock_requester, credentials):
    credentials.set_token("tok")
    mock_requester.request.return_value = ApiResponse(success=False, error="gone", code="HTTP_500")

    response = await AuthEndpoints(mock_requester, credentials).logout()

    assert response.success is False
    assert credentials.get_token() is None
    assert sent(mock_requester)[0] == "/auth/logout"


@pytest.mark.asyncio
async def test_refresh_stores_new_token_with_expiry(mock_requester, credentials):
    mock_requester.request.return_value = ApiResponse(success=True, data={"token": "fresh", "expiresIn": 3600})
    credentials.set_token("old")

    await AuthEndpoints(mock_requester, credentials).refresh_token()

    assert credentials.get_token() == "fresh"
    assert credentials.is_expired() is False


@pytest.mark.asyncio
async def test_failed_refresh_keeps_existing_token(mock_requester, credentials):
    mock_requester.request.return_value = ApiResponse(success=False, error="no", code="HTTP_400")
    credentials.set_token("old")

    await AuthEndpoints(mock_requester, credentials).refresh_token()

    assert credentials.get_token() == "old"


@pytest.mark.asyncio
async def test_get_current_user(mock_requester, credentials):
    await AuthEndpoints(mock_requester, credentials).get_current_user()
    assert sent(mock_requester) == ("/auth/me", None)


# --- Resources ---

@pytest.mark.asyncio
@pytest.mark.parametrize("call, endpoint, method", [
    (lambda p: p.get_projects({"page": 1, "limit": 5}), "/projects?page=1&limit=5", "GET"),
    (lambda p: p.get_project("3"), "/projects/3", "GET"),
    (lambda p: p.create_project({"name": "Shop"}), "/projects", "POST"),
    (lambda p: p.update_project("3", {"name": "Store"}), "/projects/3", "PUT"),
    (lambda p: p.delete_project("3"), "/projects/3", "DELETE"),
    (lambda p: p.enable_protection("3", "pw"), "/projects/3/protection", "POST"),
    (lambda p: p.remove_protection("3", "pw"), "/projects/3/protection", "DELETE"),
])
async def test_project_endpoints(mock_requester, call, endpoint, method):
    await call(ProjectEndpoints(mock_requester))

    sent_endpoint, config = sent(mock_requester)
    assert sent_endpoint == endpoint
    assert (config or RequestConfig()).method == method


@pytest.mark.asyncio
@pytest.mark.parametrize("call, endpoint, method", [
    (lambda t: t.get_tables("1"), "/tables/project/1", "GET"),
    (lambda t: t.get_table("1", "2"), "/tables/1/2", "GET"),
    (lambda t: t.create_table("1", {"name": "orders"}), "/tables/project/1", "POST"),
    (lambda t: t.update_table("1", "2", {"name": "orders"}), "/tables/2", "PUT"),
    (lambda t: t.delete_table("1", "2"), "/tables/2", "DELETE"),
])
async def test_table_endpoints(mock_requester, call, endpoint, method):
    await call(TableEndpoints(mock_requester))

    sent_endpoint, config = sent(mock_requester)
    assert sent_endpoint == endpoint
    assert (config or RequestConfig()).method == method


@pytest.mark.asyncio
@pytest.mark.parametrize("call, endpoint, method", [
    (lambda f: f.get_fields("1", "2"), "/tables/1/2/fields", "GET"),
    (lambda f: f.add_field("1", "2", {"name": "price", "type": "number"}), "/tables/1/2/fields", "POST"),
    (lambda f: f.update_field("1", "2", "9", {"name": "cost"}), "/tables/2/fields/9", "PUT"),
    (lambda f: f.delete_field("1", "2", "9"), "/tables/2/fields/9", "DELETE"),
])
async def test_field_endpoints(mock_requester, call, endpoint, method):
    await call(FieldEndpoints(mock_requester))

    sent_endpoint, config = sent(mock_requester)
    assert sent_endpoint == endpoint
    assert (config or RequestConfig()).method == method


@pytest.mark.asyncio
@pytest.mark.parametrize("call, endpoint, method", [
    (lambda d: d.get_table_data("1", "orders", {"page": 3}), "/projects/1/tables/orders/data?page=3", "GET"),
    (lambda d: d.get_record("1", "orders", "5"), "/projects/1/tables/orders/data/5", "GET"),
    (lambda d: d.create_record("1", "orders", {"total": 10}), "/projects/1/tables/orders/data", "POST"),
    (lambda d: d.update_record("1", "orders", "5", {"total": 12}), "/projects/1/tables/orders/data/5", "PUT"),
    (lambda d: d.delete_record("1", "orders", "5"), "/projects/1/tables/orders/data/5", "DELETE"),
])
async def test_data_endpoints(mock_requester, call, endpoint, method):
    await call(DataEndpoints(mock_requester))

    sent_endpoint, config = sent(mock_requester)
    assert sent_endpoint == endpoint
    assert (config or RequestConfig()).method == method


@pytest.mark.asyncio
@pytest.mark.parametrize("call, endpoint, method", [
    (lambda k: k.get_api_keys("1"), "/api-keys/project/1", "GET"),
    (lambda k: k.create_api_key("1", {"name": "ci"}), "/api-keys/project/1", "POST"),
    (lambda k: k.regenerate_api_key("4"), "/api-keys/4/regenerate", "POST"),
    (lambda k: k.delete_api_key("4"), "/api-keys/4", "DELETE"),
])
async def test_api_key_endpoints(mock_requester, call, endpoint, method):
    await call(ApiKeyEndpoints(mock_requester))

    sent_endpoint, config = sent(mock_requester)
    assert sent_endpoint == endpoint
    assert (config or RequestConfig()).method == method


@pytest.mark.asyncio
async def test_health_checks_skip_auth_with_single_retry(mock_requester):
    health = HealthEndpoints(mock_requester)

    await health.check_health()
    await health.check_database_connection()

    calls = mock_requester.request.await_args_list
    assert [c.args[0] for c in calls] == ["/health", "/health/database"]
    for c in calls:
        config = c.args[1]
        assert config.skip_auth is True
        assert config.retry.max_retries == 1

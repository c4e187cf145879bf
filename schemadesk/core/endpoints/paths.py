"""Endpoint paths of the schema builder API."""

from typing import Any, Mapping, Optional
from urllib.parse import quote, urlencode

from schemadesk.domain.models.schema import PaginationParams


class AuthPaths:
    LOGIN = "/auth/login"
    REGISTER = "/auth/register"
    LOGOUT = "/auth/logout"
    REFRESH = "/auth/refresh"
    ME = "/auth/me"


def _seg(value: Any) -> str:
    return quote(str(value), safe="")


def project(project_id: Any) -> str:
    return f"/projects/{_seg(project_id)}"


def project_protection(project_id: Any) -> str:
    return f"{project(project_id)}/protection"


PROJECTS = "/projects"
HEALTH = "/health"
HEALTH_DATABASE = "/health/database"


def tables(project_id: Any) -> str:
    return f"/tables/project/{_seg(project_id)}"


def table(table_id: Any) -> str:
    return f"/tables/{_seg(table_id)}"


def table_in_project(project_id: Any, table_id: Any) -> str:
    return f"/tables/{_seg(project_id)}/{_seg(table_id)}"


def fields(project_id: Any, table_id: Any) -> str:
    return f"{table_in_project(project_id, table_id)}/fields"


def field(table_id: Any, field_id: Any) -> str:
    return f"{table(table_id)}/fields/{_seg(field_id)}"


def records(project_id: Any, table_name: str) -> str:
    return f"{project(project_id)}/tables/{_seg(table_name)}/data"


def record(project_id: Any, table_name: str, record_id: Any) -> str:
    return f"{records(project_id, table_name)}/{_seg(record_id)}"


def api_keys(project_id: Any) -> str:
    return f"/api-keys/project/{_seg(project_id)}"


def api_key(key_id: Any) -> str:
    return f"/api-keys/{_seg(key_id)}"


def with_query(path: str, params: Optional[Mapping[str, Any]]) -> str:
    """Appends non-empty pagination/sort params as a query string."""
    if not params:
        return path
    query = urlencode([(k, str(v)) for k, v in params.items() if v not in (None, "")])
    return f"{path}?{query}" if query else path


def pagination_query(path: str, params: Optional[PaginationParams]) -> str:
    if not params:
        return path
    ordered = {key: params.get(key) for key in ("page", "limit", "sort", "order")}
    return with_query(path, ordered)

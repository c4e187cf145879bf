"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), drives the
ApiClient and hands results to the UserInterface. Handlers return True
when the command succeeded so the entry point can pick an exit code.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from schemadesk.core.api_client import ApiClient
from schemadesk.domain.interfaces.user_interface import UserInterface
from schemadesk.domain.models.api import ApiResponse, RequestConfig, RetryPolicy
from schemadesk.domain.models.schema import PaginationParams

logger = logging.getLogger(__name__)

PROJECT_COLUMNS = ("ID", "Name", "Description", "Tables", "Created")


def parse_json_argument(raw: Optional[str]) -> Any:
    """Decodes the --data option. Raises ValueError on malformed JSON."""
    if raw is None or raw == "":
        return None
    return json.loads(raw)


def _extract_items(data: Any, *keys: str) -> List[Dict[str, Any]]:
    """Finds the list payload in responses shaped either as a list or {key: [...]}."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


class CommandHandler:
    """Handles incoming commands and delegates to the API client."""

    def __init__(self, api_client: ApiClient, ui: UserInterface):
        self.api_client = api_client
        self.ui = ui

    def _report_failure(self, response: ApiResponse, action: str) -> None:
        message = f"{action} failed: [{response.code}] {response.error}"
        if response.status:
            message += f" (HTTP {response.status})"
        self.ui.display_error(message)

    async def handle_health(self) -> bool:
        """Probes the configured base URLs and checks API and database health."""
        logger.info("Handling 'health' command")
        base_url = await self.api_client.initialize()
        self.ui.display_info(f"Using API at {base_url}")

        api_health = await self.api_client.health.check_health()
        db_health = await self.api_client.health.check_database_connection()

        rows: List[Sequence[Any]] = []
        for name, response in (("API", api_health), ("Database", db_health)):
            status = "ok" if response.success else f"failing ({response.code})"
            detail = response.data.get("status") if isinstance(response.data, dict) else response.error
            rows.append((name, status, detail))
        self.ui.display_table("Health", ("Check", "Result", "Detail"), rows)

        if not api_health.success:
            self._report_failure(api_health, "Health check")
        return api_health.success and db_health.success

    async def handle_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[str] = None,
        no_auth: bool = False,
        timeout_ms: Optional[int] = None,
        retries: Optional[int] = None,
    ) -> bool:
        """Sends a raw request and prints the decoded payload and rate limit state."""
        logger.info(f"Handling 'request' command: {method} {endpoint}")
        try:
            body = parse_json_argument(data)
        except ValueError as e:
            self.ui.display_error(f"Invalid JSON passed to --data: {e}")
            return False

        config = RequestConfig(
            method=method.upper(),
            body=body,
            skip_auth=no_auth,
            timeout_ms=timeout_ms,
            retry=RetryPolicy(max_retries=retries) if retries is not None else None,
        )
        response = await self.api_client.request(endpoint, config)

        if response.success:
            self.ui.display_output(response.data, title=f"{config.method} {endpoint} ({response.status})")
        else:
            self._report_failure(response, f"{config.method} {endpoint}")

        info = self.api_client.get_rate_limit_info()
        if info is not None:
            reset_at = datetime.fromtimestamp(info.reset, tz=timezone.utc).isoformat()
            self.ui.display_table(
                "Rate limit",
                ("Limit", "Remaining", "Resets at", "Retry after (s)"),
                [(info.limit, info.remaining, reset_at, info.retry_after)],
            )
        return response.success

    async def handle_list_projects(self, page: Optional[int] = None, limit: Optional[int] = None) -> bool:
        """Lists projects as a table."""
        logger.info(f"Handling 'projects' command (page={page}, limit={limit})")
        params: PaginationParams = {}
        if page is not None:
            params["page"] = page
        if limit is not None:
            params["limit"] = limit

        response = await self.api_client.projects.get_projects(params)
        if not response.success:
            self._report_failure(response, "Listing projects")
            return False

        projects = _extract_items(response.data, "projects", "data")
        if not projects:
            self.ui.display_info("No projects found.")
            return True

        rows = [
            (
                project.get("id"),
                project.get("name"),
                project.get("description"),
                project.get("tableCount"),
                project.get("createdAt"),
            )
            for project in projects
        ]
        self.ui.display_table("Projects", PROJECT_COLUMNS, rows)

        metadata = response.metadata
        if metadata is not None and metadata.total is not None:
            self.ui.display_info(f"Page {metadata.page or 1}: {len(projects)} of {metadata.total} projects")
        return True

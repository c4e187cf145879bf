"""Command line entry point for schemadesk.

Wires settings, credentials, the API client and the console together for
each command (the composition root) and hands the work to CommandHandler.
"""

import asyncio
import dataclasses
import logging
import sys
from typing import Any, Coroutine, Dict, Optional

import httpx
import typer
from typing_extensions import Annotated

from schemadesk.core.api_client import ApiClient
from schemadesk.core.command_handler import CommandHandler
from schemadesk.infrastructure.auth.credential_manager import CredentialManager
from schemadesk.infrastructure.cli.display import ConsoleDisplay
from schemadesk.infrastructure.config.settings import (
    ApiSettings, get_api_key_credentials, get_api_token, get_config, load_api_settings, set_config,
)
from schemadesk.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, setup_logging

logger = logging.getLogger(__name__)


def build_http_client(settings: ApiSettings) -> httpx.AsyncClient:
    """Creates the shared transport for one CLI invocation."""
    return httpx.AsyncClient(timeout=settings.timeout_ms / 1000)


def load_credentials(credentials: CredentialManager) -> None:
    """Seeds the credential store from configuration (token first, then API key set)."""
    token = get_api_token()
    if token:
        credentials.set_token(token)
        logger.debug("Using bearer token from configuration")
        return
    api_key_credentials = get_api_key_credentials()
    if api_key_credentials:
        credentials.set_api_key_credentials(*api_key_credentials)
        logger.debug("Using API key credentials from configuration")


# --- Composition root ---

def create_dependencies(base_url: Optional[str] = None) -> Dict[str, Any]:
    """Builds the object graph a single command runs against.

    Args:
        base_url: Command line override of the configured base URL.
    """
    logger.debug("Building command dependencies")
    dependencies: Dict[str, Any] = {}
    try:
        # Settings before logging: the log level is itself a setting
        settings = load_api_settings()
        if base_url:
            settings = dataclasses.replace(settings, base_url=base_url.rstrip("/"))
        setup_logging(
            log_level=get_config('logging.level', 'INFO'),
            log_format=get_config('logging.format', DEFAULT_LOG_FORMAT),
            log_file=get_config('logging.file'),
        )
        dependencies['settings'] = settings
        logger.debug(f"Targeting {settings.base_url}")

        # Adapters
        dependencies['ui'] = ConsoleDisplay()
        dependencies['credentials'] = CredentialManager()
        load_credentials(dependencies['credentials'])

        # Client
        dependencies['api_client'] = ApiClient(
            settings=settings,
            credentials=dependencies['credentials'],
            http_client=build_http_client(settings),
            on_auth_failure=lambda error: dependencies['ui'].display_warning(
                f"Credentials rejected ({error.code}); they have been cleared for this session."
            ),
        )

        # Handler
        dependencies['command_handler'] = CommandHandler(
            api_client=dependencies['api_client'],
            ui=dependencies['ui'],
        )
        return dependencies

    except Exception as e:
        logger.error(f"Could not set up schemadesk: {e}", exc_info=True)
        if dependencies.get('ui'):
            dependencies['ui'].display_error(f"Startup failed: {e}")
        else:
            print(f"schemadesk: startup failed: {e}", file=sys.stderr)
        raise typer.Exit(code=1)


# --- CLI app ---
app = typer.Typer(
    name="schemadesk",
    help="Command line client for the schema builder API.",
    add_completion=False,
)


def run_async(dependencies: Dict[str, Any], coro: Coroutine[Any, Any, bool]) -> bool:
    """Runs a handler coroutine, then releases the API client.

    Returns False when the handler failed or raised.
    """
    async def _run() -> bool:
        try:
            return await coro
        finally:
            await dependencies['api_client'].aclose()

    try:
        return asyncio.run(_run())
    except Exception as e:
        logger.error(f"Command crashed: {e}", exc_info=True)
        dependencies['ui'].display_error(f"Command execution failed: {e}")
        return False


def _finish(succeeded: bool) -> None:
    if not succeeded:
        raise typer.Exit(code=1)


# --- CLI Commands ---

@app.command()
def health(ctx: typer.Context):
    """Probe the configured base URLs and check API and database health."""
    dependencies = create_dependencies(**ctx.obj)
    handler: CommandHandler = dependencies['command_handler']
    _finish(run_async(dependencies, handler.handle_health()))


@app.command()
def request(
    ctx: typer.Context,
    method: Annotated[str, typer.Argument(help="HTTP method (GET, POST, PUT, DELETE, ...).")],
    endpoint: Annotated[str, typer.Argument(help="Endpoint path relative to the base URL, e.g. /projects.")],
    data: Annotated[Optional[str], typer.Option("--data", "-d", help="JSON request body.")] = None,
    no_auth: Annotated[bool, typer.Option("--no-auth", help="Send without credential headers.")] = False,
    timeout: Annotated[Optional[int], typer.Option("--timeout", "-t", min=1, help="Per-attempt timeout in milliseconds.")] = None,
    retries: Annotated[Optional[int], typer.Option("--retries", "-r", min=0, help="Maximum retries after the first attempt.")] = None,
):
    """Send a raw request and print the JSON payload and rate limit state."""
    dependencies = create_dependencies(**ctx.obj)
    handler: CommandHandler = dependencies['command_handler']
    _finish(run_async(dependencies, handler.handle_request(
        method, endpoint, data=data, no_auth=no_auth, timeout_ms=timeout, retries=retries,
    )))


@app.command()
def projects(
    ctx: typer.Context,
    page: Annotated[Optional[int], typer.Option("--page", "-p", min=1, help="Page number.")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", "-l", min=1, help="Projects per page.")] = None,
):
    """List projects as a table."""
    dependencies = create_dependencies(**ctx.obj)
    handler: CommandHandler = dependencies['command_handler']
    _finish(run_async(dependencies, handler.handle_list_projects(page=page, limit=limit)))


@app.callback()
def main_callback(
    ctx: typer.Context,
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", help="Override the configured API base URL.")
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    ] = None,
):
    """Global options applied before any command runs."""
    ctx.obj = {"base_url": base_url}
    if log_level:
        set_config('logging.level', log_level)


def cli_entry_point():
    """Console script target."""
    app()


if __name__ == "__main__":
    cli_entry_point()

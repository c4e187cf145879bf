"""Connectivity tracking and base URL selection.

The ConnectivityMonitor keeps a single online flag fed by an injected
ConnectivitySource and fans transitions out to subscribers. The probe
helpers pick a reachable base URL by hitting the API health path.
"""

import logging
from typing import Callable, Iterable, List, Optional

import httpx

from schemadesk.domain.events.api_events import ConnectivityChanged, EventDispatcher, log_event
from schemadesk.domain.interfaces.connectivity import ConnectivityListener, ConnectivitySource

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0


class ManualConnectivitySource(ConnectivitySource):
    """In-process source whose state is flipped explicitly via ``set_online``."""

    def __init__(self, online: bool = True):
        self._online = online
        self._listeners: List[ConnectivityListener] = []

    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def set_online(self, online: bool) -> None:
        self._online = online
        for listener in list(self._listeners):
            listener(online)


class ConnectivityMonitor:
    """Tracks online/offline status and notifies subscribers on transitions."""

    def __init__(self, source: ConnectivitySource, event_dispatcher: Optional[EventDispatcher] = None):
        """Initializes the monitor and registers with ``source``.

        Args:
            source: Platform specific connectivity signal source.
            event_dispatcher: Receives a ConnectivityChanged event per transition.
        """
        self._source = source
        self._online = source.is_online()
        self._subscribers: List[ConnectivityListener] = []
        self._dispatch = event_dispatcher or log_event
        self._destroyed = False
        source.add_listener(self._handle_signal)
        logger.debug(f"ConnectivityMonitor initialized: online={self._online}")

    def _handle_signal(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        if online:
            logger.info("Connection restored")
        else:
            logger.warning("Connection lost")
        self._dispatch(ConnectivityChanged(online=online))
        for subscriber in list(self._subscribers):
            subscriber(online)

    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Registers ``listener`` and returns a function that unregisters it."""
        self._subscribers.append(listener)

        def unsubscribe() -> None:
            if listener in self._subscribers:
                self._subscribers.remove(listener)

        return unsubscribe

    def destroy(self) -> None:
        """Unregisters from the source and drops all subscribers. Safe to call twice."""
        if self._destroyed:
            return
        self._source.remove_listener(self._handle_signal)
        self._subscribers.clear()
        self._destroyed = True
        logger.debug("ConnectivityMonitor destroyed")


# --- Base URL probing ---

async def probe_connection(
    http_client: httpx.AsyncClient,
    base_url: str,
    health_path: str = "/health",
    timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
) -> bool:
    """Returns True when ``base_url`` answers the health path with a 2xx status."""
    try:
        response = await http_client.get(f"{base_url}{health_path}", timeout=timeout)
    except httpx.HTTPError as e:
        logger.info(f"Connection test failed for {base_url}: {type(e).__name__}: {e}")
        return False
    return response.is_success


async def find_best_url(
    http_client: httpx.AsyncClient,
    primary_url: str,
    backup_urls: Iterable[str] = (),
    health_path: str = "/health",
    timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
) -> str:
    """Picks the first reachable base URL, trying the primary before the backups.

    Falls back to ``primary_url`` when nothing answers.
    """
    if await probe_connection(http_client, primary_url, health_path, timeout):
        logger.info(f"Primary API URL working: {primary_url}")
        return primary_url

    for url in backup_urls:
        if url == primary_url:
            continue
        if await probe_connection(http_client, url, health_path, timeout):
            logger.info(f"Backup API URL working: {url}")
            return url

    logger.warning(f"No working API URL found, using primary: {primary_url}")
    return primary_url

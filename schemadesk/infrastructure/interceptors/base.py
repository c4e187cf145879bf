"""Interceptor contracts and the handle based registry shared by both chains.

Hooks may be plain functions or coroutines; ``resolve`` awaits whichever
they return.
"""

import inspect
import logging
from typing import Any, Dict, Generic, Iterator, TypeVar

from schemadesk.domain.models.api import ApiError, ApiResponse, RequestConfig

logger = logging.getLogger(__name__)

DEFAULT_HANDLE = 0

I = TypeVar("I")


async def resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class RequestInterceptor:
    """Transforms outgoing request configs. Override the hooks you need."""

    def on_request(self, config: RequestConfig) -> Any:
        return config

    def on_error(self, error: Exception) -> Any:
        return error


class ResponseInterceptor:
    """Transforms responses and errors after an exchange. Override the hooks you need."""

    def on_response(self, response: ApiResponse) -> Any:
        return response

    def on_error(self, error: ApiError) -> Any:
        return error


class InterceptorRegistry(Generic[I]):
    """Ordered map from handle to interceptor.

    The default interceptor always sits at handle 0. Ejecting removes the
    entry outright, so other handles keep pointing at their interceptors.
    """

    def __init__(self, default: I):
        self._default = default
        self._entries: Dict[int, I] = {DEFAULT_HANDLE: default}
        self._next_handle = DEFAULT_HANDLE + 1

    def use(self, interceptor: I) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._entries[handle] = interceptor
        logger.debug(f"Registered {type(interceptor).__name__} as handle {handle}")
        return handle

    def eject(self, handle: int) -> bool:
        """Removes the interceptor behind ``handle``. Returns False if nothing was removed."""
        if handle == DEFAULT_HANDLE:
            logger.warning("The default interceptor cannot be ejected")
            return False
        removed = self._entries.pop(handle, None)
        return removed is not None

    def clear(self) -> None:
        """Drops every custom interceptor, keeping the default."""
        self._entries = {DEFAULT_HANDLE: self._default}

    def __iter__(self) -> Iterator[I]:
        # Snapshot so hooks may register or eject while a chain runs
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

"""Interface for issuing API requests.

Endpoint modules depend on this contract instead of the concrete client,
so they can be exercised against a stub in tests.
"""

import abc
from typing import Optional

from ..models.api import ApiResponse, RequestConfig


class Requester(abc.ABC):
    """Abstract Base Class for anything that can execute an API request."""

    @abc.abstractmethod
    async def request(self, endpoint: str, config: Optional[RequestConfig] = None) -> ApiResponse:
        """Executes a request against ``endpoint`` and returns a structured response.

        Args:
            endpoint: Path relative to the API base URL (e.g. '/projects').
            config: Per-call configuration; defaults to a plain GET.

        Returns:
            An ApiResponse. Implementations never raise for network or HTTP
            failures; those are reported through ``success``/``code``.
        """
        pass

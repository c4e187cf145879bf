"""Request side interceptors.

The default interceptor injects credential headers (unless the call
skips auth) and stamps every request with a correlation id.
"""

import logging
import random
import string
import time

from schemadesk.domain.models.api import RequestConfig
from schemadesk.domain.models.common import RequestId
from schemadesk.infrastructure.auth.credential_manager import CredentialManager
from schemadesk.infrastructure.interceptors.base import InterceptorRegistry, RequestInterceptor, resolve

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_request_id() -> RequestId:
    """Returns an id of the form ``req_<epoch ms>_<9 random chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return RequestId(f"req_{int(time.time() * 1000)}_{suffix}")


class DefaultRequestInterceptor(RequestInterceptor):
    """Adds credential headers and an X-Request-ID header."""

    def __init__(self, credentials: CredentialManager):
        self.credentials = credentials

    def on_request(self, config: RequestConfig) -> RequestConfig:
        if not config.skip_auth:
            auth_headers = self.credentials.get_auth_headers()
            if auth_headers:
                config = config.with_headers(auth_headers)
            else:
                logger.debug("No valid credential available for request")

        request_id = generate_request_id()
        config = config.with_headers({REQUEST_ID_HEADER: request_id})
        logger.debug(f"API request [{request_id}]: method={config.method}, skip_auth={config.skip_auth}")
        return config

    def on_error(self, error: Exception) -> Exception:
        logger.error(f"Request interceptor error: {error}")
        return error


class RequestInterceptorManager:
    """Runs request interceptors head to tail over a request config."""

    def __init__(self, default: RequestInterceptor):
        self.registry: InterceptorRegistry[RequestInterceptor] = InterceptorRegistry(default)

    def use(self, interceptor: RequestInterceptor) -> int:
        return self.registry.use(interceptor)

    def eject(self, handle: int) -> bool:
        return self.registry.eject(handle)

    async def execute(self, config: RequestConfig) -> RequestConfig:
        """Returns the config produced by the whole chain.

        Raises:
            Exception: Whatever an interceptor raised, after its on_error hook ran.
        """
        current = config
        for interceptor in self.registry:
            try:
                current = await resolve(interceptor.on_request(current))
            except Exception as e:
                await resolve(interceptor.on_error(e))
                raise
        return current

    def clear(self) -> None:
        self.registry.clear()

"""Health endpoints. Unauthenticated, with a single retry."""

from schemadesk.core.endpoints import paths
from schemadesk.domain.interfaces.requester import Requester
from schemadesk.domain.models.api import ApiResponse, RequestConfig, RetryPolicy

HEALTH_CHECK_CONFIG = RequestConfig(skip_auth=True, retry=RetryPolicy(max_retries=1))


class HealthEndpoints:
    def __init__(self, requester: Requester):
        self.requester = requester

    async def check_health(self) -> ApiResponse:
        return await self.requester.request(paths.HEALTH, HEALTH_CHECK_CONFIG)

    async def check_database_connection(self) -> ApiResponse:
        return await self.requester.request(paths.HEALTH_DATABASE, HEALTH_CHECK_CONFIG)

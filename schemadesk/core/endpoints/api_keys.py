"""API key endpoints."""

import logging

from schemadesk.core.endpoints import paths
from schemadesk.domain.interfaces.requester import Requester
from schemadesk.domain.models.api import ApiResponse, RequestConfig
from schemadesk.domain.models.schema import CreateApiKeyRequest

logger = logging.getLogger(__name__)


class ApiKeyEndpoints:
    def __init__(self, requester: Requester):
        self.requester = requester

    async def get_api_keys(self, project_id: str) -> ApiResponse:
        return await self.requester.request(paths.api_keys(project_id))

    async def create_api_key(self, project_id: str, data: CreateApiKeyRequest) -> ApiResponse:
        logger.info(f"Creating new API key for project: {project_id}")
        return await self.requester.request(paths.api_keys(project_id), RequestConfig(method="POST", body=data))

    async def regenerate_api_key(self, key_id: str) -> ApiResponse:
        logger.info(f"Regenerating API key: {key_id}")
        return await self.requester.request(f"{paths.api_key(key_id)}/regenerate", RequestConfig(method="POST"))

    async def delete_api_key(self, key_id: str) -> ApiResponse:
        logger.info(f"Deleting API key: {key_id}")
        return await self.requester.request(paths.api_key(key_id), RequestConfig(method="DELETE"))

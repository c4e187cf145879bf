"""Table endpoints."""

import logging

from schemadesk.core.endpoints import paths
from schemadesk.domain.interfaces.requester import Requester
from schemadesk.domain.models.api import ApiResponse, RequestConfig
from schemadesk.domain.models.schema import CreateTableRequest

logger = logging.getLogger(__name__)


class TableEndpoints:
    def __init__(self, requester: Requester):
        self.requester = requester

    async def get_tables(self, project_id: str) -> ApiResponse:
        return await self.requester.request(paths.tables(project_id))

    async def get_table(self, project_id: str, table_id: str) -> ApiResponse:
        return await self.requester.request(paths.table_in_project(project_id, table_id))

    async def create_table(self, project_id: str, data: CreateTableRequest) -> ApiResponse:
        logger.info(f"Creating new table: {data.get('name')}")
        return await self.requester.request(paths.tables(project_id), RequestConfig(method="POST", body=data))

    async def update_table(self, project_id: str, table_id: str, data: CreateTableRequest) -> ApiResponse:
        return await self.requester.request(paths.table(table_id), RequestConfig(method="PUT", body=data))

    async def delete_table(self, project_id: str, table_id: str) -> ApiResponse:
        logger.info(f"Deleting table: {table_id}")
        return await self.requester.request(paths.table(table_id), RequestConfig(method="DELETE"))

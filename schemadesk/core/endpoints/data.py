"""Record (table data) endpoints."""

import logging
from typing import Optional

from schemadesk.core.endpoints import paths
from schemadesk.domain.interfaces.requester import Requester
from schemadesk.domain.models.api import ApiResponse, RequestConfig
from schemadesk.domain.models.schema import CreateRecordRequest, PaginationParams

logger = logging.getLogger(__name__)


class DataEndpoints:
    def __init__(self, requester: Requester):
        self.requester = requester

    async def get_table_data(
        self, project_id: str, table_name: str, params: Optional[PaginationParams] = None
    ) -> ApiResponse:
        return await self.requester.request(paths.pagination_query(paths.records(project_id, table_name), params))

    async def get_record(self, project_id: str, table_name: str, record_id: str) -> ApiResponse:
        return await self.requester.request(paths.record(project_id, table_name, record_id))

    async def create_record(self, project_id: str, table_name: str, data: CreateRecordRequest) -> ApiResponse:
        logger.info(f"Creating new record in table: {table_name}")
        return await self.requester.request(
            paths.records(project_id, table_name), RequestConfig(method="POST", body=data)
        )

    async def update_record(
        self, project_id: str, table_name: str, record_id: str, data: CreateRecordRequest
    ) -> ApiResponse:
        return await self.requester.request(
            paths.record(project_id, table_name, record_id), RequestConfig(method="PUT", body=data)
        )

    async def delete_record(self, project_id: str, table_name: str, record_id: str) -> ApiResponse:
        return await self.requester.request(
            paths.record(project_id, table_name, record_id), RequestConfig(method="DELETE")
        )

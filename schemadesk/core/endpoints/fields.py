"""Field endpoints."""

import logging

from schemadesk.core.endpoints import paths
from schemadesk.domain.interfaces.requester import Requester
from schemadesk.domain.models.api import ApiResponse, RequestConfig
from schemadesk.domain.models.schema import CreateFieldRequest

logger = logging.getLogger(__name__)


class FieldEndpoints:
    def __init__(self, requester: Requester):
        self.requester = requester

    async def get_fields(self, project_id: str, table_id: str) -> ApiResponse:
        return await self.requester.request(paths.fields(project_id, table_id))

    async def add_field(self, project_id: str, table_id: str, data: CreateFieldRequest) -> ApiResponse:
        logger.info(f"Adding field to table {table_id} in project {project_id}")
        return await self.requester.request(
            paths.fields(project_id, table_id), RequestConfig(method="POST", body=data)
        )

    async def update_field(self, project_id: str, table_id: str, field_id: str, data: CreateFieldRequest) -> ApiResponse:
        return await self.requester.request(paths.field(table_id, field_id), RequestConfig(method="PUT", body=data))

    async def delete_field(self, project_id: str, table_id: str, field_id: str) -> ApiResponse:
        return await self.requester.request(paths.field(table_id, field_id), RequestConfig(method="DELETE"))

"""Project endpoints."""

import logging
from typing import Optional

from schemadesk.core.endpoints import paths
from schemadesk.domain.interfaces.requester import Requester
from schemadesk.domain.models.api import ApiResponse, RequestConfig
from schemadesk.domain.models.schema import CreateProjectRequest, PaginationParams, UpdateProjectRequest

logger = logging.getLogger(__name__)


class ProjectEndpoints:
    def __init__(self, requester: Requester):
        self.requester = requester

    async def get_projects(self, params: Optional[PaginationParams] = None) -> ApiResponse:
        return await self.requester.request(paths.pagination_query(paths.PROJECTS, params))

    async def get_project(self, project_id: str) -> ApiResponse:
        return await self.requester.request(paths.project(project_id))

    async def create_project(self, data: CreateProjectRequest) -> ApiResponse:
        logger.info(f"Creating new project: {data.get('name')}")
        response = await self.requester.request(paths.PROJECTS, RequestConfig(method="POST", body=data))
        if not response.success:
            logger.warning(f"Project creation failed: {response.error}")
        return response

    async def update_project(self, project_id: str, data: UpdateProjectRequest) -> ApiResponse:
        return await self.requester.request(paths.project(project_id), RequestConfig(method="PUT", body=data))

    async def delete_project(self, project_id: str) -> ApiResponse:
        logger.info(f"Deleting project: {project_id}")
        return await self.requester.request(paths.project(project_id), RequestConfig(method="DELETE"))

    async def enable_protection(self, project_id: str, password: str) -> ApiResponse:
        """Protects a project with a password. Auth-like failures here keep the session."""
        return await self.requester.request(
            paths.project_protection(project_id),
            RequestConfig(method="POST", body={"password": password}),
        )

    async def remove_protection(self, project_id: str, password: str) -> ApiResponse:
        return await self.requester.request(
            paths.project_protection(project_id),
            RequestConfig(method="DELETE", body={"password": password}),
        )

"""Authentication endpoints: login, registration, logout and token refresh."""

import logging

from schemadesk.core.endpoints import paths
from schemadesk.domain.interfaces.requester import Requester
from schemadesk.domain.models.api import ApiResponse, RequestConfig, RetryPolicy
from schemadesk.domain.models.schema import LoginRequest, RegisterRequest
from schemadesk.infrastructure.auth.credential_manager import CredentialManager

logger = logging.getLogger(__name__)


class AuthEndpoints:
    """Auth calls. Logout and refresh update the shared credential store."""

    def __init__(self, requester: Requester, credentials: CredentialManager):
        self.requester = requester
        self.credentials = credentials

    async def login(self, data: LoginRequest) -> ApiResponse:
        """Logs in without retries; failed logins must not be replayed."""
        logger.info(f"Attempting login for: {data['email']}")
        response = await self.requester.request(paths.AuthPaths.LOGIN, RequestConfig(
            method="POST",
            body=data,
            skip_auth=True,
            retry=RetryPolicy(max_retries=0, delay_ms=0),
        ))
        if response.success:
            logger.info("Login successful")
        else:
            logger.warning(f"Login failed: {response.error}")
        return response

    async def register(self, data: RegisterRequest) -> ApiResponse:
        logger.info(f"Attempting registration for: {data['email']}")
        return await self.requester.request(paths.AuthPaths.REGISTER, RequestConfig(
            method="POST", body=data, skip_auth=True,
        ))

    async def logout(self) -> ApiResponse:
        """Logs out and clears local credentials whatever the server answers."""
        response = await self.requester.request(paths.AuthPaths.LOGOUT, RequestConfig(method="POST"))
        self.credentials.clear()
        return response

    async def refresh_token(self) -> ApiResponse:
        response = await self.requester.request(paths.AuthPaths.REFRESH, RequestConfig(method="POST"))
        if response.success and isinstance(response.data, dict) and response.data.get("token"):
            self.credentials.set_token(response.data["token"], response.data.get("expiresIn"))
            logger.info("Token refreshed")
        return response

    async def get_current_user(self) -> ApiResponse:
        return await self.requester.request(paths.AuthPaths.ME)

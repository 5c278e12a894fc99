"""Bearer token lifecycle service.

Tracks access token expiry and exchanges the refresh token for a new access
token when a credential set goes stale.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from aaxconnect.auth import constants
from aaxconnect.auth.models.credentials import DeviceCredentials
from aaxconnect.auth.models.errors import DecodingError, NetworkError

logger = logging.getLogger(__name__)


class TokenManager:
    """Manages access token refresh for registered devices.

    A credential set is Fresh while now < expires and Stale afterwards. A
    refresh never touches the credentials it was given: on success a new
    DeviceCredentials is returned with access token and expiry replaced
    together, on failure the caller still holds the unchanged original.

    Uses application/x-www-form-urlencoded encoding for the token endpoint.
    """

    def __init__(self, timeout: float = 30.0, buffer_seconds: float = 0.0):
        """Initialize token manager.

        Args:
            timeout: HTTP request timeout in seconds
            buffer_seconds: Refresh this many seconds before actual expiry
        """
        self.timeout = timeout
        self.buffer_seconds = buffer_seconds
        self._http_client = httpx.AsyncClient(timeout=timeout)

    def is_stale(
        self, credentials: DeviceCredentials, now: float | None = None
    ) -> bool:
        """Check whether the credentials need a refresh before use."""
        return credentials.is_stale(now=now, buffer_seconds=self.buffer_seconds)

    async def refresh_access_token(
        self, credentials: DeviceCredentials, domain: str
    ) -> DeviceCredentials:
        """Exchange the refresh token for a new access token.

        Args:
            credentials: Current device credentials
            domain: Marketplace top-level domain

        Returns:
            DeviceCredentials: Copy with the new access token and expiry

        Raises:
            NetworkError: If the request fails or the server rejects it
            DecodingError: If the response lacks access_token or expires_in
        """
        url = f"https://api.amazon.{domain}/auth/token"
        logger.debug(f"Refreshing access token at {url}")

        form_data = {
            "app_name": constants.APP_NAME,
            "app_version": constants.APP_VERSION,
            "source_token": credentials.refresh_token,
            "requested_token_type": "access_token",
            "source_token_type": "refresh_token",
        }

        try:
            response = await self._http_client.post(
                url,
                data=form_data,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"HTTP error during token refresh: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Token refresh failed with HTTP {response.status_code}")
            raise NetworkError(f"Token refresh failed with HTTP {response.status_code}")

        access_token, expires_in = self._parse_refresh_response(response)

        logger.info("Access token refreshed")
        return credentials.with_access_token(
            access_token=access_token,
            expires=time.time() + expires_in,
        )

    async def ensure_fresh(
        self, credentials: DeviceCredentials, domain: str
    ) -> DeviceCredentials:
        """Return credentials safe to use for an authenticated request.

        The same object comes back when it is still fresh. Callers must adopt
        the returned object before issuing the dependent request.
        """
        if not self.is_stale(credentials):
            return credentials

        logger.debug("Access token is stale, refreshing before use")
        return await self.refresh_access_token(credentials, domain)

    def _parse_refresh_response(self, response: httpx.Response) -> tuple[str, int]:
        try:
            response_data: Any = response.json()
        except ValueError as e:
            raise DecodingError(f"Invalid token response format: {e}") from e

        if not isinstance(response_data, dict):
            raise DecodingError("Token response is not a JSON object")

        access_token = response_data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise DecodingError("Token response missing required access_token")

        expires_in = response_data.get("expires_in")
        if isinstance(expires_in, str):
            try:
                expires_in = int(expires_in.strip())
            except ValueError as e:
                raise DecodingError(f"Invalid expires_in value: {expires_in!r}") from e
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            raise DecodingError("Token response missing required expires_in")

        return access_token, int(expires_in)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()

"""Content license request service.

License requests are authenticated with ADP request signing rather than a
bearer token, so the exact body text that was signed is the one sent.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from aaxconnect.auth.models.credentials import DeviceCredentials
from aaxconnect.auth.models.errors import DecodingError, NetworkError
from aaxconnect.auth.services.signing import RequestSigner

logger = logging.getLogger(__name__)


class LicenseRequester:
    """Requests download licenses for catalog items."""

    def __init__(self, timeout: float = 30.0):
        """Initialize license requester.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def request_license(
        self,
        credentials: DeviceCredentials,
        domain: str,
        asin: str,
        quality: str = "High",
    ) -> dict[str, Any]:
        """Request a download license for one title.

        Args:
            credentials: Registered device credentials
            domain: Marketplace top-level domain
            asin: Catalog item id
            quality: Requested audio quality

        Returns:
            The license response, whose content_license carries the voucher

        Raises:
            SigningError: If the device private key is unusable
            NetworkError: If the request fails or the server rejects it
            DecodingError: If the response is not a JSON object
        """
        path = f"/1.0/content/{asin}/licenserequest"
        url = f"https://api.audible.{domain}{path}"
        body = json.dumps(
            {
                "drm_type": "Adrm",
                "consumption_type": "Download",
                "quality": quality,
            }
        )

        signer = RequestSigner(credentials.adp_token, credentials.device_private_key)
        signed = signer.sign("POST", path, body)

        logger.debug(f"Requesting license for {asin} at {url}")

        try:
            response = await self._http_client.post(
                url,
                content=body,
                headers={"Content-Type": "application/json", **signed.to_dict()},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"HTTP error during license request: {e}") from e

        if response.status_code != 200:
            logger.error(
                f"License request for {asin} failed with HTTP "
                f"{response.status_code}: {response.text}"
            )
            raise NetworkError(
                f"License request failed with HTTP {response.status_code}"
            )

        try:
            response_data = response.json()
        except ValueError as e:
            raise DecodingError(f"Invalid license response format: {e}") from e
        if not isinstance(response_data, dict):
            raise DecodingError("License response is not a JSON object")

        logger.info(f"Received license for {asin}")
        return response_data

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()

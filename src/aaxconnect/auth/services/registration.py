"""Device registration service.

Exchanges a one-time authorization code (bound to a PKCE verifier and device
serial) for long-lived device credentials, and deregisters devices again.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from aaxconnect.auth import constants
from aaxconnect.auth.models.credentials import DeviceCredentials
from aaxconnect.auth.models.errors import (
    DecodingError,
    MissingTokenDataError,
    NetworkError,
    RegistrationError,
)
from aaxconnect.auth.primitives.pkce import PKCEManager

logger = logging.getLogger(__name__)


def build_auth_url(domain: str, endpoint: str, with_username: bool = False) -> str:
    """Auth API URL on the amazon.* host, or audible.* for username logins."""
    target = "audible" if with_username else "amazon"
    return f"https://api.{target}.{domain}/auth/{endpoint}"


class DeviceRegistration:
    """Handles device registration and deregistration.

    Registration requests bearer and MAC/DMS tokens, website cookies and the
    store authentication cookie, plus the device_info and customer_info
    extensions. A response missing any of them is rejected as a whole;
    partial credentials are never returned.
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize device registration.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)
        self._pkce_manager = PKCEManager()

    async def register_device(
        self,
        authorization_code: str,
        code_verifier: str,
        domain: str,
        serial: str,
        with_username: bool = False,
    ) -> DeviceCredentials:
        """Register this device with the vendor.

        Args:
            authorization_code: Code from the sign-in redirect
            code_verifier: PKCE verifier used to build the sign-in URL
            domain: Marketplace top-level domain, e.g. "com" or "co.uk"
            serial: Device serial used to build the sign-in URL
            with_username: Register against the audible.* host

        Returns:
            DeviceCredentials for the new device

        Raises:
            NetworkError: If the request fails at the transport level
            RegistrationError: If the vendor rejects the registration
            MissingTokenDataError: If the response lacks required token data
            DecodingError: If the response body is not JSON
        """
        url = build_auth_url(domain, "register", with_username)
        body = self._build_registration_body(
            authorization_code, code_verifier, domain, serial
        )

        logger.debug(f"Registering device {serial[:8]}... at {url}")

        response = await self._post(url, body, headers={})
        self._raise_for_rejection(response, "Registration")
        response_data = self._parse_json(response)

        credentials = self._extract_credentials(response_data)

        logger.info(f"Successfully registered device {serial[:8]}... on {domain}")
        return credentials

    async def deregister_device(
        self,
        access_token: str,
        domain: str,
        deregister_all: bool = False,
        with_username: bool = False,
    ) -> dict[str, Any]:
        """Deregister this device, or every device on the account.

        Args:
            access_token: Current bearer access token
            domain: Marketplace top-level domain
            deregister_all: Also deregister all other devices on the account
            with_username: Use the audible.* host

        Returns:
            The raw server response

        Raises:
            NetworkError: If the request fails at the transport level
            RegistrationError: If the vendor rejects the request
            DecodingError: If the response body is not JSON
        """
        url = build_auth_url(domain, "deregister", with_username)
        body = {"deregister_all_existing_accounts": deregister_all}

        logger.debug(f"Deregistering device at {url} (all={deregister_all})")

        response = await self._post(
            url, body, headers={"Authorization": f"Bearer {access_token}"}
        )
        self._raise_for_rejection(response, "Deregistration")
        response_data = self._parse_json(response)

        logger.info(f"Deregistered device on {domain}")
        return response_data

    def _build_registration_body(
        self,
        authorization_code: str,
        code_verifier: str,
        domain: str,
        serial: str,
    ) -> dict[str, Any]:
        return {
            "requested_token_type": [
                "bearer",
                "mac_dms",
                "website_cookies",
                "store_authentication_cookie",
            ],
            "cookies": {
                "website_cookies": [],
                "domain": f".amazon.{domain}",
            },
            "registration_data": {
                "domain": "Device",
                "app_version": constants.APP_VERSION,
                "device_serial": serial,
                "device_type": constants.DEVICE_TYPE,
                "device_name": constants.DEVICE_NAME,
                "os_version": constants.OS_VERSION,
                "software_version": constants.SOFTWARE_VERSION,
                "device_model": constants.DEVICE_MODEL,
                "app_name": constants.APP_NAME,
            },
            "auth_data": {
                "client_id": self._pkce_manager.build_client_id(serial),
                "authorization_code": authorization_code,
                "code_verifier": code_verifier,
                "code_algorithm": "SHA-256",
                "client_domain": "DeviceLegacy",
            },
            "requested_extensions": ["device_info", "customer_info"],
        }

    async def _post(
        self, url: str, body: dict[str, Any], headers: dict[str, str]
    ) -> httpx.Response:
        try:
            return await self._http_client.post(
                url,
                json=body,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    **headers,
                },
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"HTTP error calling {url}: {e}") from e

    def _raise_for_rejection(self, response: httpx.Response, action: str) -> None:
        """Raise RegistrationError with the raw body on any non-2xx status."""
        if 200 <= response.status_code < 300:
            return

        logger.error(f"{action} failed with HTTP {response.status_code}")
        raise RegistrationError(
            f"{action} failed with HTTP {response.status_code}: {response.text}",
            response_body=response.text,
        )

    def _parse_json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise DecodingError(f"Response is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DecodingError("Response JSON is not an object")
        return data

    def _extract_credentials(self, response_data: dict[str, Any]) -> DeviceCredentials:
        """Navigate response.success into a complete credential set.

        Raises:
            MissingTokenDataError: If any required field is absent or mistyped
        """
        response = _require(response_data, "response", dict, "response")
        success = _require(response, "success", dict, "response.success")
        tokens = _require(success, "tokens", dict, "success.tokens")
        extensions = _require(success, "extensions", dict, "success.extensions")

        mac_dms = _require(tokens, "mac_dms", dict, "tokens.mac_dms")
        bearer = _require(tokens, "bearer", dict, "tokens.bearer")
        cookies = _require(tokens, "website_cookies", list, "tokens.website_cookies")
        store_cookie = _require(
            tokens,
            "store_authentication_cookie",
            dict,
            "tokens.store_authentication_cookie",
        )
        device_info = _require(
            extensions, "device_info", dict, "extensions.device_info"
        )
        customer_info = _require(
            extensions, "customer_info", dict, "extensions.customer_info"
        )

        adp_token = _require(mac_dms, "adp_token", str, "mac_dms.adp_token")
        private_key = _require(
            mac_dms, "device_private_key", str, "mac_dms.device_private_key"
        )
        access_token = _require(bearer, "access_token", str, "bearer.access_token")
        refresh_token = _require(bearer, "refresh_token", str, "bearer.refresh_token")
        expires_in = parse_expires_in(bearer.get("expires_in"))

        return DeviceCredentials(
            adp_token=adp_token,
            device_private_key=private_key,
            access_token=access_token,
            refresh_token=refresh_token,
            expires=time.time() + expires_in,
            website_cookies=_flatten_cookies(cookies),
            store_authentication_cookie=store_cookie,
            device_info=device_info,
            customer_info=customer_info,
        )

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()


def parse_expires_in(value: Any) -> int:
    """Accept expires_in as a JSON number or a numeric string.

    Raises:
        MissingTokenDataError: If the value is absent or not numeric
    """
    if isinstance(value, bool):
        raise MissingTokenDataError("Missing or invalid expires_in value")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise MissingTokenDataError("Missing or invalid expires_in value")


def _require(container: dict[str, Any], key: str, expected: type, path: str) -> Any:
    value = container.get(key)
    if not isinstance(value, expected):
        raise MissingTokenDataError(f"Registration response missing {path}")
    return value


def _flatten_cookies(cookies: list[Any]) -> dict[str, str]:
    """Turn [{Name, Value}, ...] into a name -> value map, unquoting values."""
    flat: dict[str, str] = {}
    for cookie in cookies:
        if not isinstance(cookie, dict):
            continue
        name = cookie.get("Name")
        value = cookie.get("Value")
        if isinstance(name, str) and isinstance(value, str):
            flat[name] = value.strip('"')
    return flat

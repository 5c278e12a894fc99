"""High-level client for device login and content licenses.

Coordinates the login flow, device registration, token refresh, signed
license requests and voucher decryption behind two entry points:
AudibleAuth for signing in, AudibleClient for working with a registered
device.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from aaxconnect.auth.models.credentials import DeviceCredentials
from aaxconnect.auth.models.errors import EncodingError, InvalidAuthDataError
from aaxconnect.auth.models.flow import AuthSession
from aaxconnect.auth.models.locale import Locale
from aaxconnect.auth.services.flow import AuthFlowManager
from aaxconnect.auth.services.registration import DeviceRegistration
from aaxconnect.auth.services.tokens import TokenManager
from aaxconnect.license.models import LicenseInfo, VoucherValidationResult
from aaxconnect.license.requests import LicenseRequester
from aaxconnect.license.validation import LicenseValidator
from aaxconnect.license.voucher import VoucherDecryptor

logger = logging.getLogger(__name__)


class AudibleAuth:
    """Signs a new device in.

    Usage is two steps. request_auth returns an AuthSession whose
    authorization_url the user opens in a browser. After signing in, the
    browser lands on a URL carrying the authorization code; hand that URL
    and the same session to complete_auth to register the device.
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize the login client.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self.flow_manager = AuthFlowManager()
        self.registration = DeviceRegistration(timeout=timeout)

    async def request_auth(
        self,
        country_code: str = "us",
        code_verifier: str | None = None,
        serial: str | None = None,
        with_username: bool = False,
    ) -> AuthSession:
        """Start a login on the given marketplace.

        Raises:
            LocaleNotFoundError: If the country code is unknown
            PKCEError: If PKCE parameter generation fails
            ValueError: If username login is not offered on the marketplace
        """
        locale = Locale.find(country_code=country_code)
        logger.info(f"Starting device login for marketplace {locale.country_code}")
        return await self.flow_manager.start_authorization(
            locale,
            code_verifier=code_verifier,
            serial=serial,
            with_username=with_username,
        )

    async def complete_auth(
        self, session: AuthSession, redirect_url: str
    ) -> AudibleClient:
        """Finish a login by registering the device.

        Args:
            session: Session returned by request_auth for this login
            redirect_url: URL the browser landed on after sign-in

        Returns:
            AudibleClient: Client holding the new device credentials

        Raises:
            InvalidURLError: If the redirect URL is not an absolute URL
            AuthorizationCallbackError: If the URL carries no authorization code
            RegistrationError: If the vendor rejects the registration
            NetworkError: If the request fails at the transport level
        """
        authorization_code = self.flow_manager.parse_redirect_url(redirect_url)

        credentials = await self.registration.register_device(
            authorization_code=authorization_code,
            code_verifier=session.code_verifier,
            domain=session.locale.domain,
            serial=session.serial,
            with_username=session.with_username,
        )

        logger.info(
            f"Device login complete for marketplace {session.locale.country_code}"
        )
        return AudibleClient(
            credentials,
            session.locale,
            timeout=self.timeout,
            with_username=session.with_username,
        )

    async def close(self) -> None:
        """Close all service connections."""
        await self.registration.close()


class AudibleClient:
    """A registered device.

    Owns the device credentials. Every authenticated call first brings the
    access token up to date and adopts the refreshed credentials before the
    request goes out.
    """

    def __init__(
        self,
        credentials: DeviceCredentials,
        locale: Locale,
        timeout: float = 30.0,
        buffer_seconds: float = 0.0,
        with_username: bool = False,
    ):
        """Initialize the client.

        Args:
            credentials: Credentials from device registration
            locale: Marketplace the device was registered on
            timeout: HTTP request timeout in seconds
            buffer_seconds: Refresh the access token this long before expiry
            with_username: Device was registered through an audible.* login
        """
        self.credentials = credentials
        self.locale = locale
        self.with_username = with_username

        self.token_manager = TokenManager(
            timeout=timeout, buffer_seconds=buffer_seconds
        )
        self.registration = DeviceRegistration(timeout=timeout)
        self.license_requester = LicenseRequester(timeout=timeout)
        self.voucher_decryptor = VoucherDecryptor()
        self.validator = LicenseValidator()

    @property
    def access_token(self) -> str:
        """Get current access token."""
        return self.credentials.access_token

    async def refresh_if_needed(self) -> DeviceCredentials:
        """Refresh the access token if it is stale.

        Raises:
            NetworkError: If the refresh request fails
            DecodingError: If the refresh response is malformed
        """
        self.credentials = await self.token_manager.ensure_fresh(
            self.credentials, self.locale.domain
        )
        return self.credentials

    async def get_license(self, asin: str, quality: str = "High") -> LicenseInfo:
        """Request a license for a title and decrypt its voucher.

        Raises:
            NetworkError: If a request fails or is rejected
            DecodingError: If a response is malformed
            SigningError: If the device private key is unusable
            DecryptionError: If the voucher cannot be decrypted
            MissingDeviceInfoError: If device_info lacks the device identity
            MissingCustomerInfoError: If customer_info lacks user_id
        """
        credentials = await self.refresh_if_needed()

        license_response = await self.license_requester.request_license(
            credentials, self.locale.domain, asin, quality=quality
        )
        voucher = self.voucher_decryptor.decrypt_from_license_response(
            credentials.device_info,
            credentials.customer_info,
            license_response,
        )

        return LicenseInfo(
            content_license=license_response["content_license"],
            voucher=voucher,
        )

    def validate_license(
        self, license_info: LicenseInfo, at: datetime | None = None
    ) -> VoucherValidationResult:
        return self.validator.validate(license_info, at=at)

    async def deregister(self, deregister_all: bool = False) -> dict[str, Any]:
        """Deregister this device, or every device on the account."""
        credentials = await self.refresh_if_needed()
        return await self.registration.deregister_device(
            credentials.access_token,
            self.locale.domain,
            deregister_all=deregister_all,
            with_username=self.with_username,
        )

    def export_auth_json(self) -> str:
        """Serialize the credentials and locale for later from_auth_json.

        Raises:
            EncodingError: If the credentials cannot be serialized
        """
        try:
            return json.dumps(
                self.credentials.to_saved_dict(self.locale.country_code), indent=2
            )
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Failed to serialize credentials: {e}") from e

    @staticmethod
    def export_license_json(license_info: LicenseInfo) -> str:
        """Serialize license info in the form validate_file reads back.

        Raises:
            EncodingError: If the license info cannot be serialized
        """
        try:
            return json.dumps(license_info.to_saved_dict(), indent=2)
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Failed to serialize license info: {e}") from e

    @classmethod
    def from_auth_json(
        cls, data: str | bytes, timeout: float = 30.0, buffer_seconds: float = 0.0
    ) -> AudibleClient:
        """Restore a client from export_auth_json output.

        Raises:
            InvalidAuthDataError: If the document is malformed or incomplete
            LocaleNotFoundError: If the saved locale code is unknown
        """
        try:
            saved = json.loads(data)
        except ValueError as e:
            raise InvalidAuthDataError(f"Saved auth data is not valid JSON: {e}") from e

        if not isinstance(saved, dict):
            raise InvalidAuthDataError("Saved auth data is not a JSON object")

        locale_code = saved.pop("locale_code", None)
        if not isinstance(locale_code, str):
            raise InvalidAuthDataError("Missing 'locale_code' in saved auth data")
        locale = Locale.find(country_code=locale_code)

        try:
            credentials = DeviceCredentials.model_validate(saved)
        except ValidationError as e:
            raise InvalidAuthDataError(
                f"Saved auth data is missing fields or has wrong types: {e}"
            ) from e

        return cls(credentials, locale, timeout=timeout, buffer_seconds=buffer_seconds)

    async def close(self) -> None:
        """Close all service connections."""
        await self.token_manager.close()
        await self.registration.close()
        await self.license_requester.close()

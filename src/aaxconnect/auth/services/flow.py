"""Device login flow orchestration service.

Coordinates the browser sign-in step: PKCE and device serial generation,
sign-in URL construction, and extraction of the authorization code from the
page the browser is redirected to afterwards.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlparse

from aaxconnect.auth.models.errors import AuthorizationCallbackError, InvalidURLError
from aaxconnect.auth.models.flow import AuthorizationRequest, AuthSession
from aaxconnect.auth.models.locale import Locale
from aaxconnect.auth.primitives.pkce import PKCEManager

logger = logging.getLogger(__name__)

AUTHORIZATION_CODE_PARAM = "openid.oa2.authorization_code"


class AuthFlowManager:
    """Orchestrates device login flows.

    Each call to start_authorization returns a self-contained AuthSession.
    The session holds the verifier and serial that must later be handed to
    device registration, so nothing about a pending login is kept here.
    """

    def __init__(self):
        """Initialize the login flow manager."""
        self._pkce_manager = PKCEManager()

    async def start_authorization(
        self,
        locale: Locale,
        code_verifier: str | None = None,
        serial: str | None = None,
        with_username: bool = False,
    ) -> AuthSession:
        """Start a device login.

        Args:
            locale: Marketplace to sign in to
            code_verifier: Reuse this PKCE verifier instead of generating one
            serial: Reuse this device serial instead of generating one
            with_username: Sign in with an audible.* username account

        Returns:
            AuthSession: Sign-in URL plus the state needed to finish the login

        Raises:
            PKCEError: If PKCE parameter generation fails
            ValueError: If username login is not offered on the marketplace
        """
        pkce_params = self._pkce_manager.generate_parameters(
            code_verifier=code_verifier, serial=serial
        )

        auth_request = AuthorizationRequest(
            locale=locale,
            client_id=pkce_params.client_id,
            code_challenge=pkce_params.code_challenge,
            code_challenge_method=pkce_params.code_challenge_method,
            with_username=with_username,
        )
        authorization_url = auth_request.build_authorization_url()

        logger.info(
            f"Generated sign-in URL for marketplace {locale.country_code} "
            f"(device {pkce_params.device_serial[:8]}...)"
        )

        return AuthSession(
            authorization_url=authorization_url,
            pkce=pkce_params,
            locale=locale,
            with_username=with_username,
        )

    def parse_redirect_url(self, redirect_url: str) -> str:
        """Extract the authorization code from the post-login redirect URL.

        Raises:
            InvalidURLError: If the URL is not an absolute URL
            AuthorizationCallbackError: If the URL carries no authorization code
        """
        try:
            parsed = urlparse(redirect_url)
            query_params = parse_qs(parsed.query)
        except ValueError as e:
            raise InvalidURLError(f"Failed to parse redirect URL: {e}") from e

        if not parsed.scheme or not parsed.netloc:
            raise InvalidURLError("Redirect URL must be absolute")

        values = query_params.get(AUTHORIZATION_CODE_PARAM, [])
        if not values or not values[0]:
            raise AuthorizationCallbackError(
                f"Redirect URL is missing {AUTHORIZATION_CODE_PARAM}"
            )

        logger.debug("Received authorization code from redirect URL")
        return values[0]

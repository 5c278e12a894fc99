"""Authorization flow models for device login.

Contains the sign-in request and the pending login session handed back to the
caller between the browser step and device registration.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from aaxconnect.auth.constants import USERNAME_LOGIN_DOMAINS
from aaxconnect.auth.models.locale import Locale
from aaxconnect.auth.models.security import PKCEParameters

OPENID_IDENTIFIER_SELECT = "http://specs.openid.net/auth/2.0/identifier_select"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Sign-in request parameters for the device login page."""

    locale: Locale
    client_id: str
    code_challenge: str
    code_challenge_method: str = "S256"
    with_username: bool = False

    def __post_init__(self) -> None:
        if (
            self.with_username
            and self.locale.domain.lower() not in USERNAME_LOGIN_DOMAINS
        ):
            raise ValueError(
                "Login with username is only supported for DE, US and UK marketplaces"
            )

    def build_authorization_url(self) -> str:
        """Build the complete sign-in URL.

        Keys and values are percent-encoded with only RFC 3986 unreserved
        characters left as-is; the sign-in page rejects looser encodings.
        """
        domain = self.locale.domain
        country_code = self.locale.country_code

        if self.with_username:
            base_url = f"https://www.audible.{domain}/ap/signin"
            return_to = f"https://www.audible.{domain}/ap/maplanding"
            assoc_handle = f"amzn_audible_ios_lap_{country_code}"
            page_id = "amzn_audible_ios_privatepool"
        else:
            base_url = f"https://www.amazon.{domain}/ap/signin"
            return_to = f"https://www.amazon.{domain}/ap/maplanding"
            assoc_handle = f"amzn_audible_ios_{country_code}"
            page_id = "amzn_audible_ios"

        params = [
            ("openid.oa2.response_type", "code"),
            ("openid.oa2.code_challenge_method", self.code_challenge_method),
            ("openid.oa2.code_challenge", self.code_challenge),
            ("openid.return_to", return_to),
            ("openid.assoc_handle", assoc_handle),
            ("openid.identity", OPENID_IDENTIFIER_SELECT),
            ("pageId", page_id),
            ("accountStatusPolicy", "P1"),
            ("openid.claimed_id", OPENID_IDENTIFIER_SELECT),
            ("openid.mode", "checkid_setup"),
            ("openid.ns.oa2", "http://www.amazon.com/ap/ext/oauth/2"),
            ("openid.oa2.client_id", f"device:{self.client_id}"),
            ("openid.ns.pape", "http://specs.openid.net/extensions/pape/1.0"),
            ("marketPlaceId", self.locale.marketplace_id),
            ("openid.oa2.scope", "device_auth_access"),
            ("forceMobileLayout", "true"),
            ("openid.ns", "http://specs.openid.net/auth/2.0"),
            ("openid.pape.max_auth_age", "0"),
        ]

        query = "&".join(
            f"{quote(key, safe='')}={quote(value, safe='')}" for key, value in params
        )
        return f"{base_url}?{query}"


@dataclass(frozen=True)
class AuthSession:
    """A pending login, held by the caller until the redirect comes back.

    Each login attempt gets its own session, so several can be in flight at
    once.
    """

    authorization_url: str
    pkce: PKCEParameters
    locale: Locale
    with_username: bool = False

    @property
    def code_verifier(self) -> str:
        return self.pkce.code_verifier

    @property
    def serial(self) -> str:
        return self.pkce.device_serial

"""Device credential models.

Contains the credential set issued by device registration and its saved-file
representation.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, JsonValue


class DeviceCredentials(BaseModel):
    """Credentials issued to a registered device.

    Immutable: a token refresh produces a new instance with the access token
    and expiry replaced together, so nobody can observe a new token paired
    with a stale expiry.
    """

    model_config = ConfigDict(frozen=True)

    adp_token: str
    device_private_key: str  # PEM-encoded RSA private key
    access_token: str
    refresh_token: str
    expires: float  # Unix timestamp
    website_cookies: dict[str, str]
    store_authentication_cookie: dict[str, JsonValue]
    device_info: dict[str, JsonValue]
    customer_info: dict[str, JsonValue]

    def is_stale(self, now: float | None = None, buffer_seconds: float = 0.0) -> bool:
        """Check whether the access token has expired.

        Args:
            now: Evaluation time as a Unix timestamp; defaults to the current time
            buffer_seconds: Treat the token as stale this many seconds early
        """
        current = time.time() if now is None else now
        return current >= self.expires - buffer_seconds

    def with_access_token(self, access_token: str, expires: float) -> DeviceCredentials:
        """Return a copy carrying a new access token and expiry."""
        return self.model_copy(
            update={"access_token": access_token, "expires": expires}
        )

    def to_saved_dict(self, locale_code: str) -> dict[str, Any]:
        """Flat dictionary written to the saved auth file."""
        return {"locale_code": locale_code, **self.model_dump(mode="json")}

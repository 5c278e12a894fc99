"""Exception hierarchy for device authentication and license handling.

Provides specific exception types for different failure modes so callers can
decide whether to abort or retry a whole operation.
"""

from __future__ import annotations


class AAXConnectError(Exception):
    """Base exception for all aaxconnect errors."""

    pass


class InvalidURLError(AAXConnectError):
    """Raised when a URL cannot be built or parsed."""

    pass


class NetworkError(AAXConnectError):
    """Raised on transport failures or unexpected HTTP status codes."""

    pass


class DecodingError(AAXConnectError):
    """Raised when a response body is not JSON or has an unexpected shape."""

    pass


class RegistrationError(AAXConnectError):
    """Raised when device registration or deregistration is rejected.

    Carries the raw response body, when one was received, for diagnostics.
    """

    def __init__(self, message: str, response_body: str | None = None):
        super().__init__(message)
        self.response_body = response_body


class MissingTokenDataError(RegistrationError):
    """Raised when a registration response lacks a required token or extension."""

    pass


class DecryptionError(AAXConnectError):
    """Raised when voucher decryption or plaintext parsing fails."""

    pass


class MissingDeviceInfoError(AAXConnectError):
    """Raised when device_info lacks device_serial_number or device_type."""

    def __init__(self, message: str = "Device information is missing or incomplete"):
        super().__init__(message)


class MissingCustomerInfoError(AAXConnectError):
    """Raised when customer_info lacks the customer id."""

    def __init__(
        self, message: str = "Customer information is missing or incomplete"
    ):
        super().__init__(message)


class InvalidAuthDataError(AAXConnectError):
    """Raised when a saved credential document is malformed."""

    pass


class EncodingError(AAXConnectError):
    """Raised when credentials or license info cannot be serialized."""

    pass


class LocaleNotFoundError(AAXConnectError):
    """Raised when no marketplace matches the requested locale."""

    pass


class PKCEError(AAXConnectError):
    """Raised when PKCE parameter generation fails."""

    pass


class AuthorizationCallbackError(AAXConnectError):
    """Raised when the login redirect URL is malformed or lacks the code.

    This indicates the sign-in page redirected somewhere unexpected, not that
    our redirect handling failed.
    """

    pass


class SigningError(AAXConnectError):
    """Raised when a request cannot be signed with the device private key."""

    pass

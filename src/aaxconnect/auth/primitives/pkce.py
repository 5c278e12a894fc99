"""PKCE (Proof Key for Code Exchange) manager for device registration.

Implements RFC 7636 parameter generation plus the device serial and client id
the vendor derives from it. The client id embeds the device serial, which is
how the authorization code gets bound to this particular device.
"""

from __future__ import annotations

import hashlib
import secrets
import uuid

from aaxconnect.auth.constants import DEVICE_TYPE
from aaxconnect.auth.models.errors import PKCEError
from aaxconnect.auth.models.security import PKCEParameters
from aaxconnect.auth.primitives.encoding import b64url_encode, hex_encode


class PKCEManager:
    """Manages PKCE parameter generation for device login flows.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url)
    - Generates cryptographically secure code verifiers
    - Never reuses a verifier across sessions
    """

    def __init__(self, device_type: str = DEVICE_TYPE):
        self.device_type = device_type

    def generate_parameters(
        self,
        code_verifier: str | None = None,
        serial: str | None = None,
    ) -> PKCEParameters:
        """Generate PKCE parameters and device identity for a login attempt.

        Args:
            code_verifier: Reuse this verifier instead of generating one
            serial: Reuse this device serial instead of generating one

        Returns:
            PKCEParameters: Immutable parameters for the authorization flow

        Raises:
            PKCEError: If parameter generation fails
        """
        try:
            verifier = code_verifier or self.create_code_verifier()
            device_serial = serial or self.build_device_serial()

            return PKCEParameters(
                code_verifier=verifier,
                code_challenge=self.create_code_challenge(verifier),
                device_serial=device_serial,
                client_id=self.build_client_id(device_serial),
            )

        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e

    @staticmethod
    def create_code_verifier(length: int = 32) -> str:
        """Generate a cryptographically secure code verifier.

        Args:
            length: Number of random bytes; 32 bytes encode to 43 characters

        Returns:
            Base64url-encoded random bytes without padding
        """
        if length < 1:
            raise ValueError("length must be positive")
        return b64url_encode(secrets.token_bytes(length))

    @staticmethod
    def create_code_challenge(code_verifier: str) -> str:
        """Generate code challenge from code verifier using S256 method.

        RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(code_verifier)). The
        verifier's text is hashed, not the bytes it encodes.
        """
        digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
        return b64url_encode(digest)

    @staticmethod
    def build_device_serial() -> str:
        """Random UUID without separators, uppercased (32 hex characters)."""
        return uuid.uuid4().hex.upper()

    def build_client_id(self, serial: str) -> str:
        """Hex of the raw bytes ``serial + "#" + device_type``."""
        raw = serial.encode("utf-8") + f"#{self.device_type}".encode("utf-8")
        return hex_encode(raw)

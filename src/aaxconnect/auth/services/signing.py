"""ADP request signing.

Requests to the content API are authenticated with the device's ADP token and
an RSA signature made with the device private key issued at registration.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from aaxconnect.auth.constants import ADP_SIGNING_ALGORITHM
from aaxconnect.auth.models.errors import SigningError
from aaxconnect.auth.primitives.encoding import b64_encode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedHeaders:
    """The x-adp-* headers for one signed request."""

    adp_token: str
    signature: str
    timestamp: str
    algorithm: str = ADP_SIGNING_ALGORITHM

    def to_dict(self) -> dict[str, str]:
        return {
            "x-adp-token": self.adp_token,
            "x-adp-alg": self.algorithm,
            "x-adp-signature": f"{self.signature}:{self.timestamp}",
        }


class RequestSigner:
    """Signs content API requests with SHA256withRSA.

    The signed text is ``METHOD\\nPATH\\nTIMESTAMP\\nBODY\\nADP_TOKEN`` where
    TIMESTAMP is the request time in epoch milliseconds.

    Args:
        adp_token: ADP token from registration
        device_private_key: PEM encoded RSA private key (PKCS#1 or PKCS#8)

    Raises:
        SigningError: If the private key cannot be loaded
    """

    def __init__(self, adp_token: str, device_private_key: str):
        self.adp_token = adp_token
        self._private_key = self._load_private_key(device_private_key)

    def sign(
        self,
        method: str,
        path: str,
        body: str,
        timestamp: int | None = None,
    ) -> SignedHeaders:
        """Sign a request.

        Args:
            method: HTTP method, e.g. "POST"
            path: Request path including any query string
            body: Exact request body text that will be sent
            timestamp: Epoch milliseconds; defaults to now

        Returns:
            SignedHeaders for the request
        """
        stamp = str(int(time.time() * 1000) if timestamp is None else timestamp)
        message = "\n".join([method.upper(), path, stamp, body, self.adp_token])

        try:
            raw_signature = self._private_key.sign(
                message.encode("utf-8"),
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except ValueError as e:
            raise SigningError(f"Failed to sign request: {e}") from e

        logger.debug(f"Signed {method.upper()} {path}")
        return SignedHeaders(
            adp_token=self.adp_token,
            signature=b64_encode(raw_signature),
            timestamp=stamp,
        )

    @staticmethod
    def _load_private_key(pem: str) -> rsa.RSAPrivateKey:
        try:
            key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
        except (ValueError, TypeError) as e:
            raise SigningError(f"Invalid device private key: {e}") from e

        if not isinstance(key, rsa.RSAPrivateKey):
            raise SigningError("Device private key is not an RSA key")
        return key

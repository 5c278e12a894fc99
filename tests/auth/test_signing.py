import base64

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding

from aaxconnect.auth.models.errors import SigningError
from aaxconnect.auth.services.signing import RequestSigner


class TestRequestSigner:
    def test_signature_verifies_over_canonical_message(
        self, rsa_private_key, private_key_pem
    ) -> None:
        # Arrange
        signer = RequestSigner("adp-token", private_key_pem)
        body = '{"drm_type": "Adrm"}'

        # Act
        signed = signer.sign("post", "/1.0/content/B0TEST/licenserequest", body, 1700000000000)

        # Assert
        message = (
            "POST\n/1.0/content/B0TEST/licenserequest\n1700000000000\n"
            '{"drm_type": "Adrm"}\nadp-token'
        )
        rsa_private_key.public_key().verify(
            base64.b64decode(signed.signature),
            message.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )

    def test_headers_carry_token_algorithm_and_timestamp(self, private_key_pem) -> None:
        # Arrange
        signer = RequestSigner("adp-token", private_key_pem)

        # Act
        headers = signer.sign("GET", "/1.0/library", "", 1700000000000).to_dict()

        # Assert
        assert headers["x-adp-token"] == "adp-token"
        assert headers["x-adp-alg"] == "SHA256withRSA:1.0"
        assert headers["x-adp-signature"].endswith(":1700000000000")

    def test_default_timestamp_is_epoch_milliseconds(self, private_key_pem) -> None:
        # Act
        signed = RequestSigner("adp-token", private_key_pem).sign("GET", "/", "")

        # Assert
        assert len(signed.timestamp) == 13
        assert signed.timestamp.isdigit()

    def test_pkcs8_key_is_accepted(self, rsa_private_key) -> None:
        # Arrange
        pem = rsa_private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")

        # Act & Assert
        RequestSigner("adp-token", pem).sign("GET", "/", "")

    def test_invalid_key_raises(self) -> None:
        with pytest.raises(SigningError, match="Invalid device private key"):
            RequestSigner("adp-token", "not a key")

    def test_non_rsa_key_raises(self) -> None:
        # Arrange
        pem = (
            ec.generate_private_key(ec.SECP256R1())
            .private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
            .decode("ascii")
        )

        # Act & Assert
        with pytest.raises(SigningError, match="not an RSA key"):
            RequestSigner("adp-token", pem)

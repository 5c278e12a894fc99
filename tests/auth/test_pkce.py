import base64
import hashlib
import re

import pytest

from aaxconnect.auth.models.errors import PKCEError
from aaxconnect.auth.models.security import PKCEParameters
from aaxconnect.auth.primitives.pkce import PKCEManager


class TestPKCEManager:
    def test_generate_parameters_crypto_requirements(self) -> None:
        # Arrange
        pkce_manager = PKCEManager()

        # Act
        params = pkce_manager.generate_parameters()

        # Assert RFC 7636 requirements
        assert 43 <= len(params.code_verifier) <= 128
        assert len(params.code_challenge) == 43
        assert params.code_challenge_method == "S256"

        # Verify code_challenge is base64url(sha256(code_verifier text))
        expected_challenge = (
            base64.urlsafe_b64encode(
                hashlib.sha256(params.code_verifier.encode("utf-8")).digest()
            )
            .decode("ascii")
            .rstrip("=")
        )
        assert params.code_challenge == expected_challenge

    def test_generate_parameters_uniqueness(self) -> None:
        # Arrange
        pkce_manager = PKCEManager()

        # Act - Generate multiple parameters
        params1 = pkce_manager.generate_parameters()
        params2 = pkce_manager.generate_parameters()

        # Assert - Each generation is unique
        assert params1.code_verifier != params2.code_verifier
        assert params1.code_challenge != params2.code_challenge
        assert params1.device_serial != params2.device_serial

    def test_generate_parameters_reuses_supplied_values(self) -> None:
        # Arrange
        pkce_manager = PKCEManager()
        verifier = "v" * 43
        serial = "ABCDEF0123456789ABCDEF0123456789"

        # Act
        params = pkce_manager.generate_parameters(code_verifier=verifier, serial=serial)

        # Assert
        assert params.code_verifier == verifier
        assert params.device_serial == serial
        assert params.client_id == pkce_manager.build_client_id(serial)

    def test_generate_parameters_wraps_invalid_verifier(self) -> None:
        # Arrange - too short for RFC 7636
        pkce_manager = PKCEManager()

        # Act & Assert
        with pytest.raises(PKCEError, match="Failed to generate PKCE parameters"):
            pkce_manager.generate_parameters(code_verifier="short")


class TestCodeVerifier:
    @pytest.mark.parametrize("length", [1, 16, 32, 96])
    def test_verifier_is_unpadded_base64url(self, length: int) -> None:
        # Act
        verifier = PKCEManager.create_code_verifier(length)

        # Assert
        assert verifier
        assert not set("+/=") & set(verifier)

    def test_default_length_encodes_to_43_characters(self) -> None:
        assert len(PKCEManager.create_code_verifier()) == 43

    def test_rejects_non_positive_length(self) -> None:
        with pytest.raises(ValueError):
            PKCEManager.create_code_verifier(0)


class TestCodeChallenge:
    def test_challenge_is_deterministic(self) -> None:
        # Arrange
        verifier = PKCEManager.create_code_verifier()

        # Act & Assert
        assert PKCEManager.create_code_challenge(
            verifier
        ) == PKCEManager.create_code_challenge(verifier)

    def test_rfc7636_appendix_b_vector(self) -> None:
        # Arrange
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        # Act
        challenge = PKCEManager.create_code_challenge(verifier)

        # Assert
        assert challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


class TestDeviceIdentity:
    def test_device_serial_is_32_uppercase_hex_characters(self) -> None:
        # Act
        serial = PKCEManager.build_device_serial()

        # Assert
        assert re.fullmatch(r"[0-9A-F]{32}", serial)

    def test_consecutive_serials_differ(self) -> None:
        assert PKCEManager.build_device_serial() != PKCEManager.build_device_serial()

    def test_client_id_hex_encodes_serial_and_device_type_together(self) -> None:
        # Arrange
        pkce_manager = PKCEManager(device_type="A2CZJZGLK2JJVM")

        # Act
        client_id = pkce_manager.build_client_id("SERIAL")

        # Assert
        assert client_id == b"SERIAL#A2CZJZGLK2JJVM".hex()
        assert bytes.fromhex(client_id).decode("ascii") == "SERIAL#A2CZJZGLK2JJVM"


class TestPKCEParameters:
    def test_rejects_plain_challenge_method(self) -> None:
        with pytest.raises(ValueError):
            PKCEParameters(
                code_verifier="v" * 43,
                code_challenge="c" * 43,
                device_serial="SERIAL",
                client_id="00",
                code_challenge_method="plain",
            )

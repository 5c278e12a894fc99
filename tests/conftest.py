import base64
import time
from typing import Any, Callable

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from aaxconnect.auth.models.credentials import DeviceCredentials
from aaxconnect.license.voucher import VoucherDecryptor, aes_cbc_encrypt

DEVICE_SERIAL = "0123456789ABCDEF0123456789ABCDEF"
DEVICE_TYPE = "A2CZJZGLK2JJVM"
CUSTOMER_ID = "CUST1"


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def make_credentials(private_key_pem: str) -> Callable[..., DeviceCredentials]:
    """Factory for registered-device credentials, fresh for an hour by default."""

    def _make(**overrides: Any) -> DeviceCredentials:
        fields: dict[str, Any] = {
            "adp_token": "{enc:adp}{key:k}{iv:i}{name:n}{serial:Mg==}",
            "device_private_key": private_key_pem,
            "access_token": "Atna|old-access-token",
            "refresh_token": "Atnr|refresh-token",
            "expires": time.time() + 3600,
            "website_cookies": {"session-id": "123-456"},
            "store_authentication_cookie": {"cookie": "store-cookie"},
            "device_info": {
                "device_serial_number": DEVICE_SERIAL,
                "device_type": DEVICE_TYPE,
                "device_name": "Test iPhone",
            },
            "customer_info": {"user_id": CUSTOMER_ID, "name": "Test User"},
        }
        fields.update(overrides)
        return DeviceCredentials(**fields)

    return _make


@pytest.fixture
def encrypt_voucher() -> Callable[..., str]:
    """Encrypt plaintext the way the license service does: NUL-padded, no PKCS#7."""

    def _encrypt(
        plaintext: bytes,
        asin: str,
        device_serial_number: str = DEVICE_SERIAL,
        customer_id: str = CUSTOMER_ID,
        device_type: str = DEVICE_TYPE,
    ) -> str:
        key, iv = VoucherDecryptor.derive_key_iv(
            device_type, device_serial_number, customer_id, asin
        )
        padded = plaintext + b"\0" * (-len(plaintext) % 16)
        return base64.b64encode(aes_cbc_encrypt(padded, key, iv, padding=False)).decode(
            "ascii"
        )

    return _encrypt

"""License voucher decryption.

The voucher key and IV are derived from identifiers only: SHA-256 over
device_type + device_serial_number + customer_id + asin, split into a 16-byte
AES key and a 16-byte IV. The plaintext is NUL-padded JSON, so the cipher
runs without PKCS#7 unpadding.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from typing import Any

from cryptography.hazmat.primitives import padding as symmetric_padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from aaxconnect.auth.models.errors import (
    DecryptionError,
    MissingCustomerInfoError,
    MissingDeviceInfoError,
)
from aaxconnect.auth.primitives.encoding import b64_decode
from aaxconnect.license.models import DecryptedVoucher

logger = logging.getLogger(__name__)

AES_BLOCK_SIZE = 16

# Older vouchers that are not valid JSON still start with this exact prefix.
LEGACY_VOUCHER_PATTERN = re.compile(r'^\{"key":"([^"]*?)","iv":"([^"]*?)",')


def aes_cbc_encrypt(data: bytes, key: bytes, iv: bytes, padding: bool = True) -> bytes:
    """AES-CBC encrypt, PKCS#7-padding the input when ``padding`` is set.

    Raises:
        ValueError: If unpadded input is not a whole number of blocks, or the
            key or IV has the wrong size
    """
    if padding:
        padder = symmetric_padding.PKCS7(AES_BLOCK_SIZE * 8).padder()
        data = padder.update(data) + padder.finalize()
    elif len(data) % AES_BLOCK_SIZE:
        raise ValueError("Unpadded input must be a multiple of the AES block size")

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(data) + encryptor.finalize()


def aes_cbc_decrypt(data: bytes, key: bytes, iv: bytes, padding: bool = True) -> bytes:
    """AES-CBC decrypt, removing PKCS#7 padding when ``padding`` is set.

    Raises:
        DecryptionError: If the ciphertext is misaligned, the key or IV has the
            wrong size, or the padding is invalid
    """
    if len(data) % AES_BLOCK_SIZE:
        raise DecryptionError("Ciphertext is not a multiple of the AES block size")

    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        plaintext = decryptor.update(data) + decryptor.finalize()

        if padding:
            unpadder = symmetric_padding.PKCS7(AES_BLOCK_SIZE * 8).unpadder()
            plaintext = unpadder.update(plaintext) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionError(f"AES decryption failed: {e}") from e

    return plaintext


class VoucherDecryptor:
    """Recovers playback key material from license vouchers."""

    @staticmethod
    def derive_key_iv(
        device_type: str,
        device_serial_number: str,
        customer_id: str,
        asin: str,
    ) -> tuple[bytes, bytes]:
        """Derive the voucher AES key and IV.

        Raises:
            DecryptionError: If any identifier is not pure ASCII
        """
        buffer = device_type + device_serial_number + customer_id + asin
        try:
            digest = hashlib.sha256(buffer.encode("ascii")).digest()
        except UnicodeEncodeError as e:
            raise DecryptionError("Failed to create buffer data") from e
        return digest[:16], digest[16:]

    def decrypt(
        self,
        device_serial_number: str,
        customer_id: str,
        device_type: str,
        asin: str,
        voucher: str,
    ) -> DecryptedVoucher:
        """Decrypt a base64 voucher.

        The plaintext is parsed as JSON first. Only if that fails is the
        legacy fixed-prefix pattern tried, which never yields rules.

        Raises:
            DecryptionError: If decoding, decryption or parsing fails
        """
        key, iv = self.derive_key_iv(
            device_type, device_serial_number, customer_id, asin
        )

        try:
            ciphertext = b64_decode(voucher)
        except ValueError as e:
            raise DecryptionError("Failed to decode base64 voucher") from e

        plaintext = aes_cbc_decrypt(ciphertext, key, iv, padding=False)

        try:
            text = plaintext.decode("utf-8").rstrip("\0")
        except UnicodeDecodeError as e:
            raise DecryptionError("Failed to parse voucher") from e

        parsed = _parse_json_voucher(text, asin)
        if parsed is None:
            parsed = _parse_legacy_voucher(text, asin)
        if parsed is None:
            raise DecryptionError("Failed to parse voucher")

        logger.debug(f"Decrypted voucher for {asin}")
        return parsed

    def decrypt_from_license_response(
        self,
        device_info: dict[str, Any],
        customer_info: dict[str, Any],
        license_response: dict[str, Any],
    ) -> DecryptedVoucher:
        """Decrypt the voucher embedded in a license request response.

        Raises:
            MissingDeviceInfoError: If device_serial_number or device_type is absent
            MissingCustomerInfoError: If user_id is absent
            DecryptionError: If the content license or voucher is absent or bad
        """
        device_serial_number = device_info.get("device_serial_number")
        device_type = device_info.get("device_type")
        if not (
            isinstance(device_serial_number, str) and isinstance(device_type, str)
        ):
            raise MissingDeviceInfoError()

        customer_id = customer_info.get("user_id")
        if not isinstance(customer_id, str):
            raise MissingCustomerInfoError()

        content_license = license_response.get("content_license")
        if not isinstance(content_license, dict):
            raise DecryptionError("Missing license data")
        asin = content_license.get("asin")
        voucher = content_license.get("license_response")
        if not isinstance(asin, str) or not isinstance(voucher, str):
            raise DecryptionError("Missing license data")

        return self.decrypt(
            device_serial_number=device_serial_number,
            customer_id=customer_id,
            device_type=device_type,
            asin=asin,
            voucher=voucher,
        )


def _parse_json_voucher(text: str, asin: str) -> DecryptedVoucher | None:
    try:
        data = json.loads(text)
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None
    key = data.get("key")
    iv = data.get("iv")
    if not isinstance(key, str) or not isinstance(iv, str):
        return None

    rules = data.get("rules")
    if not isinstance(rules, list) or not all(isinstance(r, dict) for r in rules):
        rules = None

    return DecryptedVoucher(key=key, iv=iv, asin=asin, rules=rules)


def _parse_legacy_voucher(text: str, asin: str) -> DecryptedVoucher | None:
    match = LEGACY_VOUCHER_PATTERN.match(text)
    if match is None:
        return None
    logger.debug("Voucher is not valid JSON, using legacy prefix match")
    return DecryptedVoucher(key=match.group(1), iv=match.group(2), asin=asin)

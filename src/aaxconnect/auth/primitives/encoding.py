"""Base64, base64url and hex helpers for key material."""

from __future__ import annotations

import base64
import binascii


def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url (RFC 4648 Section 5)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(value: str) -> bytes:
    """Decode base64url, restoring any padding the encoder stripped.

    Raises:
        ValueError: If the input is not valid base64url
    """
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Invalid base64url data: {e}") from e


def b64_encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64_decode(value: str) -> bytes:
    """Strictly decode standard base64.

    Raises:
        ValueError: If the input contains non-alphabet characters or bad padding
    """
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 data: {e}") from e


def hex_encode(data: bytes) -> str:
    """Lowercase hex encoding."""
    return data.hex()

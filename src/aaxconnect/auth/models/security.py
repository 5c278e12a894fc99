"""PKCE and device identity for a single login attempt."""

from __future__ import annotations

from dataclasses import dataclass

# 32 random bytes, base64url without padding
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
# SHA-256 digest, base64url without padding
CHALLENGE_LENGTH = 43


@dataclass(frozen=True)
class PKCEParameters:
    """Verifier, challenge and device identity bound to one sign-in.

    The authorization code the vendor issues is tied to both the challenge
    and the client id (which embeds device_serial). Registration has to
    present this exact code_verifier and device_serial or it is rejected.
    """

    code_verifier: str
    code_challenge: str
    device_serial: str
    client_id: str
    code_challenge_method: str = "S256"

    def __post_init__(self) -> None:
        if not MIN_VERIFIER_LENGTH <= len(self.code_verifier) <= MAX_VERIFIER_LENGTH:
            raise ValueError(
                f"code_verifier must be {MIN_VERIFIER_LENGTH}-{MAX_VERIFIER_LENGTH} "
                "characters"
            )
        if len(self.code_challenge) != CHALLENGE_LENGTH:
            raise ValueError("code_challenge must be an unpadded SHA-256 digest")
        if self.code_challenge_method != "S256":
            raise ValueError(
                f"Unsupported code challenge method: {self.code_challenge_method}"
            )
        if not self.device_serial:
            raise ValueError("device_serial must not be empty")

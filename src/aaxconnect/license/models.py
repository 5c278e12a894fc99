"""License and voucher data models.

A license request returns a content_license map carrying an encrypted
voucher. Decrypting it yields the playback key and IV plus the usage rules
the license was issued under.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, JsonValue, ValidationError

EXPIRES_PARAMETER_TYPE = "EXPIRES"


class RuleParameter(BaseModel):
    """One parameter of a usage rule. Only EXPIRES parameters are evaluated."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str | None = None
    expire_date: str | None = Field(default=None, alias="expireDate")


class Rule(BaseModel):
    """A named usage rule, e.g. {"name": "DefaultExpiresRule", "parameters": [...]}.

    Parameters stay raw so that one malformed entry does not hide the
    others; expires_parameters() types them one at a time.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    parameters: list[JsonValue]

    def expires_parameters(self) -> list[RuleParameter]:
        """EXPIRES parameters of this rule in order, skipping malformed ones."""
        result = []
        for parameter in self.parameters:
            if not isinstance(parameter, dict):
                continue
            try:
                typed = RuleParameter.model_validate(parameter)
            except ValidationError:
                continue
            if typed.type == EXPIRES_PARAMETER_TYPE:
                result.append(typed)
        return result


class DecryptedVoucher(BaseModel):
    """Playback key material recovered from a license voucher.

    ``key`` and ``iv`` are opaque strings at this layer. ``rules`` keeps the
    raw rule objects so a saved license re-validates exactly as received.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    iv: str
    asin: str | None = None
    rules: list[dict[str, JsonValue]] | None = None

    def to_saved_dict(self) -> dict[str, Any]:
        """Saved form, leaving out asin and rules when absent."""
        return self.model_dump(mode="json", exclude_none=True)


class LicenseInfo(BaseModel):
    """A content license together with its decrypted voucher."""

    model_config = ConfigDict(frozen=True)

    content_license: dict[str, JsonValue]
    voucher: DecryptedVoucher

    def to_saved_dict(self) -> dict[str, Any]:
        return {
            "content_license": self.content_license,
            "voucher": self.voucher.to_saved_dict(),
        }


class ValidationStatus(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    NO_RULES = "no_rules"
    NO_EXPIRY_RULE = "no_expiry_rule"
    REQUIRES_AD_SUPPORTED_PLAYBACK = "requires_ad_supported_playback"


@dataclass(frozen=True)
class VoucherValidationResult:
    """Verdict on whether a license currently permits playback."""

    is_valid: bool
    status: ValidationStatus
    expiry_date: datetime | None
    message: str

"""License validity evaluation.

Decides whether a license currently permits playback. Evaluation order, first
match wins:

1. content_license["requires_ad_supported_playback"] == 1 -> invalid
2. no rule set anywhere -> valid (no_rules)
3. any parsed EXPIRES date before the evaluation instant -> invalid (expired)
4. at least one parsed EXPIRES date -> valid until the earliest of them
5. otherwise -> valid (no_expiry_rule)

Steps 2 and 5 are valid-by-default: a license without usable expiry
information is accepted.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from aaxconnect.auth.models.errors import DecodingError
from aaxconnect.license.models import (
    LicenseInfo,
    Rule,
    ValidationStatus,
    VoucherValidationResult,
)

logger = logging.getLogger(__name__)

_EXPIRE_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
)

# strptime's %f takes at most six digits.
_FRACTION_PATTERN = re.compile(r"(?<=:\d\d)\.(\d+)")


class LicenseValidator:
    """Evaluates license rules against a point in time."""

    def validate(
        self, license_info: LicenseInfo, at: datetime | None = None
    ) -> VoucherValidationResult:
        """Validate a license.

        Args:
            license_info: License to evaluate
            at: Evaluation instant; defaults to now. Naive values are taken as UTC.

        Returns:
            VoucherValidationResult
        """
        instant = _as_utc(at or datetime.now(timezone.utc))
        content_license = license_info.content_license

        if _requires_ad_supported_playback(content_license):
            return VoucherValidationResult(
                is_valid=False,
                status=ValidationStatus.REQUIRES_AD_SUPPORTED_PLAYBACK,
                expiry_date=None,
                message="License requires ad-supported playback",
            )

        rules = resolve_rules(license_info)
        if rules is None:
            logger.debug("No rules found in voucher or content license")
            return VoucherValidationResult(
                is_valid=True,
                status=ValidationStatus.NO_RULES,
                expiry_date=None,
                message="No license rules found, voucher considered valid by default.",
            )

        return self._evaluate_expiry_rules(rules, instant)

    def validate_file(
        self, path: str | Path, at: datetime | None = None
    ) -> VoucherValidationResult:
        """Load a saved license info document and validate it.

        Raises:
            OSError: If the file cannot be read
            DecodingError: If the file is not a valid license info document
        """
        raw = Path(path).read_text(encoding="utf-8")
        try:
            license_info = LicenseInfo.model_validate_json(raw)
        except ValidationError as e:
            raise DecodingError(f"Invalid license info file {path}: {e}") from e
        return self.validate(license_info, at=at)

    def _evaluate_expiry_rules(
        self, rules: list[dict[str, Any]], instant: datetime
    ) -> VoucherValidationResult:
        earliest_expiry: datetime | None = None

        for rule in _typed_rules(rules):
            for parameter in rule.expires_parameters():
                expiry = parse_expire_date(parameter.expire_date)
                if expiry is None:
                    continue

                if earliest_expiry is None or expiry < earliest_expiry:
                    earliest_expiry = expiry

                # Scan order decides which expired rule is reported.
                if instant > expiry:
                    return VoucherValidationResult(
                        is_valid=False,
                        status=ValidationStatus.EXPIRED,
                        expiry_date=expiry,
                        message=(
                            f"License expired on {parameter.expire_date} "
                            f"(Rule: {rule.name})"
                        ),
                    )

        if earliest_expiry is None:
            return VoucherValidationResult(
                is_valid=True,
                status=ValidationStatus.NO_EXPIRY_RULE,
                expiry_date=None,
                message=(
                    "No EXPIRES rules found or rules were malformed, "
                    "voucher considered valid by default."
                ),
            )

        return VoucherValidationResult(
            is_valid=True,
            status=ValidationStatus.VALID,
            expiry_date=earliest_expiry,
            message=f"Valid until {_format_instant(earliest_expiry)}",
        )


def resolve_rules(license_info: LicenseInfo) -> list[dict[str, Any]] | None:
    """Find the rule set for a license.

    Fallback order:
    1. the decrypted voucher's rules
    2. a rules array directly under content_license
    3. content_license.license_response.rules, license_response being an object
    4. the same, license_response being a JSON-encoded string

    Returns None when none of them holds a list of rule objects.
    """
    if license_info.voucher.rules is not None:
        return license_info.voucher.rules

    content_license = license_info.content_license

    rules = _as_rule_list(content_license.get("rules"))
    if rules is not None:
        return rules

    license_response = content_license.get("license_response")
    if isinstance(license_response, dict):
        rules = _as_rule_list(license_response.get("rules"))
        if rules is not None:
            return rules

    if isinstance(license_response, str):
        try:
            decoded = json.loads(license_response)
        except ValueError:
            # Usually the encrypted voucher itself, which is not JSON.
            return None
        if isinstance(decoded, dict):
            return _as_rule_list(decoded.get("rules"))

    return None


def parse_expire_date(value: Any) -> datetime | None:
    """Parse an ISO-8601 expireDate, with or without fractional seconds.

    Fractions of any precision are accepted and cut to microseconds.
    """
    if not isinstance(value, str):
        return None
    value = _FRACTION_PATTERN.sub(
        lambda match: "." + match.group(1)[:6].ljust(6, "0"), value, count=1
    )
    for fmt in _EXPIRE_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _typed_rules(rules: list[dict[str, Any]]) -> list[Rule]:
    typed = []
    for rule in rules:
        try:
            typed.append(Rule.model_validate(rule))
        except ValidationError:
            # Rules without a string name or a parameters list are skipped.
            continue
    return typed


def _requires_ad_supported_playback(content_license: dict[str, Any]) -> bool:
    flag = content_license.get("requires_ad_supported_playback")
    # Integer flag on the wire; a JSON true is not the same thing.
    return isinstance(flag, int) and not isinstance(flag, bool) and flag == 1


def _as_rule_list(value: Any) -> list[dict[str, Any]] | None:
    if isinstance(value, list) and all(isinstance(rule, dict) for rule in value):
        return value
    return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _format_instant(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

"""Marketplace locale lookup.

Each marketplace is identified by a country code, a top-level domain and a
marketplace id; any one of them is enough to find the other two.
"""

from __future__ import annotations

from dataclasses import dataclass

from aaxconnect.auth.models.errors import LocaleNotFoundError


@dataclass(frozen=True)
class Locale:
    """A vendor marketplace."""

    country_code: str
    domain: str
    marketplace_id: str

    @classmethod
    def find(
        cls,
        country_code: str | None = None,
        domain: str | None = None,
        marketplace_id: str | None = None,
    ) -> Locale:
        """Resolve a marketplace from any of its identifiers.

        Lookup order is country code, then domain, then marketplace id. If
        none of them matches a known marketplace but all three are given,
        they are taken as a custom locale.

        Raises:
            LocaleNotFoundError: If nothing matches and the triple is incomplete
        """
        for attr, value in (
            ("country_code", country_code),
            ("domain", domain),
            ("marketplace_id", marketplace_id),
        ):
            if value is None:
                continue
            for template in LOCALE_TEMPLATES.values():
                if getattr(template, attr) == value:
                    return template

        if country_code and domain and marketplace_id:
            return cls(country_code, domain, marketplace_id)

        raise LocaleNotFoundError(
            f"No marketplace for country_code={country_code!r}, "
            f"domain={domain!r}, marketplace_id={marketplace_id!r}"
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "country_code": self.country_code,
            "domain": self.domain,
            "marketplace_id": self.marketplace_id,
        }


LOCALE_TEMPLATES: dict[str, Locale] = {
    "germany": Locale("de", "de", "AN7V1F1VY261K"),
    "united_states": Locale("us", "com", "AF2M0KC94RCEA"),
    "united_kingdom": Locale("uk", "co.uk", "A2I9A3Q2GNFNGQ"),
    "france": Locale("fr", "fr", "A2728XDNODOQ8T"),
    "canada": Locale("ca", "ca", "A2CQZ5RBY40XE"),
    "italy": Locale("it", "it", "A2N7FU2W2BU2ZC"),
    "australia": Locale("au", "com.au", "AN7EY7DTAW63G"),
    "india": Locale("in", "in", "AJO3FBRUE6J4S"),
    "japan": Locale("jp", "co.jp", "A1QAP3MOU4173J"),
    "spain": Locale("es", "es", "ALMIKO4SZCSAR"),
    "brazil": Locale("br", "com.br", "A10J1VAYUDTYRN"),
}

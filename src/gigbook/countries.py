"""Per-country VAT defaults and reverse-charge rules."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

# Norway is EEA, not EU, but is treated as EU for VAT.
EU_COUNTRIES = frozenset(
    {"SE", "NO", "DK", "FI", "DE", "AT", "FR", "NL", "BE", "ES", "IT", "PL", "CZ", "IE", "PT"}
)

REVERSE_CHARGE_COUNTRIES = EU_COUNTRIES


@dataclass(frozen=True)
class VatDefaults:
    concert: Decimal
    recording: Decimal
    teaching: Decimal
    expenses: Decimal = Decimal(0)


@dataclass(frozen=True)
class CountryConfig:
    currency: str
    vat_prefix: str
    has_vat: bool
    default_vat_rates: VatDefaults


def _rates(concert: str, recording: str, teaching: str) -> VatDefaults:
    return VatDefaults(Decimal(concert), Decimal(recording), Decimal(teaching))


COUNTRY_CONFIGS: dict[str, CountryConfig] = {
    "SE": CountryConfig("SEK", "SE", True, _rates("0", "6", "25")),
    "NO": CountryConfig("NOK", "NO", True, _rates("0", "25", "25")),
    "DK": CountryConfig("DKK", "DK", True, _rates("0", "25", "25")),
    "FI": CountryConfig("EUR", "FI", True, _rates("10", "25.5", "25.5")),
    "DE": CountryConfig("EUR", "DE", True, _rates("7", "19", "19")),
    "AT": CountryConfig("EUR", "AT", True, _rates("13", "20", "20")),
    "FR": CountryConfig("EUR", "FR", True, _rates("5.5", "20", "20")),
    "NL": CountryConfig("EUR", "NL", True, _rates("9", "21", "21")),
    "BE": CountryConfig("EUR", "BE", True, _rates("6", "21", "21")),
    "GB": CountryConfig("GBP", "GB", True, _rates("20", "20", "0")),
    "US": CountryConfig("USD", "", False, _rates("0", "0", "0")),
    "CH": CountryConfig("CHF", "CHE", True, _rates("2.6", "8.1", "8.1")),
    "ES": CountryConfig("EUR", "ES", True, _rates("10", "21", "21")),
    "IT": CountryConfig("EUR", "IT", True, _rates("10", "22", "22")),
    "PL": CountryConfig("PLN", "PL", True, _rates("8", "23", "23")),
    "CZ": CountryConfig("CZK", "CZ", True, _rates("12", "21", "21")),
    "IE": CountryConfig("EUR", "IE", True, _rates("9", "23", "23")),
    "PT": CountryConfig("EUR", "PT", True, _rates("6", "23", "23")),
}


def get_country_config(country_code: str) -> CountryConfig:
    """Return the config for a country, falling back to Sweden."""
    return COUNTRY_CONFIGS.get(country_code.upper(), COUNTRY_CONFIGS["SE"])


def is_eu_country(country_code: str) -> bool:
    return country_code.upper() in EU_COUNTRIES


def should_reverse_charge(seller_country: str, buyer_country: str | None) -> bool:
    """Whether an invoice between the two countries uses reverse charge.

    Both parties must be inside the EU/EEA and in different countries.
    """
    if not buyer_country:
        return False
    seller = seller_country.upper()
    buyer = buyer_country.upper()
    if seller == buyer:
        return False
    return seller in REVERSE_CHARGE_COUNTRIES and buyer in REVERSE_CHARGE_COUNTRIES

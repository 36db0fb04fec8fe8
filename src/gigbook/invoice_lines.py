"""Invoice line generation from selected gigs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from gigbook.currency import convert_gig_amounts
from gigbook.models import InvoiceLine

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from gigbook.currency import ConvertedAmounts, ExchangeRateSource
    from gigbook.models import Gig, GigType

Locale = Literal["sv", "en"]

TRAVEL_GIG_TYPE_NAMES = frozenset({"concert", "konsert"})

_DAYS = {"sv": "dagar", "en": "days"}
_TRAVEL = {"sv": "Reseersättning", "en": "Travel expenses"}


def localized_name(gig_type: GigType, locale: Locale = "sv") -> str:
    if locale == "en" and gig_type.name_en:
        return gig_type.name_en
    return gig_type.name


def format_date_range(gig: Gig, locale: Locale = "sv") -> str:
    """``"2024-03-01 - 2024-03-03 (3 days)"`` for multi-day gigs, else the date."""
    if gig.total_days > 1:
        return (
            f"{gig.start_date.isoformat()} - {gig.end_date.isoformat()} "
            f"({gig.total_days} {_DAYS[locale]})"
        )
    return gig.start_date.isoformat()


def find_travel_gig_type(gig_types: Iterable[GigType]) -> GigType | None:
    """The concert gig type, whose VAT rate applies to travel by convention."""
    for gig_type in gig_types:
        names = {gig_type.name, gig_type.name_en or ""}
        if any(name.strip().lower() in TRAVEL_GIG_TYPE_NAMES for name in names):
            return gig_type
    return None


def build_gig_lines(
    gigs: Iterable[Gig],
    gig_types: Iterable[GigType],
    *,
    locale: Locale = "sv",
    amounts: Mapping[str, ConvertedAmounts] | None = None,
) -> list[InvoiceLine]:
    """Build invoice lines for gigs in selection order.

    Each gig yields a fee line and, when it has travel expenses, a travel
    line tagged with the concert gig type. ``amounts`` maps gig ids to
    base-currency amounts; gigs missing from it use their own amounts.
    """
    types = {gig_type.id: gig_type for gig_type in gig_types}
    travel_type = find_travel_gig_type(types.values())
    lines: list[InvoiceLine] = []

    for gig in gigs:
        converted = amounts.get(gig.id) if amounts else None
        fee = converted.fee if converted else gig.fee
        travel = converted.travel_expense if converted else gig.travel_expense

        gig_type = types.get(gig.gig_type_id)
        parts = [localized_name(gig_type, locale) if gig_type else ""]
        if gig.project_name:
            parts.append(gig.project_name)
        parts.append(format_date_range(gig, locale))

        lines.append(
            InvoiceLine(
                description=" - ".join(p for p in parts if p),
                amount=fee or 0,
                gig_type_id=gig.gig_type_id,
            )
        )

        if travel:
            lines.append(
                InvoiceLine(
                    description=_TRAVEL[locale],
                    amount=travel,
                    gig_type_id=travel_type.id if travel_type else gig.gig_type_id,
                )
            )
    return lines


def base_currency_amounts(
    gigs: Iterable[Gig], base_currency: str, rates: ExchangeRateSource
) -> dict[str, ConvertedAmounts]:
    """Fee and travel amounts of each gig converted to the base currency."""
    return {gig.id: convert_gig_amounts(gig, base_currency, rates) for gig in gigs}

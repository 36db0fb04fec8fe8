"""Exchange rates and base-currency conversion of gig amounts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Protocol

import httpx

from gigbook.config import get_exchange_rate_api_url, get_http_timeout
from gigbook.store import StoreError

if TYPE_CHECKING:
    from datetime import date

    from gigbook.models import Gig
    from gigbook.store import RowStore

logger = logging.getLogger(__name__)

SUPPORTED_CURRENCIES = ("SEK", "EUR", "USD", "DKK", "NOK")
CENT = Decimal("0.01")


class ExchangeRateError(RuntimeError):
    """No exchange rate could be obtained."""


class ExchangeRateSource(Protocol):
    """Returns how many units of ``to`` one unit of ``from_`` buys on a date."""

    def get_rate(self, from_: str, to: str, on: date) -> Decimal: ...


class FrankfurterRates:
    """ECB reference rates from the Frankfurter API (no API key needed)."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url or get_exchange_rate_api_url()
        self.client = client or httpx.Client(timeout=get_http_timeout())

    def get_rate(self, from_: str, to: str, on: date) -> Decimal:
        if from_ == to:
            return Decimal(1)
        url = f"{self.base_url}/{on.isoformat()}"
        try:
            response = self.client.get(url, params={"from": from_, "to": to})
            response.raise_for_status()
            rate = response.json()["rates"][to]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            msg = f"Failed to fetch exchange rate {from_}->{to} on {on}: {exc}"
            raise ExchangeRateError(msg) from exc
        return Decimal(str(rate))


class CachedRates:
    """Rate lookup through the ``exchange_rates`` table.

    Fetched rates are written back. When fetching fails, the latest cached
    rate on or before the date is used instead.
    """

    table = "exchange_rates"

    def __init__(self, store: RowStore, source: ExchangeRateSource) -> None:
        self.store = store
        self.source = source

    def get_rate(self, from_: str, to: str, on: date) -> Decimal:
        if from_ == to:
            return Decimal(1)

        cached = self.store.select(
            self.table, base_currency=from_, target_currency=to, date=on
        )
        if cached:
            return Decimal(str(cached[0]["rate"]))

        try:
            rate = self.source.get_rate(from_, to, on)
        except ExchangeRateError:
            logger.warning("Rate fetch failed for %s->%s on %s", from_, to, on)
            fallback = self._closest_before(from_, to, on)
            if fallback is None:
                msg = f"No exchange rate available for {from_}->{to} on {on}"
                raise ExchangeRateError(msg) from None
            return fallback

        try:
            self.store.insert(
                self.table,
                {
                    "base_currency": from_,
                    "target_currency": to,
                    "rate": rate,
                    "date": on,
                    "source": "ecb",
                },
            )
        except StoreError:
            logger.warning("Could not cache rate %s->%s on %s", from_, to, on, exc_info=True)
        return rate

    def _closest_before(self, from_: str, to: str, on: date) -> Decimal | None:
        rows = self.store.select(
            self.table, order_by="date", base_currency=from_, target_currency=to
        )
        earlier = [row for row in rows if row["date"] <= on]
        if not earlier:
            return None
        return Decimal(str(earlier[-1]["rate"]))


def convert(amount: Decimal, rate: Decimal) -> Decimal:
    """Multiply by ``rate`` and round to 2 decimals."""
    return (amount * rate).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ConvertedAmounts:
    """Fee and travel expense in the company's base currency."""

    fee: Decimal | None
    travel_expense: Decimal | None
    rate: Decimal = Decimal(1)
    degraded: bool = False


def convert_gig_amounts(
    gig: Gig, base_currency: str, rates: ExchangeRateSource
) -> ConvertedAmounts:
    """Convert a gig's fee and travel expense using the rate on its start date.

    A failed lookup, including a failing rate cache, falls back to rate 1.0
    and the raw amounts.
    """
    if gig.currency == base_currency or not (gig.fee or gig.travel_expense):
        return ConvertedAmounts(gig.fee, gig.travel_expense)

    try:
        rate = rates.get_rate(gig.currency, base_currency, gig.start_date)
    except (ExchangeRateError, StoreError):
        logger.warning(
            "Using rate 1.0 for gig %s: no %s->%s rate for %s",
            gig.id,
            gig.currency,
            base_currency,
            gig.start_date,
        )
        return ConvertedAmounts(gig.fee, gig.travel_expense, Decimal(1), degraded=True)

    return ConvertedAmounts(
        fee=convert(gig.fee, rate) if gig.fee else gig.fee,
        travel_expense=(
            convert(gig.travel_expense, rate) if gig.travel_expense else gig.travel_expense
        ),
        rate=rate,
    )

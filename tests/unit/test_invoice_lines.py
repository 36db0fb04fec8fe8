"""Tests for gigbook.invoice_lines."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

from gigbook.currency import ConvertedAmounts
from gigbook.invoice_lines import (
    base_currency_amounts,
    build_gig_lines,
    find_travel_gig_type,
    format_date_range,
    localized_name,
)
from gigbook.models import GigType, VatGroup
from gigbook.vat import compute_totals, resolve_vat_rates

if TYPE_CHECKING:
    from collections.abc import Callable

    from gigbook.models import Gig

THREE_DAYS = (date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3))


class TestFormatDateRange:
    """Tests for format_date_range."""

    def test_single_day(self, gig_factory: Callable[..., Gig]) -> None:
        assert format_date_range(gig_factory()) == "2024-03-01"

    def test_multi_day_swedish(self, gig_factory: Callable[..., Gig]) -> None:
        gig = gig_factory(days=THREE_DAYS)
        assert format_date_range(gig) == "2024-03-01 - 2024-03-03 (3 dagar)"

    def test_multi_day_english(self, gig_factory: Callable[..., Gig]) -> None:
        gig = gig_factory(days=THREE_DAYS)
        assert format_date_range(gig, "en") == "2024-03-01 - 2024-03-03 (3 days)"


class TestLocalizedName:
    """Tests for localized_name and find_travel_gig_type."""

    def test_english_name(self, gig_types: list[GigType]) -> None:
        assert localized_name(gig_types[0], "en") == "Concert"
        assert localized_name(gig_types[0], "sv") == "Konsert"

    def test_english_falls_back_to_name(self) -> None:
        gig_type = GigType(id="x", name="Repetition")
        assert localized_name(gig_type, "en") == "Repetition"

    def test_finds_concert_type(self, gig_types: list[GigType]) -> None:
        travel = find_travel_gig_type(gig_types)
        assert travel is not None
        assert travel.id == "gt-concert"

    def test_no_concert_type(self, gig_types: list[GigType]) -> None:
        assert find_travel_gig_type(gig_types[1:]) is None


class TestBuildGigLines:
    """Tests for build_gig_lines."""

    def test_fee_line_description(
        self, gig_types: list[GigType], gig_factory: Callable[..., Gig]
    ) -> None:
        gig = gig_factory(project_name="Vårkonsert", days=THREE_DAYS)

        lines = build_gig_lines([gig], gig_types)

        assert len(lines) == 1
        assert lines[0].description == (
            "Undervisning - Vårkonsert - 2024-03-01 - 2024-03-03 (3 dagar)"
        )
        assert lines[0].amount == Decimal("5000")
        assert lines[0].gig_type_id == "gt-teaching"

    def test_travel_line_uses_concert_type(
        self, gig_types: list[GigType], gig_factory: Callable[..., Gig]
    ) -> None:
        gig = gig_factory(travel="450")

        lines = build_gig_lines([gig], gig_types, locale="en")

        assert [line.description for line in lines] == [
            "Teaching - 2024-03-01",
            "Travel expenses",
        ]
        assert lines[1].amount == Decimal("450")
        assert lines[1].gig_type_id == "gt-concert"

    def test_travel_without_concert_type(
        self, gig_types: list[GigType], gig_factory: Callable[..., Gig]
    ) -> None:
        gig = gig_factory(gig_type_id="gt-recording", travel="100")

        lines = build_gig_lines([gig], gig_types[1:])

        assert lines[1].description == "Reseersättning"
        assert lines[1].gig_type_id == "gt-recording"

    def test_selection_order_kept(
        self, gig_types: list[GigType], gig_factory: Callable[..., Gig]
    ) -> None:
        later = gig_factory("g-2", days=(date(2024, 5, 1),))
        earlier = gig_factory("g-1", days=(date(2024, 1, 1),), travel="10")

        lines = build_gig_lines([later, earlier], gig_types)

        assert [line.description for line in lines] == [
            "Undervisning - 2024-05-01",
            "Undervisning - 2024-01-01",
            "Reseersättning",
        ]

    def test_missing_fee_is_zero(
        self, gig_types: list[GigType], gig_factory: Callable[..., Gig]
    ) -> None:
        lines = build_gig_lines([gig_factory(fee=None)], gig_types)
        assert lines[0].amount == Decimal(0)

    def test_uses_converted_amounts(
        self, gig_types: list[GigType], gig_factory: Callable[..., Gig]
    ) -> None:
        gig = gig_factory(fee="100", travel="20", currency="EUR")
        amounts = {
            gig.id: ConvertedAmounts(
                fee=Decimal("1150.00"), travel_expense=Decimal("230.00"), rate=Decimal("11.5")
            )
        }

        lines = build_gig_lines([gig], gig_types, amounts=amounts)

        assert [line.amount for line in lines] == [Decimal("1150.00"), Decimal("230.00")]

    def test_base_currency_amounts(
        self, gig_types: list[GigType], gig_factory: Callable[..., Gig]
    ) -> None:
        local = gig_factory("g-sek", fee="3000")
        foreign = gig_factory("g-eur", fee="200", currency="EUR")
        rates = MagicMock()
        rates.get_rate.return_value = Decimal("11.5")

        amounts = base_currency_amounts([local, foreign], "SEK", rates)
        lines = build_gig_lines([local, foreign], gig_types, amounts=amounts)

        assert [line.amount for line in lines] == [Decimal("3000"), Decimal("2300.00")]
        rates.get_rate.assert_called_once()


class TestGigsToTotals:
    """Gig selection through line generation, rate resolution and totals."""

    def test_two_concerts_with_travel(self, gig_factory: Callable[..., Gig]) -> None:
        konsert = GigType(id="gt-konsert", name="Konsert", name_en="Concert", vat_rate=Decimal(25))
        gigs = [
            gig_factory("g-1", gig_type_id="gt-konsert", fee="3000"),
            gig_factory(
                "g-2",
                gig_type_id="gt-konsert",
                fee="5000",
                travel="500",
                days=(date(2024, 3, 1), date(2024, 3, 2)),
            ),
        ]

        lines = build_gig_lines(gigs, [konsert], locale="en")
        resolved = resolve_vat_rates(lines, {konsert.id: konsert.vat_rate})
        totals = compute_totals(resolved)

        assert [line.description for line in lines] == [
            "Concert - 2024-03-01",
            "Concert - 2024-03-01 - 2024-03-02 (2 days)",
            "Travel expenses",
        ]
        assert all(line.gig_type_id == "gt-konsert" for line in lines)
        assert totals.subtotal == Decimal("8500")
        assert totals.vat_amount == Decimal("2125.00")
        assert totals.total == Decimal("10625.00")
        assert totals.vat_groups == [
            VatGroup(vat_rate=Decimal(25), underlag=Decimal("8500"), vat=Decimal("2125.00"))
        ]

"""Invoice VAT aggregation.

Lines carry a gig-type id from which their VAT rate is resolved. Per-line
VAT is rounded to whole cents before summing so that the VAT groups always
add up exactly to the invoice totals.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from gigbook.countries import should_reverse_charge
from gigbook.models import InvoiceLine, InvoiceTotals, VatGroup

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DEFAULT_VAT_RATE = Decimal(25)


def resolve_vat_rates(
    lines: Iterable[InvoiceLine], gig_type_rates: Mapping[str, Decimal]
) -> list[InvoiceLine]:
    """Return copies of ``lines`` with ``vat_rate`` taken from their gig type.

    A line whose gig type is missing or unknown gets rate 0.
    """
    resolved = []
    for index, line in enumerate(lines):
        rate = gig_type_rates.get(line.gig_type_id) if line.gig_type_id else None
        if rate is None:
            logger.warning(
                "Invoice line %d (%r) has unresolved gig type %r, using VAT rate 0",
                index,
                line.description,
                line.gig_type_id,
            )
            rate = Decimal(0)
        resolved.append(line.model_copy(update={"vat_rate": Decimal(rate)}))
    return resolved


def line_vat(line: InvoiceLine) -> Decimal:
    """VAT for a single line, rounded to cents."""
    return (line.amount * line.vat_rate / 100).quantize(CENT, rounding=ROUND_HALF_UP)


def group_by_vat_rate(
    lines: Iterable[InvoiceLine], *, is_reverse_charge: bool = False
) -> list[VatGroup]:
    """Group lines by rate, in order of first appearance."""
    groups: dict[Decimal, VatGroup] = {}
    for line in lines:
        group = groups.get(line.vat_rate)
        if group is None:
            group = VatGroup(vat_rate=line.vat_rate, underlag=Decimal(0), vat=Decimal(0))
            groups[line.vat_rate] = group
        group.underlag += line.amount
        if not is_reverse_charge:
            group.vat += line_vat(line)
    return list(groups.values())


def primary_vat_rate(
    lines: Sequence[InvoiceLine], *, is_reverse_charge: bool = False
) -> Decimal:
    """Single rate for legacy one-rate displays."""
    if is_reverse_charge:
        return Decimal(0)
    for line in lines:
        if line.vat_rate:
            return line.vat_rate
    return DEFAULT_VAT_RATE


def compute_totals(
    lines: Sequence[InvoiceLine], *, is_reverse_charge: bool = False
) -> InvoiceTotals:
    """Compute subtotal, VAT, total and the per-rate breakdown.

    Reverse charge leaves the subtotal alone and forces all VAT to zero.
    """
    subtotal = sum((line.amount for line in lines), Decimal(0))
    if is_reverse_charge:
        vat_amount = Decimal(0)
    else:
        vat_amount = sum((line_vat(line) for line in lines), Decimal(0))

    return InvoiceTotals(
        subtotal=subtotal,
        vat_amount=vat_amount,
        total=subtotal + vat_amount,
        vat_groups=group_by_vat_rate(lines, is_reverse_charge=is_reverse_charge),
        primary_vat_rate=primary_vat_rate(lines, is_reverse_charge=is_reverse_charge),
        is_reverse_charge=is_reverse_charge,
    )


def is_reverse_charge(seller_country: str, buyer_country: str | None) -> bool:
    return should_reverse_charge(seller_country, buyer_country)

"""Invoice numbering, validation and persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING

from gigbook.models import GigStatus
from gigbook.vat import compute_totals, resolve_vat_rates

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from decimal import Decimal

    from gigbook.models import InvoiceLine, InvoiceTotals
    from gigbook.store import Row, RowStore

logger = logging.getLogger(__name__)


class InvoiceValidationError(ValueError):
    """The invoice cannot be submitted as entered."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems


@dataclass
class InvoiceDraft:
    """Everything entered in the invoice form before submission."""

    client_id: str | None
    lines: list[InvoiceLine]
    invoice_date: date
    payment_terms: int = 30
    is_reverse_charge: bool = False
    gig_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CreatedInvoice:
    id: str
    invoice_number: int
    totals: InvoiceTotals


def next_invoice_number(existing: Iterable[int], starting_number: int = 1) -> int:
    """Lowest free number below ``starting_number``, else the first free from it."""
    taken = set(existing)
    for number in range(1, starting_number):
        if number not in taken:
            return number
    number = starting_number
    while number in taken:
        number += 1
    return number


def due_date(invoice_date: date, payment_terms: int) -> date:
    return invoice_date + timedelta(days=payment_terms)


def validate_invoice(
    client_id: str | None,
    lines: Sequence[InvoiceLine],
    gig_type_rates: Mapping[str, Decimal],
) -> list[str]:
    """Return the problems blocking submission; empty when the form is valid."""
    problems = []
    if not client_id:
        problems.append("No client selected")
    if not lines:
        problems.append("Invoice has no lines")
    for index, line in enumerate(lines, start=1):
        if not line.description.strip():
            problems.append(f"Line {index} has no description")
        if line.amount < 0:
            problems.append(f"Line {index} has a negative amount")
        if line.gig_type_id and line.gig_type_id not in gig_type_rates:
            problems.append(f"Line {index} uses unknown gig type {line.gig_type_id}")
    return problems


def create_invoice(
    store: RowStore,
    draft: InvoiceDraft,
    gig_type_rates: Mapping[str, Decimal],
) -> CreatedInvoice:
    """Validate, total and store an invoice with its lines.

    Linked gigs are marked as invoiced and the company's next invoice
    number is advanced when the highest number was used. All writes happen
    in one store transaction.
    """
    problems = validate_invoice(draft.client_id, draft.lines, gig_type_rates)
    if problems:
        raise InvoiceValidationError(problems)

    lines = resolve_vat_rates(draft.lines, gig_type_rates)
    totals = compute_totals(lines, is_reverse_charge=draft.is_reverse_charge)

    with store.transaction():
        settings = _company_settings(store)
        starting_number = int(settings["next_invoice_number"]) if settings else 1
        existing = (row["invoice_number"] for row in store.select("invoices"))
        number = next_invoice_number(existing, starting_number)

        invoice = store.insert(
            "invoices",
            {
                "client_id": draft.client_id,
                "gig_id": draft.gig_ids[0] if draft.gig_ids else None,
                "invoice_number": number,
                "invoice_date": draft.invoice_date,
                "due_date": due_date(draft.invoice_date, draft.payment_terms),
                "subtotal": totals.subtotal,
                "vat_rate": totals.primary_vat_rate,
                "vat_amount": totals.vat_amount,
                "total": totals.total,
                "reverse_charge": totals.is_reverse_charge,
                "status": "draft",
            },
        )
        for sort_order, line in enumerate(lines):
            store.insert(
                "invoice_lines",
                {
                    "invoice_id": invoice["id"],
                    "description": line.description,
                    "amount": line.amount,
                    "vat_rate": line.vat_rate,
                    "gig_type_id": line.gig_type_id,
                    "expense_id": line.source_expense_id,
                    "sort_order": sort_order,
                },
            )

        if settings and number >= starting_number:
            store.update(
                "company_settings", settings["id"], {"next_invoice_number": number + 1}
            )

        for gig_id in draft.gig_ids:
            store.update("gigs", gig_id, {"status": GigStatus.INVOICED.value})

    logger.info(
        "Created invoice %d with %d lines, total %s", number, len(lines), totals.total
    )
    return CreatedInvoice(id=str(invoice["id"]), invoice_number=number, totals=totals)


def _company_settings(store: RowStore) -> Row | None:
    rows = store.select("company_settings")
    return rows[0] if rows else None

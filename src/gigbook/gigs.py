"""Gig drafts, dates and status updates.

A new-gig form creates a ``draft`` row as soon as it opens so attachments
have an id to hang on. Submitting updates that row in place; closing the
form without saving deletes it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from gigbook.currency import convert_gig_amounts
from gigbook.models import Gig, GigDate, GigStatus
from gigbook.store import StoreError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from decimal import Decimal

    from gigbook.currency import ConvertedAmounts, ExchangeRateSource
    from gigbook.models import Session
    from gigbook.store import RowStore

logger = logging.getLogger(__name__)


@dataclass
class GigForm:
    """Values entered in the gig form."""

    gig_type_id: str
    dates: list[date]
    currency: str = "SEK"
    status: GigStatus = GigStatus.PENDING
    client_id: str | None = None
    position_id: str | None = None
    fee: Decimal | None = None
    travel_expense: Decimal | None = None
    venue: str | None = None
    project_name: str | None = None
    notes: str | None = None
    schedule_texts: dict[date, str] = field(default_factory=dict)
    sessions: dict[date, list[Session]] = field(default_factory=dict)


def build_gig_dates(
    dates: Iterable[date],
    schedule_texts: Mapping[date, str] | None = None,
    sessions: Mapping[date, list[Session]] | None = None,
) -> list[GigDate]:
    """Sorted, de-duplicated gig dates with their schedules attached."""
    schedule_texts = schedule_texts or {}
    sessions = sessions or {}
    return [
        GigDate(
            date=day,
            schedule_text=(schedule_texts.get(day) or "").strip() or None,
            sessions=sessions.get(day, []),
        )
        for day in sorted(set(dates))
    ]


def create_draft(store: RowStore, today: date | None = None) -> str:
    """Insert a placeholder gig and return its id.

    Uses the first configured gig type; raises LookupError if there is none.
    """
    gig_types = store.select("gig_types", order_by="name")
    if not gig_types:
        msg = "No gig types configured"
        raise LookupError(msg)

    today = today or date.today()
    row = store.insert(
        "gigs",
        {
            "gig_type_id": gig_types[0]["id"],
            "date": today,
            "start_date": today,
            "end_date": today,
            "total_days": 1,
            "fee": 0,
            "status": GigStatus.DRAFT.value,
        },
    )
    logger.debug("Created draft gig %s", row["id"])
    return str(row["id"])


def finalize_draft(
    store: RowStore,
    gig_id: str,
    form: GigForm,
    *,
    base_currency: str,
    rates: ExchangeRateSource,
) -> Gig:
    """Write the form's values onto the draft row, which becomes the gig.

    Fee and travel expense are also stored in the base currency. Gig dates
    are replaced wholesale.
    """
    if not form.dates:
        msg = "A gig needs at least one date"
        raise ValueError(msg)

    gig = Gig(
        id=gig_id,
        gig_type_id=form.gig_type_id,
        client_id=form.client_id,
        position_id=form.position_id,
        project_name=form.project_name,
        venue=form.venue,
        notes=form.notes,
        fee=form.fee,
        travel_expense=form.travel_expense,
        currency=form.currency,
        status=form.status,
        dates=build_gig_dates(form.dates, form.schedule_texts, form.sessions),
    )
    converted = convert_gig_amounts(gig, base_currency, rates)
    store.update("gigs", gig_id, _gig_row(gig, converted))

    store.delete("gig_dates", gig_id=gig_id)
    for gig_date in gig.dates:
        store.insert(
            "gig_dates",
            {
                "gig_id": gig_id,
                "date": gig_date.date,
                "schedule_text": gig_date.schedule_text,
                "sessions": [s.model_dump(exclude_none=True) for s in gig_date.sessions],
            },
        )
    return gig


def _gig_row(gig: Gig, converted: ConvertedAmounts) -> dict[str, object]:
    return {
        "gig_type_id": gig.gig_type_id,
        "client_id": gig.client_id,
        "position_id": gig.position_id,
        "date": gig.start_date,
        "start_date": gig.start_date,
        "end_date": gig.end_date,
        "total_days": gig.total_days,
        "fee": gig.fee,
        "travel_expense": gig.travel_expense,
        "currency": gig.currency,
        "fee_base": converted.fee,
        "travel_expense_base": converted.travel_expense,
        "exchange_rate": converted.rate,
        "venue": gig.venue,
        "project_name": gig.project_name,
        "notes": gig.notes,
        "status": gig.status.value,
    }


def discard_draft(store: RowStore, gig_id: str) -> bool:
    """Delete a draft gig and its attachments.

    Only rows still in ``draft`` status are removed. Failures are logged and
    not raised. Returns whether the draft was deleted.
    """
    try:
        rows = store.select("gigs", id=gig_id)
        if not rows or rows[0]["status"] != GigStatus.DRAFT.value:
            logger.warning("Refusing to discard %s: not a draft gig", gig_id)
            return False
        store.delete("gig_attachments", gig_id=gig_id)
        store.delete("gig_dates", gig_id=gig_id)
        store.delete("gigs", id=gig_id)
    except StoreError:
        logger.warning("Could not discard draft gig %s", gig_id, exc_info=True)
        return False
    return True


def sweep_orphan_drafts(store: RowStore) -> int:
    """Delete draft gigs that never got a project name. Returns the count."""
    orphans = [
        row
        for row in store.select("gigs", status=GigStatus.DRAFT.value)
        if not (row.get("project_name") or "").strip()
    ]
    deleted = sum(discard_draft(store, str(row["id"])) for row in orphans)
    if deleted:
        logger.info("Swept %d orphaned draft gigs", deleted)
    return deleted


def set_status(store: RowStore, gig_id: str, status: GigStatus | str) -> None:
    """Write a new status. Any status may follow any other."""
    store.update("gigs", gig_id, {"status": GigStatus(status).value})

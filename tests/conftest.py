"""Shared test fixtures."""

from __future__ import annotations

import copy
import uuid
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest

from gigbook.models import Gig, GigDate, GigType, SupplierData
from gigbook.store import StoreError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from gigbook.models import SupplierMapping


class MemoryRowStore:
    """Dict-backed RowStore for tests. ``fail_on`` makes a table raise."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.fail_on: set[str] = set()

    def _check(self, table: str) -> None:
        if table in self.fail_on:
            msg = f"simulated failure on {table}"
            raise StoreError(msg)

    def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        self._check(table)
        stored = {"id": uuid.uuid4().hex, **row}
        self.tables.setdefault(table, []).append(stored)
        return dict(stored)

    def update(self, table: str, row_id: str, values: Mapping[str, Any]) -> None:
        self._check(table)
        for row in self.tables.get(table, []):
            if row["id"] == row_id:
                row.update(values)

    def delete(self, table: str, **filters: Any) -> int:
        self._check(table)
        rows = self.tables.get(table, [])
        keep = [r for r in rows if not _matches(r, filters)]
        self.tables[table] = keep
        return len(rows) - len(keep)

    def select(
        self, table: str, *, order_by: str | None = None, **filters: Any
    ) -> list[dict[str, Any]]:
        self._check(table)
        rows = [dict(r) for r in self.tables.get(table, []) if _matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: r[order_by])
        return rows

    @contextmanager
    def transaction(self) -> Iterator[None]:
        snapshot = copy.deepcopy(self.tables)
        try:
            yield
        except Exception:
            self.tables = snapshot
            raise


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    for column, value in filters.items():
        if isinstance(value, (list, tuple, set)):
            if row.get(column) not in value:
                return False
        elif row.get(column) != value:
            return False
    return True


@pytest.fixture
def store() -> MemoryRowStore:
    """Provide an empty in-memory row store."""
    return MemoryRowStore()


@pytest.fixture
def gig_types() -> list[GigType]:
    """Provide the default Swedish gig types plus a 25% type."""
    return [
        GigType(id="gt-concert", name="Konsert", name_en="Concert", vat_rate=Decimal(0)),
        GigType(id="gt-recording", name="Inspelning", name_en="Recording", vat_rate=Decimal(6)),
        GigType(id="gt-teaching", name="Undervisning", name_en="Teaching", vat_rate=Decimal(25)),
    ]


@pytest.fixture
def supplier_mapping() -> SupplierMapping:
    """Provide a small historical supplier mapping."""
    return {
        "spotify": SupplierData(category="Prenumeration", currency="USD", count=3),
        "sj": SupplierData(category="Resa", currency="SEK", count=12),
    }


def make_gig(
    gig_id: str = "gig-1",
    *,
    gig_type_id: str = "gt-teaching",
    fee: str | None = "5000",
    travel: str | None = None,
    currency: str = "SEK",
    days: tuple[date, ...] = (date(2024, 3, 1),),
    project_name: str | None = None,
) -> Gig:
    """Build a Gig with sensible defaults."""
    return Gig(
        id=gig_id,
        gig_type_id=gig_type_id,
        fee=Decimal(fee) if fee is not None else None,
        travel_expense=Decimal(travel) if travel is not None else None,
        currency=currency,
        project_name=project_name,
        dates=[GigDate(date=d) for d in days],
    )


@pytest.fixture
def gig_factory() -> Callable[..., Gig]:
    """Provide the make_gig builder."""
    return make_gig

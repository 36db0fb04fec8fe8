"""Supplier name normalization and historical category lookup."""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import TYPE_CHECKING

from gigbook.models import SupplierData

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from gigbook.models import ExpenseData, SupplierMapping

logger = logging.getLogger(__name__)

LEGAL_SUFFIX_RE = re.compile(r",?\s*(pbc|inc|ab|ltd|gmbh|as|oy|corp|llc)\.?$", re.IGNORECASE)
WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_CURRENCY = "SEK"


def normalize_supplier(name: str) -> str:
    """Lowercase, drop a trailing legal-entity suffix and collapse whitespace.

    >>> normalize_supplier("  Foo   Bar  AB ")
    'foo bar'
    """
    normalized = LEGAL_SUFFIX_RE.sub("", name.lower().strip())
    return WHITESPACE_RE.sub(" ", normalized).strip()


def find_historical_match(
    supplier_name: str, mapping: SupplierMapping
) -> SupplierData | None:
    """Look up a supplier in the historical mapping.

    An exact key wins. Otherwise the first key, in the mapping's insertion
    order, where either name contains the other is returned.
    """
    normalized = normalize_supplier(supplier_name)
    if not normalized:
        return None

    exact = mapping.get(normalized)
    if exact is not None:
        return exact

    for known, data in mapping.items():
        if known in normalized or normalized in known:
            logger.debug("Partial supplier match %r -> %r", normalized, known)
            return data
    return None


def build_supplier_mapping(expenses: Iterable[Mapping[str, object]]) -> SupplierMapping:
    """Most common category and currency per normalized supplier.

    ``expenses`` are stored rows with ``supplier``, ``category`` and
    ``currency`` keys. Rows without supplier or category are skipped.
    """
    categories: dict[str, Counter[str]] = {}
    currencies: dict[str, Counter[str]] = {}

    for expense in expenses:
        supplier = expense.get("supplier")
        category = expense.get("category")
        if not supplier or not category:
            continue
        key = normalize_supplier(str(supplier))
        categories.setdefault(key, Counter())[str(category)] += 1
        currencies.setdefault(key, Counter())[str(expense.get("currency") or DEFAULT_CURRENCY)] += 1

    mapping: SupplierMapping = {}
    for key, counts in categories.items():
        top_category, total = counts.most_common(1)[0][0], sum(counts.values())
        top_currency = currencies[key].most_common(1)[0][0]
        mapping[key] = SupplierData(category=top_category, currency=top_currency, count=total)
    return mapping


def apply_historical_category(
    data: ExpenseData, mapping: SupplierMapping
) -> tuple[ExpenseData, SupplierData | None]:
    """Take the category from a historical match, keeping the scanned currency."""
    if not data.supplier:
        return data, None
    match = find_historical_match(data.supplier, mapping)
    if match is None:
        return data, None
    return data.model_copy(update={"category": match.category}), match

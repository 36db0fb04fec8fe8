"""Duplicate expense detection.

The checker side compares candidates against stored expenses of the same
date. The import side maps the checker's answers back onto analyzed files
and deselects likely duplicates.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import TYPE_CHECKING, Literal

from rapidfuzz.distance import Levenshtein

from gigbook.models import DuplicateCandidate, DuplicateCheckResult, ExpenseData

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from gigbook.models import AnalyzedFile, ExistingExpense

logger = logging.getLogger(__name__)

MatchType = Literal["exact", "contains", "fuzzy"]

# Wider than the import-side list: Scandinavian partnership forms too.
_COMPANY_SUFFIX_RE = re.compile(
    r",?\s*(pbc|ab|hb|kb|inc|llc|ltd|gmbh|as|oy|a/s)\.?$", re.IGNORECASE
)
AMOUNT_TOLERANCE = Decimal("0.01")
SIMILARITY_THRESHOLD = 0.7


def _normalize(name: str) -> str:
    return _COMPANY_SUFFIX_RE.sub("", name.lower().strip()).strip()


def similarity(a: str, b: str) -> float:
    """Levenshtein similarity on a 0-1 scale, case-insensitive."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - Levenshtein.distance(a.lower(), b.lower()) / longest


def is_similar_supplier(
    a: str, b: str, threshold: float = SIMILARITY_THRESHOLD
) -> MatchType | None:
    """Return how two supplier names match, or None if they do not."""
    norm_a, norm_b = _normalize(a), _normalize(b)
    if norm_a == norm_b:
        return "exact"
    if norm_a in norm_b or norm_b in norm_a:
        return "contains"
    if similarity(norm_a, norm_b) >= threshold:
        return "fuzzy"
    return None


def find_duplicate_expense(
    candidate: DuplicateCandidate, existing: Iterable[ExistingExpense]
) -> DuplicateCheckResult:
    """First stored expense with the same date, equal amount and similar supplier."""
    for expense in existing:
        if expense.date != candidate.date:
            continue
        if abs(expense.amount - candidate.amount) >= AMOUNT_TOLERANCE:
            continue
        match_type = is_similar_supplier(candidate.supplier, expense.supplier)
        if match_type is not None:
            return DuplicateCheckResult(
                is_duplicate=True, existing_expense=expense, match_type=match_type
            )
    return DuplicateCheckResult(is_duplicate=False)


def find_duplicate_expenses(
    candidates: Sequence[DuplicateCandidate], existing: Sequence[ExistingExpense]
) -> list[DuplicateCheckResult]:
    """Index-aligned duplicate results for a batch of candidates."""
    return [find_duplicate_expense(candidate, existing) for candidate in candidates]


def duplicate_candidates(files: Iterable[AnalyzedFile]) -> list[DuplicateCandidate]:
    """Candidates for analyzed expense files with date, supplier and a positive total."""
    candidates = []
    for file in files:
        if file.status != "done" or not isinstance(file.document, ExpenseData):
            continue
        data = file.document
        if data.date and data.supplier and data.total > 0:
            candidates.append(
                DuplicateCandidate(date=data.date, supplier=data.supplier, amount=data.total)
            )
    return candidates


def apply_duplicate_results(
    files: Iterable[AnalyzedFile],
    candidates: Sequence[DuplicateCandidate],
    results: Sequence[DuplicateCheckResult],
) -> int:
    """Flag files whose (date, supplier, amount) equals a checked candidate.

    Each file is matched to the first candidate with an identical triple.
    Duplicates are deselected; the user can still select them again.
    Returns the number of files flagged as duplicates.
    """
    flagged = 0
    for file in files:
        if file.status != "done" or not isinstance(file.document, ExpenseData):
            continue
        data = file.document
        index = next(
            (
                i
                for i, c in enumerate(candidates)
                if c.date == data.date and c.supplier == data.supplier and c.amount == data.total
            ),
            None,
        )
        if index is None or index >= len(results):
            continue

        result = results[index]
        file.is_duplicate = result.is_duplicate
        file.existing_expense = result.existing_expense
        if result.is_duplicate:
            file.selected = False
            flagged += 1
            logger.info("Deselected %s as a likely duplicate", file.filename)
    return flagged

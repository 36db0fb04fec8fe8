"""Client matching for imported invoices."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from gigbook.duplicates import similarity
from gigbook.models import ClientMatchResult, ClientSuggestion

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

CLIENT_AUTO_SELECT_THRESHOLD = 0.85
FUZZY_THRESHOLD = 0.85
TOKEN_THRESHOLD = 0.7

_IGNORED_TOKENS = frozenset({"ab", "hb", "kb", "the", "i", "of", "and", "för", "och"})
_NON_WORD_RE = re.compile(r"[^a-zåäö0-9\s]")


def _tokens(name: str) -> list[str]:
    cleaned = _NON_WORD_RE.sub("", name.lower())
    return [t for t in cleaned.split() if len(t) > 2 and t not in _IGNORED_TOKENS]


def token_similarity(a: str, b: str) -> float:
    """Share of significant words that have a close counterpart in the other name."""
    tokens_a, tokens_b = _tokens(a), _tokens(b)
    if not tokens_a or not tokens_b:
        return 0.0
    matches = sum(
        1 for ta in tokens_a if any(similarity(ta, tb) > 0.8 for tb in tokens_b)
    )
    return matches / max(len(tokens_a), len(tokens_b))


def _suggestions(
    scored: list[tuple[Mapping[str, str], float]],
    *,
    above: float,
    exclude: str | None = None,
    limit: int = 3,
) -> list[ClientSuggestion]:
    ranked = sorted(
        (pair for pair in scored if pair[1] > above and pair[0]["id"] != exclude),
        key=lambda pair: pair[1],
        reverse=True,
    )
    return [
        ClientSuggestion(id=c["id"], name=c["name"], similarity=score)
        for c, score in ranked[:limit]
    ]


def match_client(
    extracted_name: str, clients: Sequence[Mapping[str, str]]
) -> ClientMatchResult:
    """Match an extracted client name against known clients (``id``, ``name``).

    Tries an exact case-insensitive match, then Levenshtein similarity,
    then word overlap. Without a confident match the closest five clients
    are returned as suggestions.
    """
    if not clients:
        return ClientMatchResult()

    name = extracted_name.strip()
    for client in clients:
        if client["name"].lower() == name.lower():
            return ClientMatchResult(
                client_id=client["id"], confidence=1.0, match_method="exact"
            )

    fuzzy = [(c, similarity(name, c["name"])) for c in clients]
    best, score = max(fuzzy, key=lambda pair: pair[1])
    if score >= FUZZY_THRESHOLD:
        return ClientMatchResult(
            client_id=best["id"],
            confidence=score,
            suggestions=_suggestions(fuzzy, above=0.7, exclude=best["id"]),
            match_method="fuzzy",
        )

    tokens = [(c, token_similarity(name, c["name"])) for c in clients]
    best, score = max(tokens, key=lambda pair: pair[1])
    if score >= TOKEN_THRESHOLD:
        return ClientMatchResult(
            client_id=best["id"],
            confidence=score,
            suggestions=_suggestions(tokens, above=0.5, exclude=best["id"]),
            match_method="token",
        )

    return ClientMatchResult(
        suggestions=_suggestions(fuzzy, above=-1.0, limit=5),
        match_method="manual",
    )


def select_client(match: ClientMatchResult | None) -> str | None:
    """Client id to preselect, only for confident matches."""
    if match is None or not match.client_id:
        return None
    if match.confidence >= CLIENT_AUTO_SELECT_THRESHOLD:
        return match.client_id
    return None

"""LLM-based document classification using pydantic-ai."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field
from pydantic_ai import Agent, BinaryContent
from slugify import slugify

from gigbook.clients import match_client
from gigbook.config import get_anthropic_api_key, get_llm_model
from gigbook.models import AnalysisResult, DocumentData, InvoiceData

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset(
    {"application/pdf", "image/jpeg", "image/png", "image/webp", "image/gif", "text/plain"}
)
MAX_FILE_SIZE = 10 * 1024 * 1024
MAX_TEXT_CHARS = 4000

_SYSTEM_PROMPT = """\
You classify bookkeeping documents for a freelance musician and extract their \
fields. Decide whether the document is an EXPENSE or an INVOICE:

- expense: a receipt or a received invoice the user has PAID. Strong signs: \
"Receipt", "Kvitto", "paid", "Amount paid", "Date paid", the user listed as \
"Bill to". A document titled "Receipt" is always an expense, even if it shows \
an invoice number.
- invoice: an invoice the user has SENT to a client. The user's company is the \
sender, it says "Amount due" / "Att betala", has a future due date and the \
user's bank details for payment.

For an expense extract: date (YYYY-MM-DD or null), supplier, subtotal, \
vat_rate (0, 6, 12 or 25; default 25), vat_amount, total, currency (SEK, EUR, \
USD, GBP, DKK or NOK; default SEK), category (one of Resa, Mat, Hotell, \
Instrument, Noter, Utrustning, Kontorsmaterial, Telefon, Prenumeration, \
Övrigt) and a short note. If only the total is visible, assume 25% VAT: \
subtotal = total / 1.25.

For an invoice extract: invoice_number, client_name (the recipient), \
invoice_date, due_date, subtotal, vat_rate (0, 6 or 25), vat_amount, total.

Use null for anything you cannot read. Give a confidence from 0.0 to 1.0.

Suggest a filename: {date}_{supplier}_{description} for expenses and \
{date}_{client}_Faktura{number} for invoices, e.g. \
"2024-03-15_SJ_Tagresa-Stockholm" or "2024-03-20_Konserthuset_Faktura127".\
"""


class ClassifiedDocument(BaseModel):
    """Structured output requested from the LLM."""

    confidence: float = Field(ge=0.0, le=1.0)
    document: DocumentData
    suggested_filename: str = ""


def create_classifier_agent() -> Agent[None, ClassifiedDocument]:
    """Create a pydantic-ai Agent configured for document classification."""
    # Fail fast without a key
    get_anthropic_api_key()

    model_name = get_llm_model()
    return Agent(
        f"anthropic:{model_name}",
        output_type=ClassifiedDocument,
        system_prompt=_SYSTEM_PROMPT,
    )


class DocumentClassifier:
    """DocumentAnalyzer that calls the LLM directly instead of the backend.

    Invoices are matched against ``clients`` (mappings with ``id`` and
    ``name``). Accepts an optional agent for dependency injection in tests.
    """

    def __init__(
        self,
        clients: Sequence[Mapping[str, str]] = (),
        *,
        agent: Agent[None, ClassifiedDocument] | None = None,
    ) -> None:
        self.clients = clients
        self._agent = agent

    @property
    def agent(self) -> Agent[None, ClassifiedDocument]:
        if self._agent is None:
            self._agent = create_classifier_agent()
        return self._agent

    def analyze(self, filename: str, content_type: str, data: bytes) -> AnalysisResult:
        _validate_file(filename, content_type, data)

        result: Any = self.agent.run_sync(_build_prompt(filename, content_type, data))
        classified: ClassifiedDocument = result.output

        client_match = None
        document = classified.document
        if isinstance(document, InvoiceData) and document.client_name:
            client_match = match_client(document.client_name, self.clients)

        return AnalysisResult(
            confidence=classified.confidence,
            document=document,
            suggested_filename=_sanitize_filename(classified.suggested_filename),
            client_match=client_match,
        )


def _validate_file(filename: str, content_type: str, data: bytes) -> None:
    if content_type not in ALLOWED_CONTENT_TYPES:
        msg = f"File type {content_type} not supported for {filename}. Use PDF or image."
        raise ValueError(msg)
    if len(data) > MAX_FILE_SIZE:
        msg = f"{filename} is too large. Max 10MB."
        raise ValueError(msg)


def _build_prompt(filename: str, content_type: str, data: bytes) -> list[Any]:
    """Build the user prompt, attaching binary documents as-is."""
    header = f"Classify this document.\n\nFilename: {filename}"
    if content_type == "text/plain":
        text = data.decode("utf-8", errors="replace")[:MAX_TEXT_CHARS]
        return [f"{header}\n\nContent:\n{text}"]
    return [header, BinaryContent(data=data, media_type=content_type)]


def _sanitize_filename(name: str) -> str:
    """Filesystem-safe filename, max 50 chars, case preserved."""
    return str(
        slugify(name, max_length=50, lowercase=False, regex_pattern=r"[^-a-zA-Z0-9_]+")
    )

"""Domain models for gigs, invoices and receipt import."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class GigStatus(StrEnum):
    """Booking status. Transitions are not enforced."""

    DRAFT = "draft"
    TENTATIVE = "tentative"
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"
    INVOICED = "invoiced"
    PAID = "paid"
    CANCELLED = "cancelled"


class GigType(BaseModel):
    """A tenant-configured kind of work with its VAT rate."""

    id: str
    name: str
    name_en: str | None = None
    vat_rate: Decimal = Field(default=Decimal(0), ge=0, le=100)


class Session(BaseModel):
    """One block of work within a gig day."""

    start: str = Field(pattern=r"^\d{2}:\d{2}$")
    end: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    label: str | None = None


class GigDate(BaseModel):
    """A single day of a gig with its free-text and parsed schedule."""

    date: dt.date
    schedule_text: str | None = None
    sessions: list[Session] = Field(default_factory=list)


class Gig(BaseModel):
    """A booking. ``total_days`` is always the number of gig dates."""

    id: str
    gig_type_id: str
    client_id: str | None = None
    position_id: str | None = None
    project_name: str | None = None
    venue: str | None = None
    notes: str | None = None
    fee: Decimal | None = Field(default=None, ge=0)
    travel_expense: Decimal | None = Field(default=None, ge=0)
    currency: str = Field(default="SEK", pattern=r"^[A-Z]{3}$")
    status: GigStatus = GigStatus.PENDING
    dates: list[GigDate] = Field(min_length=1)

    @property
    def start_date(self) -> dt.date:
        return min(d.date for d in self.dates)

    @property
    def end_date(self) -> dt.date:
        return max(d.date for d in self.dates)

    @property
    def total_days(self) -> int:
        return len(self.dates)


class InvoiceLine(BaseModel):
    """A free-text invoice line; ``vat_rate`` is resolved from the gig type."""

    description: str
    amount: Decimal = Field(ge=0)
    gig_type_id: str | None = None
    vat_rate: Decimal = Field(default=Decimal(0), ge=0, le=100)
    source_expense_id: str | None = None


class VatGroup(BaseModel):
    """Taxable base and VAT for all lines sharing one rate."""

    vat_rate: Decimal
    underlag: Decimal
    vat: Decimal


class InvoiceTotals(BaseModel):
    """Numbers shown in the invoice preview and stored on submit."""

    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal
    vat_groups: list[VatGroup]
    primary_vat_rate: Decimal
    is_reverse_charge: bool = False


class SupplierData(BaseModel):
    """Most common category and currency seen for a supplier."""

    category: str
    currency: str
    count: int = Field(ge=1)


SupplierMapping = dict[str, SupplierData]


class ExpenseData(BaseModel):
    """Fields extracted from a receipt or a received invoice."""

    type: Literal["expense"] = "expense"
    date: dt.date | None = None
    supplier: str = ""
    subtotal: Decimal = Field(default=Decimal(0), ge=0)
    vat_rate: Decimal = Field(default=Decimal(25), ge=0, le=100)
    vat_amount: Decimal = Field(default=Decimal(0), ge=0)
    total: Decimal = Field(default=Decimal(0), ge=0)
    currency: str = "SEK"
    category: str = "Övrigt"
    notes: str | None = None


class ClientSuggestion(BaseModel):
    id: str
    name: str
    similarity: float


class ClientMatchResult(BaseModel):
    """Ranked client-name match for an incoming invoice."""

    client_id: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    suggestions: list[ClientSuggestion] = Field(default_factory=list)
    match_method: Literal["exact", "fuzzy", "token", "ai", "manual"] | None = None


class InvoiceData(BaseModel):
    """Fields extracted from an invoice the user has sent."""

    type: Literal["invoice"] = "invoice"
    invoice_number: int = 0
    client_name: str = ""
    invoice_date: dt.date | None = None
    due_date: dt.date | None = None
    subtotal: Decimal = Field(default=Decimal(0), ge=0)
    vat_rate: Decimal = Field(default=Decimal(25), ge=0, le=100)
    vat_amount: Decimal = Field(default=Decimal(0), ge=0)
    total: Decimal = Field(default=Decimal(0), ge=0)
    client_match: ClientMatchResult | None = None
    selected_client_id: str | None = None


DocumentData = Annotated[ExpenseData | InvoiceData, Field(discriminator="type")]


class AnalysisResult(BaseModel):
    """Output of the document extraction service for one file."""

    confidence: float = Field(ge=0.0, le=1.0)
    document: DocumentData
    suggested_filename: str = ""
    client_match: ClientMatchResult | None = None

    @property
    def type(self) -> Literal["expense", "invoice"]:
        return self.document.type


class DuplicateCandidate(BaseModel):
    date: dt.date
    supplier: str = Field(min_length=1)
    amount: Decimal


class ExistingExpense(BaseModel):
    """A stored expense as returned by the duplicate check."""

    id: str
    date: dt.date
    supplier: str
    amount: Decimal
    category: str | None = None


class DuplicateCheckResult(BaseModel):
    is_duplicate: bool
    existing_expense: ExistingExpense | None = None
    match_type: Literal["exact", "contains", "fuzzy"] | None = None


FileStatus = Literal["pending", "analyzing", "done", "error"]


@dataclass
class AnalyzedFile:
    """One uploaded file within an import session."""

    id: str
    filename: str
    content_type: str
    data: bytes
    status: FileStatus = "pending"
    selected: bool = True
    confidence: float = 0.0
    document: ExpenseData | InvoiceData | None = None
    suggested_filename: str = ""
    error: str | None = None
    is_duplicate: bool = False
    existing_expense: ExistingExpense | None = None
    used_historical_data: bool = False
    historical_match_count: int = 0


class ImportResult(BaseModel):
    """Outcome of importing a single file."""

    file_id: str
    success: bool
    type: Literal["expense", "invoice"]
    filename: str
    id: str | None = None
    error: str | None = None
    skipped_as_duplicate: bool = False


@dataclass
class ImportSummary:
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[ImportResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: list[ImportResult]) -> ImportSummary:
        summary = cls(results=list(results))
        for result in results:
            if result.skipped_as_duplicate:
                summary.skipped += 1
            elif result.success:
                summary.succeeded += 1
            else:
                summary.failed += 1
        return summary

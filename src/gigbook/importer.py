"""Receipt and invoice import session."""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Literal

from slugify import slugify

from gigbook.adapters.api import ServiceError
from gigbook.clients import select_client
from gigbook.duplicates import apply_duplicate_results, duplicate_candidates
from gigbook.models import (
    AnalyzedFile,
    ExpenseData,
    ImportResult,
    ImportSummary,
    InvoiceData,
)
from gigbook.store import StoreError
from gigbook.suppliers import apply_historical_category

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gigbook.adapters.base import BatchImporter, DocumentAnalyzer, DuplicateChecker
    from gigbook.models import SupplierMapping
    from gigbook.store import RowStore

logger = logging.getLogger(__name__)

BATCH_SIZE = 3

Step = Literal["select", "review", "complete"]


def suggest_filename(receipt_date: date | None, supplier: str, amount: Decimal) -> str:
    """``{YYYY-MM-DD}__{supplier-slug}__{amount}.pdf`` for a stored receipt."""
    day = receipt_date.isoformat() if receipt_date else "undated"
    slug = slugify(supplier, max_length=50) or "unknown"
    return f"{day}__{slug}__{amount}.pdf"


@dataclass
class ImportSession:
    """State of one import wizard run, from file selection to results."""

    supplier_mapping: SupplierMapping = field(default_factory=dict)
    files: list[AnalyzedFile] = field(default_factory=list)
    step: Step = "select"
    summary: ImportSummary | None = None

    def add_file(self, filename: str, content_type: str, data: bytes) -> AnalyzedFile:
        file = AnalyzedFile(
            id=uuid.uuid4().hex, filename=filename, content_type=content_type, data=data
        )
        self.files.append(file)
        return file

    def get(self, file_id: str) -> AnalyzedFile:
        for file in self.files:
            if file.id == file_id:
                return file
        msg = f"No file with id {file_id}"
        raise KeyError(msg)

    @property
    def selected_files(self) -> list[AnalyzedFile]:
        return [f for f in self.files if f.selected and f.status == "done"]

    @property
    def duplicates(self) -> list[AnalyzedFile]:
        return [f for f in self.files if f.is_duplicate]

    def analyze(self, analyzer: DocumentAnalyzer, batch_size: int = BATCH_SIZE) -> None:
        """Analyze all files, ``batch_size`` at a time, one batch after another."""
        with ThreadPoolExecutor(max_workers=batch_size) as pool:
            for start in range(0, len(self.files), batch_size):
                batch = self.files[start : start + batch_size]
                list(pool.map(lambda f: self._analyze_file(analyzer, f), batch))
        self.step = "review"

    def _analyze_file(self, analyzer: DocumentAnalyzer, file: AnalyzedFile) -> None:
        file.status = "analyzing"
        try:
            result = analyzer.analyze(file.filename, file.content_type, file.data)
        except Exception as exc:
            logger.warning("Analysis failed for %s", file.filename, exc_info=True)
            file.status = "error"
            file.error = str(exc) or type(exc).__name__
            return

        document = result.document
        file.used_historical_data = False
        file.historical_match_count = 0
        if isinstance(document, ExpenseData):
            document, match = apply_historical_category(document, self.supplier_mapping)
            if match is not None:
                file.used_historical_data = True
                file.historical_match_count = match.count
        elif isinstance(document, InvoiceData) and result.client_match is not None:
            document = document.model_copy(
                update={
                    "client_match": result.client_match,
                    "selected_client_id": select_client(result.client_match),
                }
            )

        file.document = document
        file.confidence = result.confidence
        file.suggested_filename = result.suggested_filename
        file.error = None
        file.status = "done"

    def check_duplicates(self, checker: DuplicateChecker) -> int:
        """Flag and deselect likely duplicates. Returns how many were flagged."""
        candidates = duplicate_candidates(self.files)
        if not candidates:
            return 0
        try:
            results = checker.check(candidates)
        except ServiceError:
            logger.warning("Duplicate check failed", exc_info=True)
            return 0
        return apply_duplicate_results(self.files, candidates, results)

    def change_file_type(
        self, file_id: str, new_type: Literal["expense", "invoice"]
    ) -> AnalyzedFile:
        """Reinterpret an analyzed file as the other document type."""
        file = self.get(file_id)
        document = file.document
        if document is None or document.type == new_type:
            return file

        if isinstance(document, InvoiceData):
            file.document = ExpenseData(
                date=document.invoice_date,
                supplier=document.client_name or "Unknown supplier",
                subtotal=document.subtotal,
                vat_rate=document.vat_rate or Decimal(25),
                vat_amount=document.vat_amount,
                total=document.total,
                notes=f"Converted from invoice {document.invoice_number}",
            )
        else:
            today = date.today()
            file.document = InvoiceData(
                invoice_number=0,
                client_name=document.supplier or "Unknown client",
                invoice_date=document.date or today,
                due_date=document.date or today,
                subtotal=document.subtotal,
                vat_rate=document.vat_rate or Decimal(25),
                vat_amount=document.vat_amount,
                total=document.total,
            )
        file.used_historical_data = False
        return file

    def import_selected(self, importer: BatchImporter) -> ImportSummary:
        """Import every selected file and record the per-file outcome."""
        selected = self.selected_files
        if not selected:
            msg = "Select at least one file to import"
            raise ValueError(msg)
        summary = ImportSummary.from_results(importer.import_files(selected))
        logger.info(
            "Import finished: %d succeeded, %d failed, %d skipped",
            summary.succeeded,
            summary.failed,
            summary.skipped,
        )
        self.summary = summary
        self.step = "complete"
        return summary

    def reset(self) -> None:
        self.files.clear()
        self.summary = None
        self.step = "select"


class StoreImporter:
    """BatchImporter writing expenses and invoices through a RowStore.

    With ``skip_duplicates`` set, files flagged as duplicates are reported
    as skipped instead of stored.
    """

    def __init__(self, store: RowStore, *, skip_duplicates: bool = False) -> None:
        self.store = store
        self.skip_duplicates = skip_duplicates

    def import_files(self, files: Sequence[AnalyzedFile]) -> list[ImportResult]:
        return [self._import_one(file) for file in files]

    def _import_one(self, file: AnalyzedFile) -> ImportResult:
        document = file.document
        if document is None:
            return ImportResult(
                file_id=file.id,
                success=False,
                type="expense",
                filename=file.filename,
                error="File has not been analyzed",
            )
        if self.skip_duplicates and file.is_duplicate:
            return ImportResult(
                file_id=file.id,
                success=True,
                type=document.type,
                filename=file.filename,
                skipped_as_duplicate=True,
            )

        try:
            if isinstance(document, ExpenseData):
                row = self.store.insert("expenses", _expense_row(file, document))
            else:
                row = self.store.insert("invoices", _invoice_row(document))
        except StoreError as exc:
            return ImportResult(
                file_id=file.id,
                success=False,
                type=document.type,
                filename=file.filename,
                error=str(exc),
            )
        return ImportResult(
            file_id=file.id,
            success=True,
            type=document.type,
            filename=file.filename,
            id=str(row["id"]),
        )


def _expense_row(file: AnalyzedFile, data: ExpenseData) -> dict[str, object]:
    return {
        "date": data.date,
        "supplier": data.supplier,
        "amount": data.total,
        "currency": data.currency,
        "category": data.category,
        "notes": data.notes,
        "attachment_name": file.suggested_filename
        or suggest_filename(data.date, data.supplier, data.total),
    }


def _invoice_row(data: InvoiceData) -> dict[str, object]:
    return {
        "client_id": data.selected_client_id,
        "invoice_number": data.invoice_number,
        "invoice_date": data.invoice_date,
        "due_date": data.due_date,
        "subtotal": data.subtotal,
        "vat_rate": data.vat_rate,
        "vat_amount": data.vat_amount,
        "total": data.total,
        "status": "sent",
        "imported": True,
    }

"""Protocols for the external services the import flow talks to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gigbook.models import (
        AnalysisResult,
        AnalyzedFile,
        DuplicateCandidate,
        DuplicateCheckResult,
        ImportResult,
        SupplierMapping,
    )


@runtime_checkable
class DocumentAnalyzer(Protocol):
    """Classifies a receipt or invoice file and extracts its fields."""

    def analyze(self, filename: str, content_type: str, data: bytes) -> AnalysisResult: ...


@runtime_checkable
class DuplicateChecker(Protocol):
    """Checks candidates against stored expenses; results are index-aligned."""

    def check(
        self, candidates: Sequence[DuplicateCandidate]
    ) -> list[DuplicateCheckResult]: ...


@runtime_checkable
class SupplierMappingSource(Protocol):
    """Loads the supplier -> category mapping once per import session."""

    def load(self) -> SupplierMapping: ...


@runtime_checkable
class BatchImporter(Protocol):
    """Stores selected files, reporting one result per file."""

    def import_files(self, files: Sequence[AnalyzedFile]) -> list[ImportResult]: ...

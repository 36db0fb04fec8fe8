"""Tests for gigbook.classifier."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from pydantic_ai import BinaryContent

from gigbook.classifier import (
    MAX_FILE_SIZE,
    MAX_TEXT_CHARS,
    ClassifiedDocument,
    DocumentClassifier,
    _build_prompt,
    _sanitize_filename,
    create_classifier_agent,
)
from gigbook.models import ExpenseData, InvoiceData

CLIENTS = [
    {"id": "c-1", "name": "Konserthuset Stockholm"},
    {"id": "c-2", "name": "Göteborgsoperan"},
]


def _mock_agent(output: ClassifiedDocument) -> MagicMock:
    mock_result = MagicMock()
    mock_result.output = output
    mock_agent = MagicMock()
    mock_agent.run_sync.return_value = mock_result
    return mock_agent


class TestBuildPrompt:
    """Tests for _build_prompt."""

    def test_text_inlined(self) -> None:
        prompt = _build_prompt("receipt.txt", "text/plain", b"SJ AB\nTotal 499 kr")
        assert len(prompt) == 1
        assert "Filename: receipt.txt" in prompt[0]
        assert "Total 499 kr" in prompt[0]

    def test_text_truncated(self) -> None:
        prompt = _build_prompt("notes", "text/plain", b"x" * (MAX_TEXT_CHARS + 100))
        assert prompt[0].count("x") == MAX_TEXT_CHARS

    def test_binary_attached(self) -> None:
        prompt = _build_prompt("scan.pdf", "application/pdf", b"%PDF-1.4")
        assert "Filename: scan.pdf" in prompt[0]
        assert isinstance(prompt[1], BinaryContent)
        assert prompt[1].media_type == "application/pdf"
        assert prompt[1].data == b"%PDF-1.4"


class TestSanitizeFilename:
    """Tests for _sanitize_filename."""

    def test_keeps_case_and_underscores(self) -> None:
        assert _sanitize_filename("2024-03-15_SJ_Tagresa") == "2024-03-15_SJ_Tagresa"

    def test_replaces_unsafe_characters(self) -> None:
        result = _sanitize_filename("2024/03 SJ: resa?")
        assert "/" not in result
        assert ":" not in result
        assert " " not in result

    def test_max_length(self) -> None:
        assert len(_sanitize_filename("a" * 80)) <= 50


class TestDocumentClassifier:
    """Tests for DocumentClassifier.analyze."""

    def test_expense(self) -> None:
        expected = ExpenseData(
            date=date(2024, 3, 15),
            supplier="SJ AB",
            subtotal=Decimal("399.20"),
            vat_amount=Decimal("99.80"),
            total=Decimal("499.00"),
            category="Resa",
        )
        agent = _mock_agent(
            ClassifiedDocument(
                confidence=0.9, document=expected, suggested_filename="2024-03-15_SJ_Resa"
            )
        )

        result = DocumentClassifier(agent=agent).analyze(
            "kvitto.pdf", "application/pdf", b"%PDF-1.4"
        )

        assert result.type == "expense"
        assert result.document == expected
        assert result.confidence == 0.9
        assert result.suggested_filename == "2024-03-15_SJ_Resa"
        assert result.client_match is None

    def test_invoice_matches_client(self) -> None:
        agent = _mock_agent(
            ClassifiedDocument(
                confidence=0.8,
                document=InvoiceData(
                    invoice_number=127,
                    client_name="konserthuset stockholm",
                    total=Decimal("12500"),
                ),
            )
        )

        result = DocumentClassifier(CLIENTS, agent=agent).analyze(
            "faktura.png", "image/png", b"\x89PNG"
        )

        assert result.type == "invoice"
        assert result.client_match is not None
        assert result.client_match.client_id == "c-1"
        assert result.client_match.match_method == "exact"

    def test_passes_prompt_to_agent(self) -> None:
        agent = _mock_agent(ClassifiedDocument(confidence=0.5, document=ExpenseData()))

        DocumentClassifier(agent=agent).analyze("note.txt", "text/plain", b"Spotify 119 kr")

        agent.run_sync.assert_called_once()
        prompt = agent.run_sync.call_args[0][0]
        assert "Spotify 119 kr" in prompt[0]

    def test_rejects_unsupported_type(self) -> None:
        agent = MagicMock()
        with pytest.raises(ValueError, match="not supported"):
            DocumentClassifier(agent=agent).analyze("a.docx", "application/msword", b"x")
        agent.run_sync.assert_not_called()

    def test_rejects_large_file(self) -> None:
        agent = MagicMock()
        with pytest.raises(ValueError, match="too large"):
            DocumentClassifier(agent=agent).analyze(
                "big.pdf", "application/pdf", b"0" * (MAX_FILE_SIZE + 1)
            )


class TestCreateClassifierAgent:
    """Tests for create_classifier_agent."""

    def test_requires_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            create_classifier_agent()

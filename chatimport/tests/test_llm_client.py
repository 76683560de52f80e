"""Tests for the LLM extraction client and the extraction contract."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chatimport.models import Direction, DocumentType
from chatimport.parsers.document_types import ExtractedDocument, RawTransaction
from chatimport.parsers.llm_client import ParsingError, extract_json_block, llm_extract_json

VALID_RESPONSE = """```json
{
  "document_type": "fatura_cartao",
  "confidence": 0.92,
  "transactions": [
    {"date": "05/03", "description": "IFOOD *RESTAURANTE", "amount": 45.9, "direction": "débito"}
  ],
  "observations": ["Due date 10/04"]
}
```"""


def completion(content: str) -> MagicMock:
    response = MagicMock()
    response.choices[0].message.content = content
    return response


class TestExtractJsonBlock:
    """Test JSON extraction from LLM replies."""

    def test_fenced_json(self):
        """Markdown fences and the language tag are removed."""
        assert extract_json_block('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_leading_prose(self):
        """Text before the first brace is dropped."""
        assert extract_json_block('Here you go: {"a": 1}') == '{"a": 1}'

    def test_unterminated_fence(self):
        """A single fence marker still yields the body."""
        assert extract_json_block('```\n[1, 2]') == "[1, 2]"


class TestExtractionContract:
    """Test lenient parsing of extractor output."""

    def test_portuguese_labels(self):
        """Portuguese document types and directions are understood."""
        assert DocumentType.parse("extrato_bancario") == DocumentType.BANK_STATEMENT
        assert DocumentType.parse("comprovante_pix") == DocumentType.PIX_RECEIPT
        assert Direction.parse("Crédito") == Direction.CREDIT
        assert Direction.parse("saida") == Direction.DEBIT

    def test_unknown_document_type(self):
        """Unknown or missing types become other."""
        assert ExtractedDocument(document_type="receipt-ish", confidence=0.5).document_type == DocumentType.OTHER
        assert ExtractedDocument(document_type=None, confidence=0.5).document_type == DocumentType.OTHER

    def test_unknown_direction_rejected(self):
        """A direction that is neither credit nor debit is invalid."""
        with pytest.raises(ValueError):
            RawTransaction(date="2024-03-05", description="X", amount=1.0, direction="sideways")

    def test_missing_date_kept_empty(self):
        """A null date is kept as an empty string for later repair."""
        assert RawTransaction(date=None, description="X", amount=1.0).date == ""


class TestLlmExtractJson:
    """Test the retrying LLM call."""

    @pytest.mark.asyncio
    async def test_parses_response(self):
        """A valid reply is validated into the response model."""
        with patch(
            "chatimport.parsers.llm_client.acompletion",
            new_callable=AsyncMock,
            return_value=completion(VALID_RESPONSE),
        ):
            document = await llm_extract_json("prompt", ExtractedDocument)

        assert document.document_type == DocumentType.CARD_INVOICE
        assert document.confidence == 0.92
        (transaction,) = document.transactions
        assert transaction.date == "05/03"
        assert transaction.direction == Direction.DEBIT

    @pytest.mark.asyncio
    async def test_retries_invalid_json(self):
        """Invalid JSON is retried before giving up."""
        with (
            patch(
                "chatimport.parsers.llm_client.acompletion",
                new_callable=AsyncMock,
                side_effect=[completion("not json at all"), completion(VALID_RESPONSE)],
            ) as mock_completion,
            patch("chatimport.parsers.llm_client.asyncio.sleep", new_callable=AsyncMock),
        ):
            document = await llm_extract_json("prompt", ExtractedDocument)

        assert mock_completion.call_count == 2
        assert len(document.transactions) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        """Repeated failures raise ParsingError."""
        with (
            patch(
                "chatimport.parsers.llm_client.acompletion",
                new_callable=AsyncMock,
                side_effect=ConnectionError("connection refused"),
            ) as mock_completion,
            patch("chatimport.parsers.llm_client.asyncio.sleep", new_callable=AsyncMock),
        ):
            with pytest.raises(ParsingError, match="connection refused"):
                await llm_extract_json("prompt", ExtractedDocument, max_retries=2)

        assert mock_completion.call_count == 2

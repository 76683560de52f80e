"""Shared fixtures for the import engine tests."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from chatimport.config import Settings
from chatimport.models import (
    AvailableAccount,
    AvailableCard,
    AvailableCategory,
    Direction,
    DocumentType,
    ExtractedTransaction,
    ReferenceData,
)
from chatimport.parsers.document_types import ExtractedDocument, ExtractionResult, RawTransaction
from chatimport.services.categorizer import DEFAULT_CATEGORY_NAMES

TODAY = date(2024, 5, 20)
USER_ID = "user-1"


def create_transaction(
    txn_id: str = "tx_0",
    description: str = "IFOOD *RESTAURANTE",
    amount: float = 45.90,
    txn_date: str = "2024-03-10",
    direction: Direction = Direction.DEBIT,
    **overrides,
) -> ExtractedTransaction:
    """Create an extracted transaction for testing."""
    return ExtractedTransaction(
        id=txn_id, date=txn_date, description=description, amount=amount, direction=direction, **overrides
    )


def create_extraction(
    transactions: list[RawTransaction],
    document_type: DocumentType = DocumentType.CARD_INVOICE,
    confidence: float = 0.9,
    observations: list[str] | None = None,
) -> ExtractionResult:
    """Create a successful extractor result for testing."""
    return ExtractionResult(
        success=True,
        data=ExtractedDocument(
            document_type=document_type,
            confidence=confidence,
            transactions=transactions,
            observations=observations or [],
        ),
        processing_time_ms=12,
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path, _env_file=None)


@pytest.fixture
def cards():
    return (
        AvailableCard(id=1, name="Nubank", last_digits="1234", closing_day=3, due_day=10),
        AvailableCard(id=2, name="Itau Platinum", last_digits="9876", closing_day=25, due_day=5),
    )


@pytest.fixture
def accounts():
    return (
        AvailableAccount(id=10, name="Conta Corrente", type="checking", balance=1500.0),
        AvailableAccount(id=11, name="Poupanca", type="savings", balance=300.0),
    )


@pytest.fixture
def categories():
    return tuple(AvailableCategory(id=int(cid), name=name) for cid, name in DEFAULT_CATEGORY_NAMES.items())


@pytest.fixture
def reference(cards, accounts, categories):
    return ReferenceData(user_id=USER_ID, cards=cards, accounts=accounts, categories=categories)


@pytest.fixture
def card_invoice_result():
    """Three card purchases, one mentioning the Nubank card."""
    return create_extraction(
        [
            RawTransaction(date="2024-03-05", description="IFOOD *RESTAURANTE", amount=45.90),
            RawTransaction(date="2024-03-07", description="UBER TRIP", amount=23.10),
            RawTransaction(date="2024-03-12", description="NUBANK ANUIDADE", amount=31.00),
        ]
    )


@pytest.fixture
def store():
    """In-memory stand-in for the ledger."""
    mock = MagicMock()
    mock.existing_hashes.return_value = set()
    mock.insert_transactions.side_effect = lambda entries: len(entries)
    return mock

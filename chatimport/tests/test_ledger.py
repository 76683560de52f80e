"""Tests for building ledger rows from the approved preview."""

from datetime import date

from chatimport.models import (
    DestinationKind,
    Direction,
    ImportFlowState,
    ImportStep,
    LedgerType,
    ReferenceData,
)
from chatimport.services.categorizer import DefaultCategory
from chatimport.services.ledger import (
    build_ledger_entries,
    preview_summary,
    resolve_category,
    resolve_ledger_type,
)
from conftest import USER_ID, create_transaction

TODAY = date(2024, 5, 20)


def preview_state(*transactions, **fields) -> ImportFlowState:
    return ImportFlowState(step=ImportStep.PREVIEW, transactions=tuple(transactions), **fields)


class TestResolveLedgerType:
    """Test ledger type by destination."""

    def test_credits_are_income_everywhere(self):
        """Credits map to income regardless of destination."""
        for destination in (DestinationKind.CARD, DestinationKind.ACCOUNT, DestinationKind.LOOSE, None):
            assert resolve_ledger_type(Direction.CREDIT, destination) == LedgerType.INCOME

    def test_debits_depend_on_destination(self):
        """Card debits are card charges; the rest are expenses."""
        assert resolve_ledger_type(Direction.DEBIT, DestinationKind.CARD) == LedgerType.CARD_EXPENSE
        assert resolve_ledger_type(Direction.DEBIT, DestinationKind.ACCOUNT) == LedgerType.EXPENSE
        assert resolve_ledger_type(Direction.DEBIT, DestinationKind.LOOSE) == LedgerType.EXPENSE


class TestResolveCategory:
    """Test final category assignment."""

    def test_explicit_category_wins(self, reference):
        """A chosen category is kept."""
        txn = create_transaction(description="IFOOD", category_id=DefaultCategory.LEISURE)
        assert resolve_category(txn, reference, 13) == DefaultCategory.LEISURE

    def test_heuristic_when_missing(self, reference):
        """Without a category the keyword heuristic decides."""
        txn = create_transaction(description="DROGASIL 123")
        assert resolve_category(txn, reference, 13) == DefaultCategory.HEALTH

    def test_unknown_id_falls_back_to_other(self, reference):
        """Ids the user does not have become Other."""
        txn = create_transaction(category_id=4242)
        assert resolve_category(txn, reference, 13) == 13

    def test_any_id_accepted_without_reference_categories(self):
        """With no category list, ids are trusted."""
        txn = create_transaction(category_id=4242)
        assert resolve_category(txn, ReferenceData(user_id=USER_ID), 13) == 4242


class TestBuildLedgerEntries:
    """Test commit batch construction."""

    def test_only_selected_rows(self, reference, settings):
        """Deselected transactions are not committed."""
        state = preview_state(
            create_transaction("tx_0"),
            create_transaction("tx_1", description="UBER", selected=False),
            destination=DestinationKind.LOOSE,
        )

        entries = build_ledger_entries(state, reference, settings, TODAY)

        assert [e.transaction_id for e in entries] == ["tx_0"]

    def test_card_rows(self, reference, settings):
        """Card imports carry the card and the reference period."""
        state = preview_state(
            create_transaction("tx_0", txn_date="05", amount=45.9),
            create_transaction("tx_1", description="ESTORNO", direction=Direction.CREDIT, amount=10),
            destination=DestinationKind.CARD,
            card_id=1,
            card_name="Nubank",
            reference_month=3,
            reference_year=2024,
        )

        charge, refund = build_ledger_entries(state, reference, settings, TODAY)

        assert charge.date == date(2024, 3, 5)
        assert charge.ledger_type == LedgerType.CARD_EXPENSE
        assert charge.card_id == 1
        assert charge.account_id is None
        assert charge.user_id == USER_ID
        assert charge.origin == "import"
        assert charge.status == "confirmed"
        assert refund.ledger_type == LedgerType.INCOME

    def test_account_rows(self, reference, settings):
        """Account imports carry only the account."""
        state = preview_state(
            create_transaction("tx_0", txn_date="2024-04-02"),
            destination=DestinationKind.ACCOUNT,
            account_id=10,
            account_name="Conta Corrente",
        )

        (entry,) = build_ledger_entries(state, reference, settings, TODAY)

        assert entry.account_id == 10
        assert entry.card_id is None
        assert entry.date == date(2024, 4, 2)
        assert entry.ledger_type == LedgerType.EXPENSE

    def test_identical_lines_get_distinct_hashes(self, reference, settings):
        """Two equal purchases on the same day are both kept."""
        state = preview_state(
            create_transaction("tx_0"),
            create_transaction("tx_1"),
            destination=DestinationKind.LOOSE,
        )

        first, second = build_ledger_entries(state, reference, settings, TODAY)

        assert first.import_hash != second.import_hash

    def test_lines_repaired_to_same_day_get_distinct_hashes(self, reference, settings):
        """Installments from other months land on the period day and stay apart."""
        state = preview_state(
            create_transaction("tx_0", description="LOJA X PARCELA", txn_date="2024-01-05", amount=100.0),
            create_transaction("tx_1", description="LOJA X  PARCELA", txn_date="2024-02-05", amount=100.0),
            destination=DestinationKind.CARD,
            card_id=1,
            reference_month=3,
            reference_year=2024,
        )

        first, second = build_ledger_entries(state, reference, settings, TODAY)

        assert first.date == second.date == date(2024, 3, 5)
        assert first.import_hash != second.import_hash

    def test_deselected_lines_do_not_shift_numbering(self, reference, settings):
        """Only selected rows are numbered."""
        state = preview_state(
            create_transaction("tx_0", selected=False),
            create_transaction("tx_1"),
            destination=DestinationKind.LOOSE,
        )
        alone = preview_state(create_transaction("tx_1"), destination=DestinationKind.LOOSE)

        (entry,) = build_ledger_entries(state, reference, settings, TODAY)
        (expected,) = build_ledger_entries(alone, reference, settings, TODAY)

        assert entry.import_hash == expected.import_hash

    def test_hash_is_stable_across_sessions(self, reference, settings):
        """Re-importing the same document yields the same hashes."""
        state = preview_state(create_transaction("tx_0"), destination=DestinationKind.LOOSE)

        first = build_ledger_entries(state, reference, settings, TODAY)
        second = build_ledger_entries(state, reference, settings, TODAY)

        assert first[0].import_hash == second[0].import_hash
        assert first[0].id != second[0].id

    def test_hash_depends_on_destination(self, reference, settings):
        """The same line booked to another card is a different row."""
        txn = create_transaction("tx_0")
        on_card_1 = preview_state(txn, destination=DestinationKind.CARD, card_id=1, reference_month=3, reference_year=2024)
        on_card_2 = preview_state(txn, destination=DestinationKind.CARD, card_id=2, reference_month=3, reference_year=2024)

        (a,) = build_ledger_entries(on_card_1, reference, settings, TODAY)
        (b,) = build_ledger_entries(on_card_2, reference, settings, TODAY)

        assert a.import_hash != b.import_hash


class TestPreviewSummary:
    """Test the preview summary."""

    def test_counts_selected(self):
        """Only selected transactions are summarised."""
        state = preview_state(
            create_transaction("tx_0", amount=1000.0),
            create_transaction("tx_1", amount=234.56),
            create_transaction("tx_2", amount=5.0, selected=False),
            destination=DestinationKind.CARD,
            card_id=1,
            card_name="Nubank",
        )

        summary = preview_summary(state)

        assert summary.total == 2
        assert summary.amount == "R$ 1.234,56"
        assert summary.destination == "Nubank"

"""Turn the approved preview into ledger rows ready for storage."""

import logging
from datetime import date

from chatimport.config import Settings
from chatimport.models import (
    DestinationKind,
    Direction,
    ExtractedTransaction,
    ImportFlowState,
    LedgerEntry,
    LedgerType,
    PreviewSummary,
    ReferenceData,
)
from chatimport.services.categorizer import suggest_category
from chatimport.services.dedup import compute_import_hash
from chatimport.services.formatting import destination_label, format_currency
from chatimport.services.heuristics import repair_date

logger = logging.getLogger(__name__)


def resolve_ledger_type(direction: Direction, destination: DestinationKind | None) -> LedgerType:
    """Credits are always income; debits depend on where they are booked."""
    if direction is Direction.CREDIT:
        return LedgerType.INCOME
    if destination is DestinationKind.CARD:
        return LedgerType.CARD_EXPENSE
    return LedgerType.EXPENSE


def resolve_category(
    txn: ExtractedTransaction,
    reference: ReferenceData,
    other_category_id: int,
) -> int:
    """
    Final category for a transaction.

    An explicit category wins; otherwise the keyword heuristic decides. Ids
    unknown to the user's categories fall back to "Other".
    """
    category_id = txn.category_id
    if category_id is None:
        category_id = suggest_category(txn.description, txn.category_name, other_category_id)

    if reference.categories and reference.find_category(category_id) is None:
        logger.debug(f"Unknown category {category_id} for {txn.id}, using {other_category_id}")
        return other_category_id

    return category_id


def _destination_key(state: ImportFlowState) -> str:
    if state.destination is DestinationKind.CARD:
        return f"card:{state.card_id}"
    if state.destination is DestinationKind.ACCOUNT:
        return f"account:{state.account_id}"
    return "loose"


def build_ledger_entries(
    state: ImportFlowState,
    reference: ReferenceData,
    settings: Settings,
    today: date,
) -> list[LedgerEntry]:
    """
    Build one ledger row per selected transaction, in document order.

    Rows that resolve to the same day, description, amount and type are
    numbered in order so each gets its own import hash.
    """
    occurrences: dict[tuple[date, str, float, LedgerType], int] = {}
    destination = _destination_key(state)
    entries = []

    for txn in state.selected_transactions:
        booked_on = repair_date(
            txn.date,
            state.reference_month,
            state.reference_year,
            today=today,
            plausible_years=settings.plausible_years,
        )
        ledger_type = resolve_ledger_type(txn.direction, state.destination)
        description = " ".join(txn.description.split())
        amount = round(txn.amount, 2)

        key = (booked_on, description.lower(), amount, ledger_type)
        occurrence = occurrences.get(key, 0)
        occurrences[key] = occurrence + 1

        entries.append(
            LedgerEntry(
                transaction_id=txn.id,
                user_id=reference.user_id,
                description=description,
                amount=amount,
                date=booked_on,
                ledger_type=ledger_type,
                category_id=resolve_category(txn, reference, settings.other_category_id),
                card_id=state.card_id if state.destination is DestinationKind.CARD else None,
                account_id=state.account_id if state.destination is DestinationKind.ACCOUNT else None,
                origin=settings.ledger_origin,
                status=settings.ledger_status,
                import_hash=compute_import_hash(
                    reference.user_id,
                    destination,
                    booked_on,
                    description,
                    amount,
                    ledger_type,
                    occurrence,
                ),
            )
        )

    return entries


def preview_summary(state: ImportFlowState, symbol: str = "R$") -> PreviewSummary:
    selected = state.selected_transactions
    return PreviewSummary(
        total=len(selected),
        amount=format_currency(sum(t.amount for t in selected), symbol),
        destination=destination_label(state),
    )

"""Deduplication logic for committed imports."""

import hashlib
from datetime import date

from chatimport.models import LedgerType


def compute_file_hash(contents: bytes) -> str:
    """Compute SHA256 hash of file contents."""
    return hashlib.sha256(contents).hexdigest()


def compute_import_hash(
    user_id: str,
    destination: str,
    txn_date: date,
    description: str,
    amount: float,
    ledger_type: LedgerType,
    occurrence: int = 0,
) -> str:
    """
    Compute a unique hash for an imported ledger row.

    This hash is used to detect rows that were already committed by an
    earlier import of the same document. ``occurrence`` keeps identical
    lines within one document apart (two equal coffees on the same day).
    """
    # Normalize the data for consistent hashing
    normalized = (
        f"{user_id}|{destination}|{txn_date.isoformat()}|{' '.join(description.lower().split())}"
        f"|{amount:.2f}|{ledger_type.value}|{occurrence}"
    )
    return hashlib.sha256(normalized.encode()).hexdigest()

"""SQLite ledger storage and reference data for imports."""

import logging
import sqlite3
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import date
from pathlib import Path

from chatimport.models import (
    AvailableAccount,
    AvailableCard,
    AvailableCategory,
    CategoryApplicability,
    LedgerEntry,
    LedgerType,
    ReferenceData,
)
from chatimport.services.categorizer import DEFAULT_CATEGORY_NAMES

logger = logging.getLogger(__name__)

# SQL schema
SCHEMA = """
CREATE TABLE IF NOT EXISTS ledger_transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    description TEXT NOT NULL,
    amount REAL NOT NULL,
    date TEXT NOT NULL,
    ledger_type TEXT NOT NULL,
    category_id INTEGER NOT NULL,
    card_id INTEGER,
    account_id INTEGER,
    origin TEXT NOT NULL,
    status TEXT NOT NULL,
    import_hash TEXT NOT NULL UNIQUE,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_ledger_user_date ON ledger_transactions(user_id, date);
CREATE INDEX IF NOT EXISTS idx_ledger_hash ON ledger_transactions(import_hash);

CREATE TABLE IF NOT EXISTS cards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    last_digits TEXT,
    closing_day INTEGER NOT NULL DEFAULT 1,
    due_day INTEGER NOT NULL DEFAULT 10
);

CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'checking',
    balance REAL NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    applicability TEXT NOT NULL DEFAULT 'ambos'
);
"""

_TRANSACTION_COLUMNS = """
    id, user_id, description, amount, date, ledger_type, category_id,
    card_id, account_id, origin, status, import_hash
"""


class StorageError(Exception):
    """Raised when the ledger rejects a write."""

    pass


class SQLiteLedger:
    """SQLite-backed ledger implementing the import commit contract."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Import commit
    # ------------------------------------------------------------------

    def existing_hashes(self, hashes: Iterable[str]) -> set[str]:
        """Return the subset of import hashes already stored."""
        hashes = list(hashes)
        if not hashes:
            return set()

        placeholders = ",".join("?" * len(hashes))
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"SELECT import_hash FROM ledger_transactions WHERE import_hash IN ({placeholders})",
                hashes,
            )
            return {row["import_hash"] for row in cursor.fetchall()}

    def insert_transactions(self, entries: list[LedgerEntry]) -> int:
        """
        Insert a batch of ledger rows atomically.

        Either every row is committed or none is.

        Raises:
            StorageError: If any row is rejected
        """
        if not entries:
            return 0

        rows = [
            (
                entry.id,
                entry.user_id,
                entry.description,
                entry.amount,
                entry.date.isoformat(),
                entry.ledger_type.value,
                entry.category_id,
                entry.card_id,
                entry.account_id,
                entry.origin,
                entry.status,
                entry.import_hash,
            )
            for entry in entries
        ]

        try:
            with self._get_connection() as conn:
                with conn:
                    conn.executemany(
                        f"INSERT INTO ledger_transactions ({_TRANSACTION_COLUMNS}) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        rows,
                    )
        except sqlite3.Error as e:
            logger.error(f"Batch insert of {len(rows)} rows failed: {e}")
            raise StorageError(f"Could not save transactions: {e}") from e

        logger.info(f"Inserted {len(rows)} ledger rows")
        return len(rows)

    def get_transactions(self, user_id: str, limit: int = 1000) -> list[LedgerEntry]:
        """Get a user's ledger rows, newest first."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_TRANSACTION_COLUMNS}
                FROM ledger_transactions WHERE user_id = ?
                ORDER BY date DESC, created_at DESC LIMIT ?
                """,
                (user_id, limit),
            )
            return [self._row_to_entry(row) for row in cursor.fetchall()]

    def get_transaction_count(self, user_id: str | None = None) -> int:
        """Get number of ledger rows, optionally for one user."""
        with self._get_connection() as conn:
            if user_id is None:
                cursor = conn.execute("SELECT COUNT(*) as count FROM ledger_transactions")
            else:
                cursor = conn.execute(
                    "SELECT COUNT(*) as count FROM ledger_transactions WHERE user_id = ?", (user_id,)
                )
            return cursor.fetchone()["count"]

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    def add_card(
        self,
        user_id: str,
        name: str,
        last_digits: str | None = None,
        closing_day: int = 1,
        due_day: int = 10,
    ) -> AvailableCard:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO cards (user_id, name, last_digits, closing_day, due_day) VALUES (?, ?, ?, ?, ?)",
                (user_id, name, last_digits, closing_day, due_day),
            )
            conn.commit()
            return AvailableCard(
                id=cursor.lastrowid, name=name, last_digits=last_digits, closing_day=closing_day, due_day=due_day
            )

    def add_account(self, user_id: str, name: str, type: str = "checking", balance: float = 0.0) -> AvailableAccount:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO accounts (user_id, name, type, balance) VALUES (?, ?, ?, ?)",
                (user_id, name, type, balance),
            )
            conn.commit()
            return AvailableAccount(id=cursor.lastrowid, name=name, type=type, balance=balance)

    def add_category(
        self,
        category_id: int,
        name: str,
        applicability: CategoryApplicability = CategoryApplicability.BOTH,
    ) -> AvailableCategory:
        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO categories (id, name, applicability) VALUES (?, ?, ?)",
                (category_id, name, applicability.value),
            )
            conn.commit()
        return AvailableCategory(id=category_id, name=name, applicability=applicability)

    def seed_default_categories(self) -> None:
        """Create the built-in categories if they are missing."""
        with self._get_connection() as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO categories (id, name, applicability) VALUES (?, ?, ?)",
                [
                    (int(category_id), name, CategoryApplicability.BOTH.value)
                    for category_id, name in DEFAULT_CATEGORY_NAMES.items()
                ],
            )
            conn.commit()

    def load_reference_data(self, user_id: str) -> ReferenceData:
        """Snapshot a user's cards, accounts and the categories."""
        with self._get_connection() as conn:
            cards = conn.execute(
                "SELECT id, name, last_digits, closing_day, due_day FROM cards WHERE user_id = ? ORDER BY id",
                (user_id,),
            ).fetchall()
            accounts = conn.execute(
                "SELECT id, name, type, balance FROM accounts WHERE user_id = ? ORDER BY id",
                (user_id,),
            ).fetchall()
            categories = conn.execute("SELECT id, name, applicability FROM categories ORDER BY id").fetchall()

        return ReferenceData(
            user_id=user_id,
            cards=tuple(AvailableCard(**dict(row)) for row in cards),
            accounts=tuple(AvailableAccount(**dict(row)) for row in accounts),
            categories=tuple(
                AvailableCategory(
                    id=row["id"],
                    name=row["name"],
                    applicability=CategoryApplicability(row["applicability"]),
                )
                for row in categories
            ),
        )

    def _row_to_entry(self, row: sqlite3.Row) -> LedgerEntry:
        """Convert a database row to a LedgerEntry model."""
        return LedgerEntry(
            id=row["id"],
            user_id=row["user_id"],
            description=row["description"],
            amount=row["amount"],
            date=date.fromisoformat(row["date"]),
            ledger_type=LedgerType(row["ledger_type"]),
            category_id=row["category_id"],
            card_id=row["card_id"],
            account_id=row["account_id"],
            origin=row["origin"],
            status=row["status"],
            import_hash=row["import_hash"],
        )

"""Local extraction of transactions from XLSX and CSV spreadsheets."""

import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from io import BytesIO, StringIO

import pandas as pd

from chatimport.models import Direction, DocumentType, FileType
from chatimport.parsers.document_types import ExtractedDocument, RawTransaction
from chatimport.parsers.llm_client import ParsingError
from chatimport.parsers.validation import normalize_description, parse_amount_safe

logger = logging.getLogger(__name__)

EXCEL_EPOCH = date(1899, 12, 30)

DATE_KEYWORDS = ["data", "date", "dt", "dia", "data transacao", "data compra"]
DESCRIPTION_KEYWORDS = ["descricao", "description", "desc", "estabelecimento", "nome", "lancamento", "historico"]
AMOUNT_KEYWORDS = ["valor", "value", "amount", "quantia", "total", "preco"]
CATEGORY_KEYWORDS = ["categoria", "category", "cat", "tipo", "type"]

_BR_DATE = re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})")
_ISO_DATE = re.compile(r"(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})")


@dataclass
class ColumnMapping:
    """Column index of each field, or None when not found."""

    date: int | None = None
    description: int | None = None
    amount: int | None = None
    category: int | None = None

    @property
    def detected(self) -> list[str]:
        return [name for name in ("date", "description", "amount", "category") if getattr(self, name) is not None]


def _fold(text: object) -> str:
    decomposed = unicodedata.normalize("NFD", str(text or "").strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, float) and pd.isna(value)) or str(value).strip() == ""


def detect_columns(headers: list[object]) -> ColumnMapping:
    """
    Detect the date, description, amount and category columns from headers.

    Matching is accent-insensitive; missing core columns fall back to the
    usual date/description/amount order.
    """
    mapping = ColumnMapping()
    normalized = [_fold(h) if not _is_blank(h) else "" for h in headers]

    for index, header in enumerate(normalized):
        if not header:
            continue
        if mapping.date is None and any(k in header for k in DATE_KEYWORDS):
            mapping.date = index
        if mapping.description is None and any(k in header for k in DESCRIPTION_KEYWORDS):
            mapping.description = index
        if mapping.amount is None and any(k in header for k in AMOUNT_KEYWORDS):
            mapping.amount = index
        if mapping.category is None and any(k in header for k in CATEGORY_KEYWORDS):
            mapping.category = index

    # Fallback: assume the usual column order
    if mapping.date is None and len(headers) >= 1:
        mapping.date = 0
    if mapping.description is None and len(headers) >= 2:
        mapping.description = 1
    if mapping.amount is None and len(headers) >= 3:
        mapping.amount = 2

    return mapping


def parse_spreadsheet_date(value: object) -> str:
    """Normalize a spreadsheet cell to YYYY-MM-DD, or "" when unreadable."""
    if _is_blank(value):
        return ""

    if isinstance(value, (pd.Timestamp, datetime)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()

    if isinstance(value, (int, float)):
        # Excel serial date
        try:
            return (EXCEL_EPOCH + timedelta(days=float(value))).isoformat()
        except OverflowError:
            return ""

    text = str(value).strip()

    if match := _ISO_DATE.search(text):
        year, month, day = match.groups()
        return f"{year}-{int(month):02d}-{int(day):02d}"

    if match := _BR_DATE.search(text):
        day, month, year = match.groups()
        if len(year) == 2:
            year = "20" + year
        return f"{year}-{int(month):02d}-{int(day):02d}"

    parsed = pd.to_datetime(text, errors="coerce", dayfirst=True)
    if pd.isna(parsed):
        return ""
    return parsed.strftime("%Y-%m-%d")


def _parse_amount(value: object) -> float:
    if isinstance(value, (int, float)) and not pd.isna(value):
        return float(value)
    amount, _ = parse_amount_safe(str(value or ""))
    return amount


def _cell(row: list[object], index: int | None) -> object:
    if index is None or index >= len(row):
        return None
    return row[index]


def extract_rows(rows: list[list[object]], columns: ColumnMapping) -> list[RawTransaction]:
    """Build raw transactions from the data rows (the header row excluded)."""
    transactions = []

    for row in rows:
        if all(_is_blank(cell) for cell in row):
            continue

        description = normalize_description(str(_cell(row, columns.description) or ""))
        if not description or description.lower() == "nan":
            continue

        amount = _parse_amount(_cell(row, columns.amount))
        category = _cell(row, columns.category)

        transactions.append(
            RawTransaction(
                date=parse_spreadsheet_date(_cell(row, columns.date)),
                description=description,
                amount=abs(amount),
                # Spreadsheets list spending as positive values
                direction=Direction.DEBIT if amount >= 0 else Direction.CREDIT,
                suggested_category=None if _is_blank(category) else str(category).strip(),
            )
        )

    return transactions


def spreadsheet_confidence(columns: ColumnMapping, transaction_count: int) -> float:
    score = 0.5

    for index in (columns.date, columns.description, columns.amount):
        if index is not None:
            score += 0.15

    if transaction_count > 0:
        score += 0.05
    if transaction_count > 5:
        score += 0.05
    if transaction_count > 10:
        score += 0.05

    return round(min(score, 0.95), 2)


def _read_rows(contents: bytes, file_type: FileType) -> list[list[object]]:
    """Read the first sheet without treating any row as a header."""
    if file_type == FileType.XLSX:
        df = pd.read_excel(BytesIO(contents), header=None, dtype=object)
        return df.values.tolist()

    # Try multiple encodings
    text = None
    for encoding in ["utf-8-sig", "latin-1", "cp1252"]:
        try:
            text = contents.decode(encoding)
            break
        except UnicodeDecodeError:
            continue

    if text is None:
        raise ParsingError("Failed to decode CSV with any supported encoding")

    df = pd.read_csv(StringIO(text), header=None, dtype=object, sep=_guess_separator(text))
    return df.values.tolist()


def _guess_separator(text: str) -> str:
    """Most frequent separator in the header line."""
    header = text.split("\n", 1)[0]
    return max([",", ";", "\t"], key=header.count)


def parse_spreadsheet(contents: bytes, file_type: FileType) -> ExtractedDocument:
    """
    Extract transactions from a spreadsheet without calling the LLM.

    Raises:
        ParsingError: If the file cannot be read as a spreadsheet
    """
    try:
        rows = _read_rows(contents, file_type)
    except ParsingError:
        raise
    except pd.errors.EmptyDataError:
        rows = []
    except Exception as e:
        logger.error(f"Spreadsheet extraction failed: {e}")
        raise ParsingError(f"Failed to read spreadsheet: {e}") from e

    if not rows:
        return ExtractedDocument(
            document_type=DocumentType.OTHER,
            confidence=0.1,
            observations=["Empty spreadsheet"],
            suggested_actions=["Check that the file contains data"],
        )

    columns = detect_columns(rows[0])
    transactions = extract_rows(rows[1:], columns)
    logger.info(f"Spreadsheet: {len(transactions)} transactions, columns {', '.join(columns.detected)}")

    return ExtractedDocument(
        document_type=DocumentType.CARD_INVOICE,
        confidence=spreadsheet_confidence(columns, len(transactions)),
        transactions=transactions,
        observations=[
            f"{len(transactions)} transactions found",
            f"Detected columns: {', '.join(columns.detected)}",
        ],
        suggested_actions=[
            "Review the transactions before importing",
            "Check that the suggested categories are right",
        ],
    )

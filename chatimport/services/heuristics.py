"""Pure inference heuristics used while importing a document.

Nothing here performs I/O: every function is deterministic given its inputs,
including ``today`` for the date repair.
"""

import calendar
import re
from collections.abc import Iterable, Sequence
from datetime import date
from pathlib import PurePath

from chatimport.models import AvailableCard, ExtractedTransaction, FileType

DEFAULT_PLAUSIBLE_YEARS = (2020, 2030)

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DAY_RUN = re.compile(r"(\d{1,2})")

_EXTENSION_TYPES = {
    ".pdf": FileType.PDF,
    ".xlsx": FileType.XLSX,
    ".xls": FileType.XLSX,
    ".csv": FileType.CSV,
}


def detect_file_type(filename: str) -> FileType:
    """Detect the extractor path from the file extension.

    Unknown extensions go down the image path, the most permissive one.
    """
    suffix = PurePath(filename or "").suffix.lower()
    return _EXTENSION_TYPES.get(suffix, FileType.IMAGE)


def identify_card(
    transactions: Iterable[ExtractedTransaction], cards: Sequence[AvailableCard]
) -> AvailableCard | None:
    """Return the first card whose name appears in any transaction description."""
    descriptions = [t.description.lower() for t in transactions]

    for card in cards:
        name = card.name.strip().lower()
        if not name:
            continue
        if any(name in description for description in descriptions):
            return card

    return None


def _clamped(year: int, month: int, day: int) -> date:
    """Build a date, pulling the day into the valid range for that month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last_day))


def repair_date(
    raw: str | None,
    reference_month: int | None = None,
    reference_year: int | None = None,
    *,
    today: date | None = None,
    plausible_years: tuple[int, int] = DEFAULT_PLAUSIBLE_YEARS,
) -> date:
    """
    Turn a noisy extracted date into the most plausible calendar date.

    Args:
        raw: Date string as read from the document
        reference_month: Month the user said the document refers to
        reference_year: Year the user said the document refers to
        today: Fallback for the target month/year when no reference is given
        plausible_years: Inclusive window of years trusted as-is

    Returns:
        A valid date. Rebuilt dates always fall inside the target month.
    """
    today = today or date.today()
    explicit_reference = reference_month is not None and reference_year is not None
    target_year = reference_year if explicit_reference else today.year
    target_month = reference_month if explicit_reference else today.month
    min_year, max_year = plausible_years
    text = (raw or "").strip()

    if match := _ISO_DATE.match(text):
        year, month, day = (int(part) for part in match.groups())

        if not min_year <= year <= max_year:
            # The "year" is most likely a misread day
            corrected_day = day if 1 <= day <= 31 else int(match.group(1)[-2:])
            return _clamped(target_year, target_month, corrected_day)

        if explicit_reference:
            return _clamped(target_year, target_month, day)

        if 1 <= month <= 12:
            return _clamped(year, month, day)

        return _clamped(target_year, target_month, day)

    if match := _DAY_RUN.search(text):
        day = min(int(match.group(1)), 31)
        return _clamped(target_year, target_month, day)

    return date(target_year, target_month, 1)


def _duplicate_key(txn: ExtractedTransaction) -> tuple[str, str, float, str]:
    return (txn.date.strip(), " ".join(txn.description.lower().split()), round(txn.amount, 2), txn.direction.value)


def flag_duplicates(transactions: Sequence[ExtractedTransaction]) -> list[ExtractedTransaction]:
    """
    Mark repeats of an earlier line in the same document.

    Repeats are flagged and left unselected so the user can opt back in;
    first occurrences are returned unchanged.
    """
    seen: set[tuple[str, str, float, str]] = set()
    flagged = []

    for txn in transactions:
        key = _duplicate_key(txn)
        if key in seen:
            flagged.append(txn.model_copy(update={"duplicate": True, "selected": False}))
        else:
            seen.add(key)
            flagged.append(txn)

    return flagged

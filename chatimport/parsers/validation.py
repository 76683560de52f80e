"""Shared validation utilities for document extraction."""

import logging
import re

logger = logging.getLogger(__name__)

_CURRENCY_SYMBOLS = re.compile(r"(R\$|US\$|\$|€|BRL|USD)", re.IGNORECASE)


class ValidationError(Exception):
    """Raised when validation fails."""

    pass


def validate_file_contents(contents: bytes, min_size: int = 10) -> None:
    """
    Validate file contents before extraction.

    Args:
        contents: Raw file bytes
        min_size: Minimum expected file size in bytes

    Raises:
        ValidationError: If validation fails
    """
    if not contents:
        raise ValidationError("File is empty")

    if len(contents) < min_size:
        raise ValidationError(f"File too small ({len(contents)} bytes), minimum {min_size} bytes expected")


def validate_file_size(contents: bytes, max_size: int) -> None:
    """
    Reject files larger than ``max_size`` bytes.

    Raises:
        ValidationError: If the file is too large
    """
    if len(contents) > max_size:
        size_mb = len(contents) / (1024 * 1024)
        limit_mb = max_size / (1024 * 1024)
        raise ValidationError(f"File too large ({size_mb:.1f} MB), maximum {limit_mb:.0f} MB")


def validate_amount(amount: float, min_val: float = -1_000_000, max_val: float = 1_000_000) -> bool:
    """
    Validate that an amount is within reasonable bounds.

    Args:
        amount: The amount to validate
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        True if valid, False otherwise
    """
    if amount is None:
        return False

    # Check for NaN or infinity
    if amount != amount or abs(amount) == float("inf"):
        return False

    return min_val <= amount <= max_val


def clean_amount_string(amount_str: str) -> str:
    """
    Clean an amount string for parsing.

    Understands both "1.234,56" (Brazilian) and "1,234.56" separators: the
    right-most separator is the decimal one.

    Args:
        amount_str: Raw amount string

    Returns:
        Cleaned amount string ready for float conversion
    """
    if not amount_str:
        return "0"

    # Remove currency symbols and whitespace
    cleaned = _CURRENCY_SYMBOLS.sub("", amount_str)
    cleaned = "".join(cleaned.split())

    # Handle parentheses for negative numbers
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]

    # Handle trailing minus sign
    if cleaned.endswith("-"):
        cleaned = "-" + cleaned[:-1]

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")

    if last_comma > last_dot:
        # Comma is the decimal separator
        cleaned = cleaned.replace(".", "").replace(",", ".")
    elif last_dot > last_comma and last_comma != -1:
        cleaned = cleaned.replace(",", "")
    elif last_dot != -1 and cleaned.count(".") > 1:
        # "1.234.567" has only thousand separators
        cleaned = cleaned.replace(".", "")

    return cleaned


def parse_amount_safe(amount_str: str, default: float = 0.0) -> tuple[float, bool]:
    """
    Safely parse an amount string.

    Args:
        amount_str: Raw amount string
        default: Default value if parsing fails

    Returns:
        Tuple of (parsed amount, success flag)
    """
    try:
        cleaned = clean_amount_string(amount_str)
        if not cleaned or cleaned == "-":
            return default, False

        amount = float(cleaned)

        if not validate_amount(amount):
            return default, False

        return amount, True
    except (ValueError, TypeError):
        return default, False


def normalize_description(description: str) -> str:
    """
    Normalize a transaction description.

    Args:
        description: Raw description

    Returns:
        Normalized description
    """
    if not description:
        return ""

    # Remove extra whitespace
    description = " ".join(description.split())

    # Remove common noise patterns
    noise_patterns = [
        r"\s*\*+\s*",  # Asterisks
        r"\s+\d{10,}$",  # Long trailing numbers (reference IDs)
        r"\s+#\d+$",  # Store numbers
        r"\s+XX+\d+$",  # Masked card numbers
    ]

    for pattern in noise_patterns:
        description = re.sub(pattern, " ", description)

    return " ".join(description.split())

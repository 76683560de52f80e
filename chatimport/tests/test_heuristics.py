"""Tests for the inference heuristics."""

from datetime import date

import pytest

from chatimport.models import AvailableCard, Direction, FileType
from chatimport.services.heuristics import (
    detect_file_type,
    flag_duplicates,
    identify_card,
    repair_date,
)
from conftest import create_transaction

TODAY = date(2024, 5, 20)


class TestDetectFileType:
    """Test file type detection from the extension."""

    def test_detects_known_extensions(self):
        """Should map known extensions case-insensitively."""
        assert detect_file_type("fatura.pdf") == FileType.PDF
        assert detect_file_type("Fatura.PDF") == FileType.PDF
        assert detect_file_type("gastos.xlsx") == FileType.XLSX
        assert detect_file_type("gastos.xls") == FileType.XLSX
        assert detect_file_type("extrato.csv") == FileType.CSV

    def test_defaults_to_image(self):
        """Unknown or missing extensions take the image path."""
        assert detect_file_type("recibo.jpg") == FileType.IMAGE
        assert detect_file_type("recibo.heic") == FileType.IMAGE
        assert detect_file_type("recibo") == FileType.IMAGE
        assert detect_file_type("") == FileType.IMAGE


class TestIdentifyCard:
    """Test card auto-identification."""

    def test_finds_card_named_in_description(self, cards):
        """Should return the card whose name appears in a description."""
        transactions = [
            create_transaction("tx_0", description="UBER TRIP"),
            create_transaction("tx_1", description="Pagamento NUBANK fatura"),
        ]
        assert identify_card(transactions, cards).id == 1

    def test_returns_first_matching_card(self):
        """Card order breaks ties."""
        cards = [AvailableCard(id=5, name="Visa"), AvailableCard(id=6, name="Visa Gold")]
        transactions = [create_transaction(description="VISA GOLD ANUIDADE")]
        assert identify_card(transactions, cards).id == 5

    def test_returns_none_without_match(self, cards):
        """Should return None when no card name appears."""
        transactions = [create_transaction(description="PADARIA CENTRAL")]
        assert identify_card(transactions, cards) is None

    def test_ignores_blank_card_names(self):
        """A card with an empty name never matches everything."""
        cards = [AvailableCard(id=1, name="  ")]
        assert identify_card([create_transaction()], cards) is None


class TestRepairDate:
    """Test ambiguous date repair."""

    def test_valid_iso_date_is_unchanged(self):
        """A plausible ISO date without a reference period is trusted."""
        assert repair_date("2024-03-15", today=TODAY) == date(2024, 3, 15)

    def test_reference_period_overrides_month_and_year(self):
        """The day is kept but month and year come from the reference."""
        assert repair_date("2024-07-03", 3, 2024, today=TODAY) == date(2024, 3, 3)

    def test_garbage_day_is_clamped_into_reference_month(self):
        """'45' with March 2024 becomes the last day of March."""
        result = repair_date("45", 3, 2024, today=TODAY)
        assert result == date(2024, 3, 31)
        assert (result.year, result.month) == (2024, 3)

    def test_implausible_year_is_treated_as_misread_day(self):
        """An out-of-window year is rebuilt from the reference period."""
        result = repair_date("0015-03-40", 2, 2024, today=TODAY)
        assert (result.year, result.month) == (2024, 2)
        assert result.day == 15

    def test_day_is_clamped_to_month_length(self):
        """Day 31 in a 30-day month becomes day 30."""
        assert repair_date("31", 4, 2024, today=TODAY) == date(2024, 4, 30)
        assert repair_date("2024-01-31", 2, 2023, today=TODAY) == date(2023, 2, 28)

    def test_extracts_first_digit_run(self):
        """Free text falls back to its first one- or two-digit run."""
        assert repair_date("dia 7 de marco", 3, 2024, today=TODAY) == date(2024, 3, 7)
        assert repair_date("15/03", 3, 2024, today=TODAY) == date(2024, 3, 15)

    def test_nothing_extractable_gives_first_of_month(self):
        """Without digits, day 1 of the reference month is used."""
        assert repair_date("ontem", 3, 2024, today=TODAY) == date(2024, 3, 1)
        assert repair_date("", 3, 2024, today=TODAY) == date(2024, 3, 1)
        assert repair_date(None, 3, 2024, today=TODAY) == date(2024, 3, 1)

    def test_without_reference_uses_today(self):
        """Missing reference period falls back to the current month."""
        assert repair_date("12", today=TODAY) == date(2024, 5, 12)

    def test_plausible_window_is_configurable(self):
        """Years outside a custom window are treated as misread."""
        assert repair_date("2019-03-15", today=TODAY) == date(2024, 5, 15)
        assert repair_date("2019-03-15", today=TODAY, plausible_years=(2010, 2040)) == date(2019, 3, 15)

    @pytest.mark.parametrize("raw", ["45", "99", "2024-13-45", "abc", "0", "1999-01-01"])
    def test_result_always_in_reference_month(self, raw):
        """Repaired dates never leave the reference month."""
        result = repair_date(raw, 3, 2024, today=TODAY)
        assert (result.year, result.month) == (2024, 3)


class TestFlagDuplicates:
    """Test in-document duplicate suppression."""

    def test_flags_repeated_lines(self):
        """Repeats are flagged and deselected, first occurrences untouched."""
        first = create_transaction("tx_0", description="Cafe Central", amount=8.5)
        repeat = create_transaction("tx_1", description="CAFE  central", amount=8.5)
        other = create_transaction("tx_2", description="Cafe Central", amount=9.0)

        result = flag_duplicates([first, repeat, other])

        assert result[0] is first
        assert result[1].duplicate is True
        assert result[1].selected is False
        assert result[2] is other

    def test_direction_distinguishes_lines(self):
        """A refund is not a duplicate of the purchase."""
        purchase = create_transaction("tx_0")
        refund = create_transaction("tx_1", direction=Direction.CREDIT)

        result = flag_duplicates([purchase, refund])

        assert not any(t.duplicate for t in result)

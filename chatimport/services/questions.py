"""Deterministic question engine for the import conversation.

``next_question`` is the only place that decides what to ask: it reads the
flow state (including answered questions) and the reference data and returns
the next clarifying question, or ``None`` when the preview can be shown.
"""

import re
from collections.abc import Sequence
from datetime import date

from chatimport.models import (
    Answer,
    AvailableAccount,
    AvailableCard,
    DestinationKind,
    DocumentType,
    ImportFlowState,
    ImportQuestion,
    ImportStep,
    QuestionId,
    QuestionKind,
    QuestionOption,
    ReferenceData,
)
from chatimport.services.formatting import format_currency, month_label
from chatimport.services.heuristics import identify_card

DEFAULT_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_PERIOD_CHOICES = 3

PERIOD_CORRECT = "correct"
PERIOD_ADJUST = "adjust"

QUESTION_STEPS: dict[QuestionId, ImportStep] = {
    QuestionId.CONFIRM_TYPE: ImportStep.CONFIRMING_TYPE,
    QuestionId.SELECT_CARD: ImportStep.SELECTING_DESTINATION,
    QuestionId.SELECT_ACCOUNT: ImportStep.SELECTING_DESTINATION,
    QuestionId.SELECT_DESTINATION_TYPE: ImportStep.SELECTING_DESTINATION,
    QuestionId.NEED_PERIOD_ADJUSTMENT: ImportStep.COLLECTING_DATA,
    QuestionId.SELECT_PERIOD: ImportStep.COLLECTING_DATA,
}

_PERIOD_PATTERNS = (
    re.compile(r"^(?P<month>\d{1,2})_(?P<year>\d{4})$"),
    re.compile(r"^(?P<month>\d{1,2})/(?P<year>\d{4})$"),
    re.compile(r"^(?P<year>\d{4})-(?P<month>\d{1,2})$"),
)


def step_for_question(question_id: QuestionId) -> ImportStep:
    return QUESTION_STEPS[question_id]


def next_question(
    state: ImportFlowState,
    reference: ReferenceData,
    *,
    today: date,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    period_choices: int = DEFAULT_PERIOD_CHOICES,
) -> ImportQuestion | None:
    """Decide the next clarifying question, or None when nothing is pending."""
    if state.destination is None:
        low_confidence = state.confidence is not None and state.confidence < confidence_threshold
        if low_confidence and state.answer_for(QuestionId.CONFIRM_TYPE) is None:
            return build_document_type_question()

        route = _destination_route(state, reference)
        if route is DestinationKind.CARD:
            suggested = identify_card(state.transactions, reference.cards)
            return build_card_question(reference.cards, suggested)
        if route is DestinationKind.ACCOUNT:
            return build_account_question(reference.accounts)
        return build_destination_type_question(reference)

    if state.destination is DestinationKind.CARD:
        if not state.has_reference_period:
            return build_period_question(today, period_choices)
        return None

    if state.destination is DestinationKind.ACCOUNT:
        adjustment = state.answer_for(QuestionId.NEED_PERIOD_ADJUSTMENT)
        if adjustment is None:
            return build_period_adjustment_question()
        if adjustment == PERIOD_ADJUST and not state.has_reference_period:
            return build_period_question(today, period_choices)
        return None

    return None


def _destination_route(state: ImportFlowState, reference: ReferenceData) -> DestinationKind | None:
    """Which destination list to offer, or None to ask for the destination type."""
    chosen = state.answer_for(QuestionId.SELECT_DESTINATION_TYPE)
    if chosen == DestinationKind.CARD.value and reference.cards:
        return DestinationKind.CARD
    if chosen == DestinationKind.ACCOUNT.value and reference.accounts:
        return DestinationKind.ACCOUNT

    if state.document_type is DocumentType.CARD_INVOICE and reference.cards:
        return DestinationKind.CARD
    if state.document_type is DocumentType.BANK_STATEMENT and reference.accounts:
        return DestinationKind.ACCOUNT
    return None


# ---------------------------------------------------------------------------
# Question builders
# ---------------------------------------------------------------------------


def build_document_type_question() -> ImportQuestion:
    return ImportQuestion(
        id=QuestionId.CONFIRM_TYPE,
        prompt="I'm not sure what kind of document this is. Can you confirm?",
        options=(
            QuestionOption(id=DocumentType.CARD_INVOICE.value, label="💳 Card Invoice", description="Credit card purchases"),
            QuestionOption(id=DocumentType.BANK_STATEMENT.value, label="🏦 Bank Statement", description="Account movements"),
            QuestionOption(id=DocumentType.PIX_RECEIPT.value, label="📱 PIX Receipt", description="PIX transfer"),
            QuestionOption(id=DocumentType.OTHER.value, label="📄 Other", description="Not sure / other type"),
        ),
    )


def build_card_question(cards: Sequence[AvailableCard], suggested: AvailableCard | None = None) -> ImportQuestion:
    """Ask which card to book into; a detected card is only pre-selected."""
    if suggested:
        prompt = f"It looks like the **{suggested.name}** card. Is that right?"
    else:
        prompt = "Which card should these transactions go to?"

    return ImportQuestion(
        id=QuestionId.SELECT_CARD,
        prompt=prompt,
        options=tuple(
            QuestionOption(
                id=card.id,
                label=f"💳 {card.name}",
                description=f"Ending in {card.last_digits}" if card.last_digits else None,
            )
            for card in cards
        ),
        suggested_option_id=suggested.id if suggested else None,
    )


def build_account_question(accounts: Sequence[AvailableAccount], symbol: str = "R$") -> ImportQuestion:
    return ImportQuestion(
        id=QuestionId.SELECT_ACCOUNT,
        prompt="Which bank account should I import into?",
        options=tuple(
            QuestionOption(
                id=account.id,
                label=f"🏦 {account.name}",
                description=f"Balance: {format_currency(account.balance, symbol)}",
            )
            for account in accounts
        ),
    )


def build_destination_type_question(reference: ReferenceData) -> ImportQuestion:
    options = []

    if reference.cards:
        options.append(
            QuestionOption(
                id=DestinationKind.CARD.value,
                label="💳 Card Invoice",
                description="Import as credit card charges",
            )
        )

    if reference.accounts:
        options.append(
            QuestionOption(
                id=DestinationKind.ACCOUNT.value,
                label="🏦 Account Movements",
                description="Import as bank account transactions",
            )
        )

    options.append(
        QuestionOption(
            id=DestinationKind.LOOSE.value,
            label="📝 Loose Transactions",
            description="Import without linking a card or account",
        )
    )

    return ImportQuestion(
        id=QuestionId.SELECT_DESTINATION_TYPE,
        prompt="How would you like to import these transactions?",
        options=tuple(options),
    )


def build_period_adjustment_question() -> ImportQuestion:
    return ImportQuestion(
        id=QuestionId.NEED_PERIOD_ADJUSTMENT,
        prompt="Are the transaction dates correct, or should I move them to a specific month?",
        options=(
            QuestionOption(id=PERIOD_CORRECT, label="✅ Dates are correct", description="Keep the dates as read"),
            QuestionOption(id=PERIOD_ADJUST, label="📅 Adjust period", description="The dates may be wrong"),
        ),
    )


def recent_months(today: date, count: int = DEFAULT_PERIOD_CHOICES) -> list[tuple[int, int]]:
    """The current and previous calendar months, newest first."""
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append((month, year))
        month -= 1
        if month == 0:
            month, year = 12, year - 1
    return months


def build_period_question(today: date, count: int = DEFAULT_PERIOD_CHOICES) -> ImportQuestion:
    return ImportQuestion(
        id=QuestionId.SELECT_PERIOD,
        kind=QuestionKind.MONTH_YEAR,
        prompt="Which month does this document refer to?",
        options=tuple(
            QuestionOption(id=f"{month}_{year}", label=f"📅 {month_label(month, year)}")
            for month, year in recent_months(today, count)
        ),
    )


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


def parse_period(answer: Answer) -> tuple[int, int] | None:
    """Parse "3_2024", "03/2024" or "2024-03" into (month, year)."""
    if not isinstance(answer, str):
        return None

    for pattern in _PERIOD_PATTERNS:
        if match := pattern.match(answer.strip()):
            month, year = int(match.group("month")), int(match.group("year"))
            if 1 <= month <= 12:
                return month, year
    return None


def validate_answer(question: ImportQuestion, answer: Answer) -> Answer | None:
    """
    Normalize an answer to a question.

    Returns the answer in the type of the matching option id (so "3" selects
    card 3), or None when the answer is not acceptable.
    """
    if question.kind is QuestionKind.MONTH_YEAR:
        period = parse_period(answer)
        if period is None:
            return None
        month, year = period
        return f"{month}_{year}"

    if question.kind is QuestionKind.SINGLE_CHOICE:
        for option_id in question.option_ids():
            if option_id == answer or str(option_id) == str(answer):
                return option_id
        return None

    return answer

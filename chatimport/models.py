"""Data models for the conversational import engine."""

import unicodedata
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _fold(value: str) -> str:
    """Lower-case and strip accents so 'Crédito' and 'credito' compare equal."""
    decomposed = unicodedata.normalize("NFD", value.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


class ImportStep(str, Enum):
    """Phases of the import state machine."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    IDENTIFYING = "identifying"
    CONFIRMING_TYPE = "confirming_type"
    SELECTING_DESTINATION = "selecting_destination"
    COLLECTING_DATA = "collecting_data"
    PREVIEW = "preview"
    IMPORTING = "importing"
    COMPLETED = "completed"
    ERROR = "error"


# Steps in which a fresh file may be submitted
ACCEPTS_FILE_STEPS = frozenset({ImportStep.IDLE, ImportStep.COMPLETED, ImportStep.ERROR})

# Steps in which exactly one question is pending
QUESTION_STEPS = frozenset(
    {ImportStep.CONFIRMING_TYPE, ImportStep.SELECTING_DESTINATION, ImportStep.COLLECTING_DATA}
)


class DocumentType(str, Enum):
    """Classification of an imported document."""

    CARD_INVOICE = "card_invoice"
    BANK_STATEMENT = "bank_statement"
    PIX_RECEIPT = "pix_receipt"
    FISCAL_RECEIPT = "fiscal_receipt"
    INVESTMENT_SHEET = "investment_sheet"
    FIXED_EXPENSES = "fixed_expenses"
    OTHER = "other"

    @classmethod
    def parse(cls, value: "str | DocumentType | None") -> "DocumentType":
        """Map extractor output (English or Portuguese labels) to a document type."""
        if isinstance(value, DocumentType):
            return value
        if not value:
            return cls.OTHER
        folded = _fold(value)
        try:
            return cls(folded)
        except ValueError:
            return DOCUMENT_TYPE_ALIASES.get(folded, cls.OTHER)


DOCUMENT_TYPE_ALIASES: dict[str, DocumentType] = {
    "fatura_cartao": DocumentType.CARD_INVOICE,
    "fatura": DocumentType.CARD_INVOICE,
    "credit_card_invoice": DocumentType.CARD_INVOICE,
    "extrato_bancario": DocumentType.BANK_STATEMENT,
    "extrato": DocumentType.BANK_STATEMENT,
    "comprovante_pix": DocumentType.PIX_RECEIPT,
    "pix": DocumentType.PIX_RECEIPT,
    "cupom_fiscal": DocumentType.FISCAL_RECEIPT,
    "receipt": DocumentType.FISCAL_RECEIPT,
    "planilha_investimentos": DocumentType.INVESTMENT_SHEET,
    "lista_despesas_fixas": DocumentType.FIXED_EXPENSES,
    "outro": DocumentType.OTHER,
}


class Direction(str, Enum):
    """Money flow of a transaction; amounts are always magnitudes."""

    CREDIT = "credit"
    DEBIT = "debit"

    @classmethod
    def parse(cls, value: object) -> "Direction":
        if isinstance(value, Direction):
            return value
        folded = _fold(str(value))
        if folded in ("credit", "credito", "entrada", "receita"):
            return cls.CREDIT
        if folded in ("debit", "debito", "saida", "despesa"):
            return cls.DEBIT
        raise ValueError(f"Unknown transaction direction: {value!r}")


class FileType(str, Enum):
    """Extractor path chosen from the file extension."""

    PDF = "pdf"
    XLSX = "xlsx"
    CSV = "csv"
    IMAGE = "image"


class DestinationKind(str, Enum):
    """Where imported transactions are booked."""

    CARD = "card"
    ACCOUNT = "account"
    LOOSE = "loose"


class LedgerType(str, Enum):
    """Ledger type written to storage."""

    INCOME = "income"
    CARD_EXPENSE = "card_expense"
    EXPENSE = "expense"


class CategoryApplicability(str, Enum):
    """Which transactions a category applies to."""

    INCOME = "receita"
    EXPENSE = "despesa"
    BOTH = "ambos"


class QuestionKind(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"
    DATE = "date"
    MONTH_YEAR = "month_year"


class QuestionId(str, Enum):
    """Identifiers of the clarifying questions; each answer is handled by id."""

    CONFIRM_TYPE = "confirm_type"
    SELECT_CARD = "select_card"
    SELECT_ACCOUNT = "select_account"
    SELECT_DESTINATION_TYPE = "select_destination_type"
    NEED_PERIOD_ADJUSTMENT = "need_period_adjustment"
    SELECT_PERIOD = "select_period"


class ChatMessageKind(str, Enum):
    SYSTEM = "system"
    USER = "user"
    QUESTION = "question"
    PREVIEW = "preview"
    RESULT = "result"


# ---------------------------------------------------------------------------
# Reference data (read-only snapshots supplied by the caller)
# ---------------------------------------------------------------------------


class AvailableCard(BaseModel):
    """A registered credit card."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    last_digits: str | None = None
    closing_day: int = Field(default=1, ge=1, le=31)
    due_day: int = Field(default=10, ge=1, le=31)


class AvailableAccount(BaseModel):
    """A registered bank account."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    type: str = "checking"
    balance: float = 0.0


class AvailableCategory(BaseModel):
    """A ledger category."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    applicability: CategoryApplicability = CategoryApplicability.BOTH


class ReferenceData(BaseModel):
    """Destination candidates for one user, captured when the session starts."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    cards: tuple[AvailableCard, ...] = ()
    accounts: tuple[AvailableAccount, ...] = ()
    categories: tuple[AvailableCategory, ...] = ()

    def find_card(self, card_id: int) -> AvailableCard | None:
        return next((c for c in self.cards if c.id == card_id), None)

    def find_account(self, account_id: int) -> AvailableAccount | None:
        return next((a for a in self.accounts if a.id == account_id), None)

    def find_category(self, category_id: int) -> AvailableCategory | None:
        return next((c for c in self.categories if c.id == category_id), None)


# ---------------------------------------------------------------------------
# Flow state
# ---------------------------------------------------------------------------


class ExtractedTransaction(BaseModel):
    """One candidate ledger line extracted from a document."""

    model_config = ConfigDict(frozen=True)

    id: str  # Temporary id, stable for the session
    date: str  # Free-form until committed
    description: str
    amount: float = Field(ge=0)
    direction: Direction
    category_id: int | None = None
    category_name: str | None = None
    selected: bool = True
    duplicate: bool = False


class QuestionOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | int
    label: str
    description: str | None = None


Answer = str | int | list[str]


class ImportQuestion(BaseModel):
    """A single clarifying prompt."""

    model_config = ConfigDict(frozen=True)

    id: QuestionId
    kind: QuestionKind = QuestionKind.SINGLE_CHOICE
    prompt: str
    options: tuple[QuestionOption, ...] = ()
    suggested_option_id: str | int | None = None
    answer: Answer | None = None
    required: bool = True

    def option_ids(self) -> list[str | int]:
        return [option.id for option in self.options]

    def find_option(self, option_id: str | int) -> QuestionOption | None:
        return next((o for o in self.options if o.id == option_id), None)


class ImportFlowState(BaseModel):
    """The single aggregate owned by an import session.

    Instances are immutable; every transition produces a new value.
    """

    model_config = ConfigDict(frozen=True)

    step: ImportStep = ImportStep.IDLE

    # Document
    file_name: str | None = None
    file_type: FileType | None = None
    document_type: DocumentType | None = None
    confidence: float | None = None

    # Destination
    destination: DestinationKind | None = None
    card_id: int | None = None
    card_name: str | None = None
    account_id: int | None = None
    account_name: str | None = None

    # Reference period
    reference_month: int | None = None
    reference_year: int | None = None

    # Extracted data
    transactions: tuple[ExtractedTransaction, ...] = ()
    total_transactions: int = 0
    total_amount: float = 0.0

    # Questions
    current_question: ImportQuestion | None = None
    questions_history: tuple[ImportQuestion, ...] = ()

    # Observations and alerts
    observations: tuple[str, ...] = ()
    alerts: tuple[str, ...] = ()

    # Result
    imported_count: int | None = None
    skipped_count: int | None = None
    error_message: str | None = None

    @property
    def selected_transactions(self) -> list[ExtractedTransaction]:
        return [t for t in self.transactions if t.selected]

    @property
    def has_reference_period(self) -> bool:
        return self.reference_month is not None and self.reference_year is not None

    def answer_for(self, question_id: QuestionId) -> Answer | None:
        """Most recent recorded answer to a question, if it was asked."""
        for question in reversed(self.questions_history):
            if question.id == question_id:
                return question.answer
        return None


# ---------------------------------------------------------------------------
# Input and output shapes
# ---------------------------------------------------------------------------


class DocumentFile(BaseModel):
    """A raw file handed to the session."""

    filename: str
    contents: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.contents)

    @classmethod
    def from_path(cls, path: Path | str, content_type: str | None = None) -> "DocumentFile":
        path = Path(path)
        return cls(filename=path.name, contents=path.read_bytes(), content_type=content_type)


class LedgerEntry(BaseModel):
    """One row of the commit batch."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    transaction_id: str | None = None  # Preview transaction this row came from; not persisted
    user_id: str
    description: str
    amount: float = Field(ge=0)
    date: date
    ledger_type: LedgerType
    category_id: int
    card_id: int | None = None
    account_id: int | None = None
    origin: str
    status: str
    import_hash: str


class PreviewSummary(BaseModel):
    total: int
    amount: str  # Formatted for display
    destination: str


class ImportOutcome(BaseModel):
    success: bool
    imported: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """A user-facing conversational utterance emitted by the session."""

    id: str = Field(default_factory=lambda: f"msg_{uuid4().hex[:12]}")
    kind: ChatMessageKind
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)
    question: ImportQuestion | None = None
    transactions: list[ExtractedTransaction] | None = None
    summary: PreviewSummary | None = None
    result: ImportOutcome | None = None

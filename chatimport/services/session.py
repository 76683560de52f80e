"""Conversational import session.

An ``ImportSession`` owns one ``ImportFlowState`` and every side effect of an
import: one extractor call per file and one storage round trip per commit.
All branching about what to ask lives in ``services.questions``; every state
change goes through ``services.flow.reduce``.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import date
from typing import Protocol

from chatimport.config import Settings, settings as default_settings
from chatimport.db.sqlite import SQLiteLedger
from chatimport.models import (
    ACCEPTS_FILE_STEPS,
    Answer,
    ChatMessage,
    ChatMessageKind,
    DestinationKind,
    DocumentFile,
    DocumentType,
    ExtractedTransaction,
    ImportFlowState,
    ImportOutcome,
    ImportQuestion,
    ImportStep,
    LedgerEntry,
    QuestionId,
    ReferenceData,
)
from chatimport.parsers.document_types import DocumentExtractor, ExtractedDocument
from chatimport.services.categorizer import DEFAULT_CATEGORY_NAMES, suggest_category
from chatimport.services.dedup import compute_file_hash
from chatimport.services.flow import (
    INITIAL_STATE,
    AnalysisComplete,
    AnalysisError,
    AnswerQuestion,
    AskQuestion,
    ChooseLooseDestination,
    ConfirmType,
    FlowAction,
    ImportComplete,
    ImportFailed,
    Reset,
    SelectAccount,
    SelectCard,
    SetPeriod,
    ShowPreview,
    StartAnalysis,
    StartImport,
    ToggleTransaction,
    UpdateCategory,
    reduce,
)
from chatimport.services.formatting import (
    analysis_summary,
    extraction_error_text,
    import_result_text,
    month_label,
    preview_text,
)
from chatimport.services.heuristics import detect_file_type, flag_duplicates
from chatimport.services.ledger import build_ledger_entries, preview_summary
from chatimport.services.questions import next_question, parse_period, validate_answer

logger = logging.getLogger(__name__)

StateListener = Callable[[ImportFlowState], None]
MessageListener = Callable[[ChatMessage], None]

BUSY_MESSAGE = "An import is already in progress. Finish or reset it before sending another file."
EMPTY_SELECTION_MESSAGE = "⚠️ Select at least one transaction to import."
NO_TRANSACTIONS_MESSAGE = "No transactions were found in the document"


class TransactionStore(Protocol):
    """Write side of the ledger used by the commit."""

    def existing_hashes(self, hashes: Iterable[str]) -> set[str]: ...

    def insert_transactions(self, entries: list[LedgerEntry]) -> int: ...


class ImportSession:
    """Drives one conversational import from file to committed ledger rows."""

    def __init__(
        self,
        reference: ReferenceData,
        extractor: DocumentExtractor,
        store: TransactionStore,
        *,
        settings: Settings | None = None,
        on_state_change: StateListener | None = None,
        on_message: MessageListener | None = None,
        clock: Callable[[], date] = date.today,
    ):
        self.reference = reference
        self.extractor = extractor
        self.store = store
        self.settings = settings or default_settings
        self.on_state_change = on_state_change
        self.on_message = on_message
        self.clock = clock
        self._state = INITIAL_STATE

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_callbacks(
        self,
        on_state_change: StateListener | None = None,
        on_message: MessageListener | None = None,
    ) -> None:
        if on_state_change is not None:
            self.on_state_change = on_state_change
        if on_message is not None:
            self.on_message = on_message

    def get_state(self) -> ImportFlowState:
        return self._state

    async def process_file(self, file: DocumentFile) -> None:
        """Extract a document and start the conversation about it."""
        if self._state.step not in ACCEPTS_FILE_STEPS:
            logger.warning(f"Rejected {file.filename}: session busy in step {self._state.step.value}")
            self._dispatch(AnalysisError(error=BUSY_MESSAGE))
            self._send(ChatMessageKind.SYSTEM, f"❌ {BUSY_MESSAGE}")
            return

        file_type = detect_file_type(file.filename)
        self._dispatch(StartAnalysis(file_name=file.filename, file_type=file_type))
        self._send(ChatMessageKind.USER, f"📎 {file.filename}")
        self._send(ChatMessageKind.SYSTEM, "🔍 Analyzing document...")
        logger.info(
            f"Processing {file.filename} ({file_type.value}, {file.size} bytes, "
            f"{compute_file_hash(file.contents)[:8]}...) for user {self.reference.user_id}"
        )

        try:
            result = await self.extractor.process_document(file, self.reference.user_id)
        except Exception as e:
            logger.error(f"Extractor failed for {file.filename}: {e}")
            self._fail_analysis(str(e))
            return

        if not result.success or result.data is None:
            self._fail_analysis(result.error or "Unknown extraction error")
            return

        document = result.data
        if not document.transactions:
            self._fail_analysis(NO_TRANSACTIONS_MESSAGE)
            return

        transactions = self._build_transactions(document)
        duplicates = sum(1 for t in transactions if t.duplicate)
        logger.info(
            f"Extracted {len(transactions)} transactions from {file.filename} "
            f"({document.document_type.value}, confidence {document.confidence:.2f}, "
            f"{duplicates} repeated, {result.processing_time_ms}ms)"
        )

        self._dispatch(
            AnalysisComplete(
                document_type=document.document_type,
                confidence=document.confidence,
                transactions=tuple(transactions),
                observations=tuple(document.observations),
                alerts=tuple(self._alerts(document.confidence, duplicates)),
            )
        )
        self._send(ChatMessageKind.SYSTEM, analysis_summary(self._state, self.settings.currency_symbol))
        self._advance()

    def answer_question(self, question_id: QuestionId | str, answer: Answer) -> None:
        """Record an answer to the pending question and move the conversation on."""
        question = self._state.current_question
        if question is None or question.id != question_id:
            logger.debug(f"Ignoring answer to {question_id}: not the pending question")
            return

        normalized = validate_answer(question, answer)
        if normalized is None:
            logger.warning(f"Ignoring invalid answer {answer!r} to {question.id.value}")
            return

        self._send(ChatMessageKind.USER, self._answer_label(question, normalized))
        self._dispatch(AnswerQuestion(question_id=question.id, answer=normalized))
        self._apply_answer(question.id, normalized)
        self._advance()

    def toggle_transaction(self, transaction_id: str) -> None:
        if self._state.step is not ImportStep.PREVIEW:
            logger.debug(f"Ignoring toggle of {transaction_id} outside preview")
            return
        self._dispatch(ToggleTransaction(transaction_id=transaction_id))

    def update_transaction_category(
        self, transaction_id: str, category_id: int, category_name: str | None = None
    ) -> None:
        if self._state.step is not ImportStep.PREVIEW:
            logger.debug(f"Ignoring category change of {transaction_id} outside preview")
            return

        if category_name is None:
            category = self.reference.find_category(category_id)
            category_name = category.name if category else None

        self._dispatch(
            UpdateCategory(transaction_id=transaction_id, category_id=category_id, category_name=category_name)
        )

    async def confirm_import(self) -> None:
        """Commit the selected transactions as ledger rows."""
        if self._state.step is not ImportStep.PREVIEW:
            logger.debug(f"Ignoring confirm in step {self._state.step.value}")
            return

        if not self._state.selected_transactions:
            self._send(ChatMessageKind.SYSTEM, EMPTY_SELECTION_MESSAGE)
            return

        self._dispatch(StartImport())
        self._send(ChatMessageKind.SYSTEM, "💾 Importing transactions...")

        entries = build_ledger_entries(self._state, self.reference, self.settings, self.clock())

        try:
            inserted, skipped_ids = await asyncio.to_thread(self._commit, entries)
        except Exception as e:
            logger.error(f"Import failed for {self._state.file_name}: {e}")
            self._dispatch(ImportFailed(error=str(e)))
            self._send(ChatMessageKind.SYSTEM, f"❌ Import failed: {e}")
            return

        logger.info(f"Imported {inserted} transactions, skipped {len(skipped_ids)} already imported")
        self._dispatch(ImportComplete(count=inserted, duplicate_ids=tuple(skipped_ids)))
        self._send(
            ChatMessageKind.RESULT,
            import_result_text(inserted, len(skipped_ids)),
            result=ImportOutcome(success=True, imported=inserted, skipped=len(skipped_ids)),
        )

    def reset(self) -> None:
        self._dispatch(Reset())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispatch(self, action: FlowAction) -> None:
        self._state = reduce(self._state, action)
        if self.on_state_change:
            self.on_state_change(self._state)

    def _send(self, kind: ChatMessageKind, content: str, **extra) -> None:
        if self.on_message:
            self.on_message(ChatMessage(kind=kind, content=content, **extra))

    def _fail_analysis(self, error: str) -> None:
        logger.error(f"Could not process {self._state.file_name}: {error}")
        self._dispatch(AnalysisError(error=error))
        self._send(ChatMessageKind.SYSTEM, extraction_error_text(error))

    def _commit(self, entries: list[LedgerEntry]) -> tuple[int, list[str]]:
        """Storage round trip; runs on a worker thread."""
        existing = self.store.existing_hashes(e.import_hash for e in entries)
        fresh = [e for e in entries if e.import_hash not in existing]
        skipped_ids = [e.transaction_id for e in entries if e.import_hash in existing]
        inserted = self.store.insert_transactions(fresh) if fresh else 0
        return inserted, skipped_ids

    def _build_transactions(self, document: ExtractedDocument) -> list[ExtractedTransaction]:
        transactions = []
        for index, raw in enumerate(document.transactions):
            category_id = suggest_category(
                raw.description, raw.suggested_category, self.settings.other_category_id
            )
            category = self.reference.find_category(category_id)
            category_name = category.name if category else DEFAULT_CATEGORY_NAMES.get(category_id)
            transactions.append(
                ExtractedTransaction(
                    id=f"tx_{index}",
                    date=raw.date,
                    description=raw.description,
                    amount=abs(raw.amount),
                    direction=raw.direction,
                    category_id=category_id,
                    category_name=category_name,
                )
            )
        return flag_duplicates(transactions)

    def _alerts(self, confidence: float, duplicates: int) -> list[str]:
        alerts = []
        if confidence < self.settings.confidence_threshold:
            alerts.append(f"Low confidence in the document type ({confidence:.0%})")
        if duplicates:
            alerts.append(f"{duplicates} repeated transactions were left unselected")
        return alerts

    def _advance(self) -> None:
        """Ask the next pending question, or move to preview."""
        question = next_question(
            self._state,
            self.reference,
            today=self.clock(),
            confidence_threshold=self.settings.confidence_threshold,
            period_choices=self.settings.period_choices,
        )

        if question is not None:
            self._dispatch(AskQuestion(question=question))
            self._send(ChatMessageKind.QUESTION, question.prompt, question=question)
            return

        self._dispatch(ShowPreview())
        symbol = self.settings.currency_symbol
        self._send(
            ChatMessageKind.PREVIEW,
            preview_text(self._state, symbol),
            transactions=list(self._state.transactions),
            summary=preview_summary(self._state, symbol),
        )

    def _apply_answer(self, question_id: QuestionId, answer: Answer) -> None:
        """Dispatch the setter an answer implies."""
        match question_id:
            case QuestionId.CONFIRM_TYPE:
                self._dispatch(ConfirmType(document_type=DocumentType.parse(str(answer))))

            case QuestionId.SELECT_CARD:
                card = self.reference.find_card(int(answer))
                if card:
                    self._dispatch(SelectCard(card_id=card.id, card_name=card.name))
                    self._send(ChatMessageKind.SYSTEM, f"✅ Card selected: {card.name}")

            case QuestionId.SELECT_ACCOUNT:
                account = self.reference.find_account(int(answer))
                if account:
                    self._dispatch(SelectAccount(account_id=account.id, account_name=account.name))
                    self._send(ChatMessageKind.SYSTEM, f"✅ Account selected: {account.name}")

            case QuestionId.SELECT_DESTINATION_TYPE:
                # Card and account answers route to the matching list question
                if answer == DestinationKind.LOOSE.value:
                    self._dispatch(ChooseLooseDestination())

            case QuestionId.SELECT_PERIOD:
                period = parse_period(answer)
                if period:
                    month, year = period
                    self._dispatch(SetPeriod(month=month, year=year))
                    self._send(ChatMessageKind.SYSTEM, f"✅ Period set: {month_label(month, year)}")

            case QuestionId.NEED_PERIOD_ADJUSTMENT:
                pass

    @staticmethod
    def _answer_label(question: ImportQuestion, answer: Answer) -> str:
        option = question.find_option(answer) if isinstance(answer, (str, int)) else None
        return option.label if option else str(answer)


def create_import_session(
    user_id: str,
    store=None,
    extractor: DocumentExtractor | None = None,
    *,
    settings: Settings | None = None,
    on_state_change: StateListener | None = None,
    on_message: MessageListener | None = None,
) -> ImportSession:
    """
    Build a session for a user, loading reference data from the store.

    Without a store the SQLite ledger at ``settings.db_path`` is opened and
    seeded with the default categories.
    """
    settings = settings or default_settings

    if store is None:
        settings.ensure_directories()
        store = SQLiteLedger(settings.db_path)
        store.seed_default_categories()

    if extractor is None:
        from chatimport.parsers.document_processor import DocumentProcessor

        extractor = DocumentProcessor(settings=settings)

    return ImportSession(
        store.load_reference_data(user_id),
        extractor,
        store,
        settings=settings,
        on_state_change=on_state_change,
        on_message=on_message,
    )

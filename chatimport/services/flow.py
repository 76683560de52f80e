"""Actions and the pure transition function of the import flow.

Every action is a frozen model tagged by ``type``; ``reduce`` maps
``(state, action)`` to a new state and never mutates its input. Unknown
actions leave the state unchanged.
"""

from typing import TYPE_CHECKING, Annotated, Any, Literal, Union, assert_never

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from chatimport.models import (
    Answer,
    DestinationKind,
    DocumentType,
    ExtractedTransaction,
    FileType,
    ImportFlowState,
    ImportQuestion,
    ImportStep,
    QuestionId,
)
from chatimport.services.questions import step_for_question


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class StartAnalysis(_Action):
    type: Literal["start_analysis"] = "start_analysis"
    file_name: str
    file_type: FileType


class AnalysisComplete(_Action):
    type: Literal["analysis_complete"] = "analysis_complete"
    document_type: DocumentType
    confidence: float = Field(ge=0, le=1)
    transactions: tuple[ExtractedTransaction, ...]
    observations: tuple[str, ...] = ()
    alerts: tuple[str, ...] = ()


class AnalysisError(_Action):
    type: Literal["analysis_error"] = "analysis_error"
    error: str


class AskQuestion(_Action):
    type: Literal["ask_question"] = "ask_question"
    question: ImportQuestion


class AnswerQuestion(_Action):
    type: Literal["answer_question"] = "answer_question"
    question_id: QuestionId
    answer: Answer


class ConfirmType(_Action):
    type: Literal["confirm_type"] = "confirm_type"
    document_type: DocumentType


class SelectCard(_Action):
    type: Literal["select_card"] = "select_card"
    card_id: int
    card_name: str


class SelectAccount(_Action):
    type: Literal["select_account"] = "select_account"
    account_id: int
    account_name: str


class ChooseLooseDestination(_Action):
    type: Literal["choose_loose_destination"] = "choose_loose_destination"


class SetPeriod(_Action):
    type: Literal["set_period"] = "set_period"
    month: int = Field(ge=1, le=12)
    year: int


class ShowPreview(_Action):
    type: Literal["show_preview"] = "show_preview"


class ToggleTransaction(_Action):
    type: Literal["toggle_transaction"] = "toggle_transaction"
    transaction_id: str


class UpdateCategory(_Action):
    type: Literal["update_category"] = "update_category"
    transaction_id: str
    category_id: int
    category_name: str | None = None


class StartImport(_Action):
    type: Literal["start_import"] = "start_import"


class ImportComplete(_Action):
    type: Literal["import_complete"] = "import_complete"
    count: int = Field(ge=0)
    duplicate_ids: tuple[str, ...] = ()


class ImportFailed(_Action):
    type: Literal["import_failed"] = "import_failed"
    error: str


class Reset(_Action):
    type: Literal["reset"] = "reset"


FlowAction = Annotated[
    Union[
        StartAnalysis,
        AnalysisComplete,
        AnalysisError,
        AskQuestion,
        AnswerQuestion,
        ConfirmType,
        SelectCard,
        SelectAccount,
        ChooseLooseDestination,
        SetPeriod,
        ShowPreview,
        ToggleTransaction,
        UpdateCategory,
        StartImport,
        ImportComplete,
        ImportFailed,
        Reset,
    ],
    Field(discriminator="type"),
]

_action_adapter: TypeAdapter[FlowAction] = TypeAdapter(FlowAction)

INITIAL_STATE = ImportFlowState()


def parse_action(data: dict[str, Any]) -> FlowAction:
    """Build an action from a plain dict such as ``{"type": "reset"}``."""
    return _action_adapter.validate_python(data)


def _replace_transaction(state: ImportFlowState, transaction_id: str, **changes: Any) -> ImportFlowState:
    """Rewrite one transaction; every other transaction keeps its identity."""
    if not any(t.id == transaction_id for t in state.transactions):
        return state

    transactions = tuple(
        t.model_copy(update=changes) if t.id == transaction_id else t for t in state.transactions
    )
    return state.model_copy(update={"transactions": transactions})


def reduce(state: ImportFlowState, action: FlowAction) -> ImportFlowState:
    """Apply one action to the flow state and return the resulting state."""
    match action:
        case StartAnalysis(file_name=file_name, file_type=file_type):
            return ImportFlowState(step=ImportStep.ANALYZING, file_name=file_name, file_type=file_type)

        case AnalysisComplete():
            return state.model_copy(
                update={
                    "step": ImportStep.IDENTIFYING,
                    "document_type": action.document_type,
                    "confidence": action.confidence,
                    "transactions": action.transactions,
                    "total_transactions": len(action.transactions),
                    "total_amount": round(sum(t.amount for t in action.transactions), 2),
                    "observations": action.observations,
                    "alerts": action.alerts,
                }
            )

        case AnalysisError(error=error):
            return state.model_copy(
                update={"step": ImportStep.ERROR, "error_message": error, "current_question": None}
            )

        case AskQuestion(question=question):
            return state.model_copy(
                update={"step": step_for_question(question.id), "current_question": question}
            )

        case AnswerQuestion(question_id=question_id, answer=answer):
            pending = state.current_question
            if pending is None or pending.id != question_id:
                return state
            answered = pending.model_copy(update={"answer": answer})
            return state.model_copy(
                update={
                    "step": ImportStep.IDENTIFYING,
                    "current_question": None,
                    "questions_history": (*state.questions_history, answered),
                }
            )

        case ConfirmType(document_type=document_type):
            return state.model_copy(update={"document_type": document_type})

        case SelectCard(card_id=card_id, card_name=card_name):
            return state.model_copy(
                update={
                    "destination": DestinationKind.CARD,
                    "card_id": card_id,
                    "card_name": card_name,
                    "account_id": None,
                    "account_name": None,
                }
            )

        case SelectAccount(account_id=account_id, account_name=account_name):
            return state.model_copy(
                update={
                    "destination": DestinationKind.ACCOUNT,
                    "account_id": account_id,
                    "account_name": account_name,
                    "card_id": None,
                    "card_name": None,
                }
            )

        case ChooseLooseDestination():
            return state.model_copy(
                update={
                    "destination": DestinationKind.LOOSE,
                    "card_id": None,
                    "card_name": None,
                    "account_id": None,
                    "account_name": None,
                }
            )

        case SetPeriod(month=month, year=year):
            return state.model_copy(update={"reference_month": month, "reference_year": year})

        case ShowPreview():
            return state.model_copy(update={"step": ImportStep.PREVIEW, "current_question": None})

        case ToggleTransaction(transaction_id=transaction_id):
            target = next((t for t in state.transactions if t.id == transaction_id), None)
            if target is None:
                return state
            return _replace_transaction(state, transaction_id, selected=not target.selected)

        case UpdateCategory(transaction_id=transaction_id, category_id=category_id, category_name=category_name):
            return _replace_transaction(
                state, transaction_id, category_id=category_id, category_name=category_name
            )

        case StartImport():
            return state.model_copy(update={"step": ImportStep.IMPORTING, "error_message": None})

        case ImportComplete(count=count, duplicate_ids=duplicate_ids):
            transactions = state.transactions
            if duplicate_ids:
                skipped = set(duplicate_ids)
                transactions = tuple(
                    t.model_copy(update={"duplicate": True}) if t.id in skipped else t
                    for t in state.transactions
                )
            return state.model_copy(
                update={
                    "step": ImportStep.COMPLETED,
                    "imported_count": count,
                    "skipped_count": len(duplicate_ids),
                    "transactions": transactions,
                }
            )

        case ImportFailed(error=error):
            return state.model_copy(update={"step": ImportStep.ERROR, "error_message": error})

        case Reset():
            return INITIAL_STATE

        case _:
            if TYPE_CHECKING:
                assert_never(action)
            return state

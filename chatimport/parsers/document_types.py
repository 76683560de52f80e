"""Pydantic models for the document extraction contract."""

from typing import Protocol

from pydantic import BaseModel, Field, field_validator

from chatimport.models import Direction, DocumentFile, DocumentType


class RawTransaction(BaseModel):
    """Raw transaction data extracted from a document."""

    date: str  # Free-form; repaired at commit time
    description: str = Field(min_length=1)
    amount: float
    direction: Direction = Direction.DEBIT
    suggested_category: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("direction", mode="before")
    @classmethod
    def parse_direction(cls, value: object) -> Direction:
        return Direction.parse(value)


class ExtractedDocument(BaseModel):
    """Structured data extracted from one document."""

    document_type: DocumentType = DocumentType.OTHER
    confidence: float = Field(ge=0, le=1)
    transactions: list[RawTransaction] = Field(default_factory=list)
    observations: list[str] = Field(default_factory=list)
    suggested_actions: list[str] = Field(default_factory=list)

    @field_validator("document_type", mode="before")
    @classmethod
    def parse_document_type(cls, value: object) -> DocumentType:
        if isinstance(value, (str, DocumentType)):
            return DocumentType.parse(value)
        return DocumentType.OTHER


class ExtractionResult(BaseModel):
    """Envelope returned by a document extractor."""

    success: bool
    data: ExtractedDocument | None = None
    error: str | None = None
    processing_time_ms: int = 0


class DocumentExtractor(Protocol):
    """Turns a raw document into candidate transactions."""

    async def process_document(self, file: DocumentFile, user_id: str) -> ExtractionResult: ...

"""Default document extractor: spreadsheets locally, PDFs through the LLM."""

import logging
import time
from io import BytesIO

import pdfplumber

from chatimport.config import Settings, settings as default_settings
from chatimport.models import DocumentFile, FileType
from chatimport.parsers.document_types import ExtractedDocument, ExtractionResult
from chatimport.parsers.llm_client import ParsingError, llm_extract_json
from chatimport.parsers.spreadsheet import parse_spreadsheet
from chatimport.parsers.validation import ValidationError, validate_file_contents, validate_file_size
from chatimport.services.heuristics import detect_file_type

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """You are reading a Brazilian financial document.

Document text:
{text}

Classify the document and extract every transaction as JSON:
{{
  "document_type": "card_invoice" | "bank_statement" | "pix_receipt" | "fiscal_receipt" | "investment_sheet" | "fixed_expenses" | "other",
  "confidence": 0.0 to 1.0,
  "transactions": [
    {{
      "date": "YYYY-MM-DD",
      "description": "Merchant name or transaction description",
      "amount": 123.45,
      "direction": "debit" | "credit",
      "suggested_category": "food" | "groceries" | "transport" | "housing" | "health" | "leisure" | "shopping" | "bills" | "other"
    }}
  ],
  "observations": ["Anything the user should know, e.g. the invoice due date"],
  "suggested_actions": ["What the user might want to do next"]
}}

RULES:
1. Amounts are always positive; use "direction" for money in ("credit") or out ("debit").
2. Dates in DD/MM format belong to the statement period; write them as YYYY-MM-DD.
3. Skip card payments, balance carried over and running balance lines.
4. "confidence" is how sure you are about the document type.

Only respond with JSON, nothing else."""


class DocumentProcessor:
    """Extracts candidate transactions from a raw document."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or default_settings

    async def process_document(self, file: DocumentFile, user_id: str) -> ExtractionResult:
        started = time.monotonic()

        try:
            validate_file_contents(file.contents)
            validate_file_size(file.contents, self.settings.max_file_size_bytes)

            file_type = detect_file_type(file.filename)
            logger.info(f"Extracting {file.filename} ({file_type.value}) for user {user_id}")

            if file_type in (FileType.XLSX, FileType.CSV):
                document = parse_spreadsheet(file.contents, file_type)
            elif file_type == FileType.PDF:
                document = await self._process_pdf(file.contents)
            else:
                return ExtractionResult(
                    success=False,
                    error="Image processing is not available yet. Send the document as a PDF or spreadsheet.",
                    processing_time_ms=self._elapsed_ms(started),
                )

        except (ValidationError, ParsingError) as e:
            logger.error(f"Extraction failed for {file.filename}: {e}")
            return ExtractionResult(success=False, error=str(e), processing_time_ms=self._elapsed_ms(started))

        return ExtractionResult(success=True, data=document, processing_time_ms=self._elapsed_ms(started))

    async def _process_pdf(self, contents: bytes) -> ExtractedDocument:
        text = self._extract_pdf_text(contents)

        if len(text.strip()) < self.settings.min_pdf_text_chars:
            raise ParsingError(
                "Could not read text from the PDF. It may be a scanned document; try a text PDF or a spreadsheet."
            )

        return await llm_extract_json(EXTRACTION_PROMPT.format(text=text), ExtractedDocument)

    def _extract_pdf_text(self, contents: bytes) -> str:
        """Text of the first pages of a PDF."""
        pages = []

        try:
            with pdfplumber.open(BytesIO(contents)) as pdf:
                for page in pdf.pages[: self.settings.max_pdf_pages]:
                    pages.append(page.extract_text() or "")
        except Exception as e:
            logger.error(f"PDF extraction failed: {e}")
            raise ParsingError(f"Failed to extract PDF content: {e}") from e

        return "\n\n".join(pages)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

"""User-facing text for the import conversation."""

import calendar

from chatimport.models import DocumentType, ImportFlowState

DOCUMENT_TYPE_LABELS: dict[DocumentType, str] = {
    DocumentType.CARD_INVOICE: "Credit Card Invoice",
    DocumentType.BANK_STATEMENT: "Bank Statement",
    DocumentType.PIX_RECEIPT: "PIX Receipt",
    DocumentType.FISCAL_RECEIPT: "Fiscal Receipt",
    DocumentType.INVESTMENT_SHEET: "Investment Spreadsheet",
    DocumentType.FIXED_EXPENSES: "Fixed Expenses List",
    DocumentType.OTHER: "Financial Document",
}


def format_currency(amount: float, symbol: str = "R$") -> str:
    """Format an amount the Brazilian way: R$ 1.234,56."""
    formatted = f"{abs(amount):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol} {formatted}"


def document_type_label(document_type: DocumentType | None) -> str:
    if document_type is None:
        return "Document"
    return DOCUMENT_TYPE_LABELS[document_type]


def month_label(month: int, year: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def confidence_badge(confidence: float | None) -> str:
    if confidence is not None and confidence >= 0.8:
        return "✅"
    if confidence is not None and confidence >= 0.6:
        return "⚠️"
    return "❓"


def destination_label(state: ImportFlowState) -> str:
    return state.card_name or state.account_name or "Loose transactions"


def analysis_summary(state: ImportFlowState, symbol: str = "R$") -> str:
    """Summary shown once the document has been analyzed."""
    lines = [
        f"{confidence_badge(state.confidence)} **Document identified: {document_type_label(state.document_type)}**",
        "",
        f"📊 Found **{state.total_transactions} transactions** totaling "
        f"**{format_currency(state.total_amount, symbol)}**",
    ]

    if state.observations:
        lines += ["", "📝 Observations:"]
        lines += [f"• {observation}" for observation in state.observations]

    if state.alerts:
        lines += ["", "⚠️ Alerts:"]
        lines += [f"• {alert}" for alert in state.alerts]

    return "\n".join(lines)


def preview_text(state: ImportFlowState, symbol: str = "R$") -> str:
    selected = state.selected_transactions
    amount = sum(t.amount for t in selected)
    return (
        "📋 **Import Preview**\n\n"
        f"Destination: {destination_label(state)}\n"
        f"Total: {len(selected)} of {state.total_transactions} transactions = {format_currency(amount, symbol)}"
    )


def extraction_error_text(error: str) -> str:
    return (
        f"❌ Could not process the file: {error}\n\n"
        "Tips:\n"
        "• Try a better quality picture\n"
        "• Prefer a PDF over a photo when possible\n"
        "• Make sure the document is legible"
    )


def import_result_text(imported: int, skipped: int) -> str:
    message = f"✅ **Import complete!**\n\n{imported} transactions imported successfully."
    if skipped > 0:
        message += f" ({skipped} already imported, skipped)"
    return message

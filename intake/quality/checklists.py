from intake.quality.models import ChecklistItem
from intake.workflow.models import DocumentType

DEFAULT_CHECKLISTS: dict[DocumentType, list[tuple[str, str]]] = {
    DocumentType.INVOICE: [
        ("vendor", "Supplier name & address visible"),
        ("totals", "Subtotal, tax, and grand total readable"),
        ("invoice-number", "Invoice number or reference present"),
        ("dates", "Invoice date clearly shown"),
    ],
    DocumentType.RECEIPT: [
        ("merchant", "Merchant name visible"),
        ("amount", "Total amount & tax visible"),
        ("date", "Purchase date readable"),
    ],
    DocumentType.STATEMENT: [
        ("institution", "Bank/institution name visible"),
        ("dates", "Statement period dates readable"),
        ("balances", "Opening & closing balances visible"),
    ],
    DocumentType.PAYSLIP: [
        ("employee", "Employee & employer names present"),
        ("gross-net", "Gross & net pay readable"),
        ("taxes", "Tax & NI deductions visible"),
    ],
    DocumentType.TAX_FORM: [
        ("reference", "Tax reference / UTR visible"),
        ("period", "Tax period or filing date readable"),
        ("totals", "Declared totals clearly shown"),
    ],
    DocumentType.OTHER: [
        ("readable", "Document is legible end-to-end"),
        ("context", "Includes enough context to classify"),
    ],
}


def build_checklist(document_type: DocumentType) -> list[ChecklistItem]:
    """Return a fresh checklist for a document type, all items completed."""
    template = DEFAULT_CHECKLISTS.get(document_type, DEFAULT_CHECKLISTS[DocumentType.OTHER])
    return [ChecklistItem(id=item_id, label=label) for item_id, label in template]


def flag_checklist(checklist: list[ChecklistItem], ids: tuple[str, ...]) -> None:
    """Mark the given checklist items as not completed. Unknown ids are ignored."""
    for item in checklist:
        if item.id in ids:
            item.completed = False

"""Resolve an invoice, its client and the company profile into the exact
lines a document shows.

The screen preview (``InvoiceDocument.to_dict``) and the PDF renderer both
read the same ``InvoiceDocument``, so their content cannot drift apart.
"""

from dataclasses import asdict, dataclass, field
from typing import List, Optional, Tuple

import billing
from models import DOCUMENT_TYPE_LABELS, STATUS_LABELS, Client, CompanyProfile, Invoice

UNKNOWN_CLIENT = "Client inconnu"

COLUMNS = ["Description", "Qté", "Prix Unit.", "TVA", "Total"]
COLUMN_ALIGNMENT = ["LEFT", "CENTER", "RIGHT", "CENTER", "RIGHT"]


@dataclass(frozen=True)
class PartyBlock:
    heading: Optional[str]
    lines: List[str]
    custom_fields: List[Tuple[str, str]] = field(default_factory=list)
    known: bool = True

    def field_lines(self) -> List[str]:
        return [f"{label}: {value}" for label, value in self.custom_fields]


@dataclass(frozen=True)
class InvoiceDocument:
    title: str
    document_number: str
    status: str
    created_date: str
    due_date: str
    issuer: PartyBlock
    recipient: PartyBlock
    columns: List[str]
    rows: List[List[str]]
    totals: List[Tuple[str, str]]
    terms: Optional[str] = None
    notes: Optional[str] = None
    bank_lines: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["column_alignment"] = list(COLUMN_ALIGNMENT)
        return data


def _city_line(postal_code, city) -> str:
    return f"{postal_code or ''} {city or ''}".strip()


def issuer_block(company: CompanyProfile) -> PartyBlock:
    # Owner name comes before the legal name
    lines = [company.owner_name, company.name, company.address,
             _city_line(company.postal_code, company.city)]
    if company.phone:
        lines.append(f"Tél: {company.phone}")
    lines += [company.email, company.website]
    return PartyBlock(
        heading=None,
        lines=[line for line in lines if line],
        custom_fields=billing.resolve_custom_fields(company.custom_fields),
    )


def recipient_block(client: Optional[Client]) -> PartyBlock:
    if client is None:
        return PartyBlock(heading="FACTURÉ À:", lines=[UNKNOWN_CLIENT], known=False)
    lines = [client.name, client.address, _city_line(client.postal_code, client.city)]
    if client.phone:
        lines.append(f"Tél: {client.phone}")
    return PartyBlock(
        heading="FACTURÉ À:",
        lines=[line for line in lines if line],
        custom_fields=billing.resolve_custom_fields(client.custom_fields),
    )


def build_document(invoice: Invoice, client: Optional[Client], company: CompanyProfile,
                   currency: str = "DA") -> InvoiceDocument:
    """Snapshot everything needed to print ``invoice``.

    ``client`` is None when the invoice references a deleted client; the
    recipient block then carries the unknown-client placeholder.
    """
    def money(value):
        return billing.format_amount(value, currency)

    rows = [
        [
            item.description,
            billing.format_quantity(item.quantity),
            money(item.unit_price),
            billing.format_rate(item.tax_rate),
            money(item.line_total),
        ]
        for item in invoice.items
    ]

    bank_lines = []
    if company.bank_name:
        bank_lines.append(f"Banque: {company.bank_name}")
    if company.bank_account:
        bank_lines.append(f"RIB: {company.bank_account}")

    return InvoiceDocument(
        title=DOCUMENT_TYPE_LABELS[invoice.document_type],
        document_number=invoice.document_number,
        status=STATUS_LABELS[invoice.status],
        created_date=billing.format_date(invoice.created_date, long_month=True),
        due_date=billing.format_date(invoice.due_date, long_month=True),
        issuer=issuer_block(company),
        recipient=recipient_block(client),
        columns=list(COLUMNS),
        rows=rows,
        totals=[
            ("Sous-total", money(invoice.subtotal)),
            ("TVA", money(invoice.total_tax)),
            ("TOTAL", money(invoice.grand_total)),
        ],
        terms=invoice.terms or None,
        notes=invoice.notes or None,
        bank_lines=bank_lines,
    )

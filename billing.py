"""Numbering, totals and custom-field resolution.

Everything here is a pure function of its arguments; the ledger calls into
it and the renderer formats with it.
"""

import datetime
from collections import namedtuple
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Tuple

from models import CustomField, DocumentType, Invoice, InvoiceItem

PREFIXES = {
    DocumentType.INVOICE: "FAC",
    DocumentType.PROFORMA: "PRO",
    DocumentType.QUOTE: "DEV",
    DocumentType.CREDIT_NOTE: "AVO",
}

MONTHS_SHORT = [
    "janv.", "févr.", "mars", "avr.", "mai", "juin",
    "juil.", "août", "sept.", "oct.", "nov.", "déc.",
]

MONTHS_LONG = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]

GROUP_SEPARATOR = " "
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Totals = namedtuple("Totals", ["subtotal", "total_tax", "grand_total"])


def next_document_number(document_type, invoices: Iterable[Invoice],
                         today: Optional[datetime.date] = None) -> str:
    """Next number for a document type, e.g. ``FAC-2026-0004``.

    The sequence is the count of existing documents of that type plus one,
    so deleting a document makes the next number reuse an existing one.
    Only the current year is used; existing numbers are never parsed.
    """
    document_type = DocumentType(document_type)
    year = (today or datetime.date.today()).year
    count = sum(1 for inv in invoices if inv.document_type == document_type)
    return f"{PREFIXES[document_type]}-{year}-{count + 1:04d}"


def compute_line_total(quantity, unit_price, tax_rate) -> Decimal:
    base = Decimal(quantity) * Decimal(unit_price)
    return base + base * (Decimal(tax_rate) / HUNDRED)


def recompute_item(item: InvoiceItem) -> InvoiceItem:
    line_total = compute_line_total(item.quantity, item.unit_price, item.tax_rate)
    return item.model_copy(update={"line_total": line_total})


def compute_totals(items: Iterable[InvoiceItem]) -> Totals:
    subtotal = Decimal("0")
    total_tax = Decimal("0")
    for item in items:
        base = item.quantity * item.unit_price
        subtotal += base
        total_tax += base * (item.tax_rate / HUNDRED)
    return Totals(subtotal, total_tax, subtotal + total_tax)


def resolve_custom_fields(fields: Optional[Iterable[CustomField]]) -> List[Tuple[str, str]]:
    """Visible, non-empty fields as ``(label, value)``, ascending by order.

    ``sorted`` is stable, so equal orders keep their insertion order.
    """
    visible = [f for f in (fields or []) if f.show_in_pdf and f.value]
    return [(f.label, f.value) for f in sorted(visible, key=lambda f: f.order)]


def _group_thousands(digits: str) -> str:
    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return GROUP_SEPARATOR.join(groups)


def format_number(value, places: int = 2) -> str:
    """French grouping: ``1234.5`` -> ``1 234,50``."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    text = f"{abs(rounded):f}"
    whole, _, fraction = text.partition(".")
    result = sign + _group_thousands(whole)
    if places:
        result += "," + fraction
    return result


def format_amount(value, currency: str = "DA") -> str:
    return f"{format_number(value)} {currency}"


def format_quantity(value) -> str:
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value.normalize():f}".replace(".", ",")


def format_rate(value) -> str:
    return f"{format_quantity(value)}%"


def format_date(value: datetime.date, long_month: bool = False) -> str:
    """``19 oct. 2026`` for lists, ``19 octobre 2026`` on documents."""
    months = MONTHS_LONG if long_month else MONTHS_SHORT
    return f"{value.day:02d} {months[value.month - 1]} {value.year}"

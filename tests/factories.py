"""Builders for domain objects used across the test modules."""

from datetime import date
from decimal import Decimal

from models import Invoice, InvoiceItem

TODAY = date(2026, 10, 19)


def make_item(description="Consulting", quantity="3", unit_price="100", tax_rate="19", **kwargs):
    return InvoiceItem(
        description=description,
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        tax_rate=Decimal(tax_rate),
        **kwargs,
    )


def make_invoice(document_type="invoice", number="FAC-2026-0001", **kwargs):
    """Stored invoice for tests that don't go through the ledger."""
    return Invoice(
        document_number=number,
        document_type=document_type,
        created_date=kwargs.pop("created_date", TODAY),
        due_date=kwargs.pop("due_date", TODAY),
        items=kwargs.pop("items", [make_item()]),
        **kwargs,
    )

"""Tests for numbering, totals, custom-field resolution and formatting."""

from datetime import date
from decimal import Decimal

import pytest

import billing
from models import CustomField, DocumentType
from tests.factories import make_invoice, make_item


# ---------------------------------------------------------------------------
# next_document_number
# ---------------------------------------------------------------------------

def test_first_number_of_the_year():
    assert billing.next_document_number("invoice", [], today=date(2026, 1, 2)) == "FAC-2026-0001"


def test_number_counts_existing_documents_of_same_type():
    invoices = [make_invoice(number=f"FAC-2026-000{n}") for n in (1, 2, 3)]
    assert billing.next_document_number("invoice", invoices, today=date(2026, 5, 1)) == "FAC-2026-0004"


def test_number_ignores_other_types():
    invoices = [make_invoice(number="FAC-2026-0001"), make_invoice("quote", number="DEV-2026-0001")]
    assert billing.next_document_number(DocumentType.QUOTE, invoices, today=date(2026, 5, 1)) == "DEV-2026-0002"
    assert billing.next_document_number("proforma", invoices, today=date(2026, 5, 1)) == "PRO-2026-0001"
    assert billing.next_document_number("credit-note", invoices, today=date(2026, 5, 1)) == "AVO-2026-0001"


def test_number_reuses_count_after_deletion():
    """Count-based numbering collides with a surviving number after a delete."""
    invoices = [make_invoice(number=f"FAC-2026-000{n}") for n in (1, 2, 3)]
    del invoices[1]
    number = billing.next_document_number("invoice", invoices, today=date(2026, 5, 1))
    assert number == "FAC-2026-0003"
    assert number in [inv.document_number for inv in invoices]


def test_number_uses_wall_clock_year_only():
    invoices = [make_invoice(number="FAC-2025-0001", created_date=date(2025, 12, 30))]
    assert billing.next_document_number("invoice", invoices, today=date(2026, 1, 1)) == "FAC-2026-0002"


def test_prefixes_are_distinct_per_type():
    assert len(set(billing.PREFIXES.values())) == len(DocumentType)


def test_unknown_type_is_rejected():
    with pytest.raises(ValueError):
        billing.next_document_number("receipt", [])


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def test_line_total_includes_tax():
    assert billing.compute_line_total(Decimal("3"), Decimal("100"), Decimal("19")) == Decimal("357.00")


def test_recompute_item_overwrites_stale_line_total():
    item = make_item(line_total=Decimal("1"))
    assert billing.recompute_item(item).line_total == Decimal("357")
    assert item.line_total == Decimal("1")


def test_invoice_totals():
    items = [make_item(), make_item(quantity="1", unit_price="50", tax_rate="0")]
    totals = billing.compute_totals(items)
    assert totals.subtotal == Decimal("350")
    assert totals.total_tax == Decimal("57")
    assert totals.grand_total == Decimal("407")


def test_totals_are_idempotent():
    items = [make_item(quantity="2.5", unit_price="19.99", tax_rate="9"), make_item()]
    assert billing.compute_totals(items) == billing.compute_totals(items)


def test_totals_keep_full_precision():
    totals = billing.compute_totals([make_item(quantity="1", unit_price="0.333", tax_rate="19")])
    assert totals.total_tax == Decimal("0.06327")


def test_totals_of_no_items_are_zero():
    assert billing.compute_totals([]) == (0, 0, 0)


# ---------------------------------------------------------------------------
# resolve_custom_fields
# ---------------------------------------------------------------------------

def test_resolution_filters_hidden_and_empty_fields():
    fields = [
        CustomField(label="A", order=2, show_in_pdf=True, value="X"),
        CustomField(label="B", order=1, show_in_pdf=False, value="Y"),
        CustomField(label="C", order=3, show_in_pdf=True, value=""),
    ]
    assert billing.resolve_custom_fields(fields) == [("A", "X")]


def test_resolution_sorts_by_order_with_stable_ties():
    fields = [
        CustomField(label="third", order=5, value="3"),
        CustomField(label="first", order=1, value="1"),
        CustomField(label="tie-a", order=2, value="a"),
        CustomField(label="tie-b", order=2, value="b"),
    ]
    labels = [label for label, _ in billing.resolve_custom_fields(fields)]
    assert labels == ["first", "tie-a", "tie-b", "third"]


def test_resolution_of_missing_fields():
    assert billing.resolve_custom_fields(None) == []


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("value,expected", [
    (Decimal("0"), "0,00 DA"),
    (Decimal("357"), "357,00 DA"),
    (Decimal("1234.5"), "1 234,50 DA"),
    (Decimal("1234567.891"), "1 234 567,89 DA"),
    (Decimal("0.005"), "0,01 DA"),
])
def test_format_amount(value, expected):
    assert billing.format_amount(value) == expected


def test_format_amount_custom_currency():
    assert billing.format_amount(Decimal("10"), "EUR") == "10,00 EUR"


def test_format_quantity_and_rate():
    assert billing.format_quantity(Decimal("3")) == "3"
    assert billing.format_quantity(Decimal("2.50")) == "2,5"
    assert billing.format_rate(Decimal("19")) == "19%"
    assert billing.format_rate(Decimal("9.5")) == "9,5%"


def test_format_date():
    assert billing.format_date(date(2026, 10, 19)) == "19 oct. 2026"
    assert billing.format_date(date(2026, 2, 3)) == "03 févr. 2026"


def test_format_date_with_long_month():
    assert billing.format_date(date(2026, 10, 19), long_month=True) == "19 octobre 2026"
    assert billing.format_date(date(2026, 8, 1), long_month=True) == "01 août 2026"

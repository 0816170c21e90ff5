"""Tests for the reportlab renderer."""

import io
import logging
from types import SimpleNamespace

import pytest
from reportlab.platypus import Paragraph, Table

from document import UNKNOWN_CLIENT, build_document
from pdf_builder import InvoicePDF
from tests.factories import make_item


def paragraph_texts(story):
    """Plain text of every Paragraph, including those nested in tables."""
    texts = []

    def walk(flowable):
        if isinstance(flowable, Paragraph):
            texts.append(flowable.getPlainText())
        elif isinstance(flowable, Table):
            for row in flowable._cellvalues:
                for cell in row:
                    for inner in (cell if isinstance(cell, list) else [cell]):
                        walk(inner)

    for flowable in story:
        walk(flowable)
    return texts


@pytest.fixture
def document(ledger, draft, acme, company):
    invoice = ledger.create_invoice(draft.model_copy(update={"terms": "Paiement à réception"}))
    return build_document(invoice, acme, company)


def test_generate_writes_pdf(document):
    buffer = io.BytesIO()
    InvoicePDF(document).generate(buffer)
    assert buffer.getvalue().startswith(b"%PDF")


def test_generate_to_file(document, tmp_path):
    target = tmp_path / "FAC-2026-0001.pdf"
    InvoicePDF(document).generate(str(target))
    assert target.read_bytes().startswith(b"%PDF")


def test_story_carries_document_content(document):
    texts = paragraph_texts(InvoicePDF(document).build_story())

    assert "FACTURE" in texts
    assert "N° FAC-2026-0001" in texts
    assert "Karim Benali" in texts
    assert "NIF: 001916007654321" in texts
    assert "FACTURÉ À:" in texts
    assert "Acme SARL" in texts
    assert "357,00 DA" in texts
    assert "407,00 DA" in texts
    assert "Conditions: Paiement à réception" in texts
    assert "RIB: 00100123000012345678" in texts


def test_story_shows_unknown_client(ledger, draft, acme, company):
    invoice = ledger.create_invoice(draft)
    ledger.delete_client(acme.id)
    doc = build_document(invoice, ledger.client_for(invoice), company)

    texts = paragraph_texts(InvoicePDF(doc).build_story())
    assert UNKNOWN_CLIENT in texts
    assert "Acme SARL" not in texts


def test_markup_characters_are_escaped(ledger, draft, acme, company):
    invoice = ledger.create_invoice(draft.model_copy(update={"items": [make_item("Câble <RJ45> & connecteurs")]}))
    doc = build_document(invoice, acme, company)
    texts = paragraph_texts(InvoicePDF(doc).build_story())
    assert "Câble <RJ45> & connecteurs" in texts


def test_long_invoice_spans_pages(ledger, draft, acme, company):
    items = [make_item(f"Ligne {n}") for n in range(120)]
    invoice = ledger.create_invoice(draft.model_copy(update={"items": items}))
    pages = InvoicePDF(build_document(invoice, acme, company)).generate(io.BytesIO())
    assert pages > 1


def test_missing_font_falls_back_to_helvetica(document, caplog):
    settings = SimpleNamespace(pdf_font_path="/nonexistent/font.ttf", pdf_bold_font_path=None)
    with caplog.at_level(logging.WARNING):
        pdf = InvoicePDF(document, settings)
    assert pdf.font_name == "Helvetica"
    assert pdf.bold_font_name == "Helvetica-Bold"
    assert "Font file not found" in caplog.text

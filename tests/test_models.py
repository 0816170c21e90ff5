"""Tests for the domain models' wire format."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from models import Client, CompanyProfile, Invoice, InvoiceItem
from tests.factories import make_invoice


def test_legacy_client_identifiers_become_custom_fields():
    client = Client.model_validate({"id": "c1", "name": "Acme", "nif": "123", "rc": "RC-9"})
    fields = [(f.label, f.value, f.order, f.show_in_pdf) for f in client.custom_fields]
    assert fields == [("NIF", "123", 1, True), ("NIS", "", 2, True), ("RC", "RC-9", 3, True)]


def test_explicit_custom_fields_win_over_legacy_keys():
    client = Client.model_validate({"id": "c1", "nif": "123", "custom_fields": []})
    assert client.custom_fields == []


def test_amounts_serialize_as_exact_strings():
    invoice = make_invoice(subtotal=Decimal("0.1"), total_tax=Decimal("0.019"), grand_total=Decimal("0.119"))
    data = invoice.model_dump(mode="json")
    assert data["grand_total"] == "0.119"
    assert data["created_date"] == "2026-10-19"
    assert Invoice.model_validate(data) == invoice


@pytest.mark.parametrize("field,value", [("quantity", "0"), ("unit_price", "-1"), ("tax_rate", "-5")])
def test_item_bounds(field, value):
    with pytest.raises(ValidationError):
        InvoiceItem(**{field: Decimal(value)})


def test_unknown_document_type_rejected():
    with pytest.raises(ValidationError):
        make_invoice(document_type="receipt")


def test_legacy_company_identifiers_become_custom_fields():
    profile = CompanyProfile.model_validate({"name": "Benali Conseil", "nif": "0001", "nis": "0002"})
    assert [(f.label, f.value) for f in profile.custom_fields] == [("NIF", "0001"), ("NIS", "0002"), ("RC", "")]


def test_company_without_legacy_keys_has_no_custom_fields():
    assert CompanyProfile(name="Benali Conseil").custom_fields == []

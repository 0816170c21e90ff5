"""Pytest configuration and shared fixtures"""

import pytest

from app import create_app
from config import Settings
from db_manager import MemoryStore
from ledger import Ledger
from models import Client, CompanyProfile, CustomField, InvoiceDraft
from tests.factories import TODAY, make_item


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def ledger(store) -> Ledger:
    return Ledger(store, default_due_days=14, today=lambda: TODAY)


@pytest.fixture
def acme(ledger) -> Client:
    """A stored client with one visible tax id."""
    return ledger.add_client(Client(
        name="Acme SARL",
        email="contact@acme.dz",
        address="12 rue Didouche Mourad",
        city="Alger",
        postal_code="16000",
        phone="021 00 00 00",
        custom_fields=[
            CustomField(id="nif", label="NIF", value="000016001234567", order=1),
            CustomField(id="nis", label="NIS", value="", order=2),
            CustomField(id="rc", label="RC", value="16/00-1234567B21", show_in_pdf=False, order=3),
        ],
    ))


@pytest.fixture
def draft(acme) -> InvoiceDraft:
    return InvoiceDraft(
        client_id=acme.id,
        items=[make_item(), make_item("Hosting", quantity="1", unit_price="50", tax_rate="0")],
    )


@pytest.fixture
def company() -> CompanyProfile:
    return CompanyProfile(
        owner_name="Karim Benali",
        name="Benali Conseil EURL",
        address="5 boulevard Zighout Youcef",
        city="Alger",
        postal_code="16001",
        phone="023 11 22 33",
        email="karim@benali.dz",
        bank_name="BNA",
        bank_account="00100123000012345678",
        custom_fields=[
            CustomField(label="RC", value="16/00-7654321B19", order=2),
            CustomField(label="NIF", value="001916007654321", order=1),
            CustomField(label="Capital", value="", order=3),
        ],
    )


@pytest.fixture
def app():
    settings = Settings(environment="testing", database_path=":memory:", log_level="WARNING")
    return create_app(settings)


@pytest.fixture
def http(app):
    return app.test_client()

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from flask_sqlalchemy import SQLAlchemy
from pydantic import BaseModel, ConfigDict, Field, model_validator

db = SQLAlchemy()


class StoreEntry(db.Model):
    """One persisted collection, serialized whole as JSON."""
    __tablename__ = 'store_entries'
    key = db.Column(db.String, primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def new_id() -> str:
    return uuid4().hex


class DocumentType(str, Enum):
    INVOICE = "invoice"
    PROFORMA = "proforma"
    QUOTE = "quote"
    CREDIT_NOTE = "credit-note"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


DOCUMENT_TYPE_LABELS = {
    DocumentType.INVOICE: "Facture",
    DocumentType.PROFORMA: "Facture Proforma",
    DocumentType.QUOTE: "Devis",
    DocumentType.CREDIT_NOTE: "Avoir",
}

STATUS_LABELS = {
    InvoiceStatus.DRAFT: "Brouillon",
    InvoiceStatus.SENT: "Envoyée",
    InvoiceStatus.PAID: "Payée",
    InvoiceStatus.CANCELLED: "Annulée",
    InvoiceStatus.OVERDUE: "En retard",
}

DEFAULT_UNITS = ["Unité", "Heure", "Jour", "Kg", "Mètre", "Forfait"]


class CustomField(BaseModel):
    """A label/value pair printed under an address block (tax IDs etc.)."""
    id: str = Field(default_factory=new_id)
    label: str = ""
    value: str = ""
    show_in_pdf: bool = True
    order: int = 0


def default_client_fields() -> List[CustomField]:
    return [
        CustomField(id="nif", label="NIF", order=1),
        CustomField(id="nis", label="NIS", order=2),
        CustomField(id="rc", label="RC", order=3),
    ]


def upgrade_legacy_identifiers(data):
    """Older records kept NIF/NIS/RC as flat keys; turn them into custom fields."""
    if isinstance(data, dict) and "custom_fields" not in data:
        if any(key in data for key in ("nif", "nis", "rc")):
            data = dict(data)
            data["custom_fields"] = [
                {"id": key, "label": key.upper(), "value": data.get(key) or "",
                 "show_in_pdf": True, "order": order}
                for order, key in enumerate(("nif", "nis", "rc"), start=1)
            ]
    return data


class Client(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    custom_fields: List[CustomField] = Field(default_factory=default_client_fields)

    @model_validator(mode="before")
    @classmethod
    def upgrade_legacy_identifiers(cls, data):
        return upgrade_legacy_identifiers(data)


class CompanyProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    owner_name: str = ""
    name: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    phone: str = ""
    email: str = ""
    website: Optional[str] = None
    logo: Optional[str] = None  # data URL
    share_capital: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None  # RIB
    custom_fields: List[CustomField] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def upgrade_legacy_identifiers(cls, data):
        return upgrade_legacy_identifiers(data)


class InvoiceItem(BaseModel):
    id: str = Field(default_factory=new_id)
    description: str = ""
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    unit_label: str = "Unité"
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    tax_rate: Decimal = Field(default=Decimal("19"), ge=0)
    line_total: Decimal = Decimal("0")


class Invoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    document_number: str
    document_type: DocumentType = DocumentType.INVOICE
    status: InvoiceStatus = InvoiceStatus.DRAFT
    client_id: Optional[str] = None
    created_date: date
    due_date: date
    items: List[InvoiceItem] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")
    notes: Optional[str] = None
    terms: Optional[str] = None


class InvoiceDraft(BaseModel):
    """What the invoice form submits, before numbering and totals."""
    model_config = ConfigDict(extra="ignore")

    document_type: DocumentType = DocumentType.INVOICE
    status: Optional[InvoiceStatus] = None
    client_id: Optional[str] = None
    created_date: Optional[date] = None
    due_date: Optional[date] = None
    items: List[InvoiceItem] = Field(default_factory=list)
    notes: Optional[str] = None
    terms: Optional[str] = None

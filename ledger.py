"""The ledger: one owned object holding invoices, clients, the company
profile and the unit vocabulary.

Views never write fields directly. They call the mutation methods below,
each of which validates, applies the change, re-serializes the whole
affected collection to the store and then notifies subscribers.
"""

import datetime
import functools
import logging
import threading
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

import billing
from errors import ErrorCode, NotFoundError, ValidationError
from models import (
    DEFAULT_UNITS,
    Client,
    CompanyProfile,
    DocumentType,
    Invoice,
    InvoiceDraft,
    InvoiceStatus,
)

logger = logging.getLogger(__name__)

INVOICES_KEY = "invoices"
CLIENTS_KEY = "clients"
COMPANY_KEY = "company"
UNITS_KEY = "units"

_invoice_list = TypeAdapter(List[Invoice])
_client_list = TypeAdapter(List[Client])
_unit_list = TypeAdapter(List[str])


def serialized(method):
    """Run a mutation under the ledger lock, from validation to notification."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


def validate_draft(draft: InvoiceDraft) -> None:
    """Reject the whole submission if anything is missing."""
    errors = []
    if not draft.client_id:
        errors.append("No client selected")
    if not draft.items:
        errors.append("At least one item is required")
    for position, item in enumerate(draft.items, start=1):
        if not item.description.strip():
            errors.append(f"Item {position}: description is required")
        if item.unit_price <= 0:
            errors.append(f"Item {position}: unit price must be greater than zero")
    if errors:
        code = ErrorCode.MISSING_FIELD if not draft.client_id else ErrorCode.INVALID_ITEM
        raise ValidationError("Invoice cannot be saved", errors, code=code)


def validate_company(profile: CompanyProfile) -> None:
    errors = []
    if not (profile.name.strip() or profile.owner_name.strip()):
        errors.append("Company or owner name is required")
    if not profile.email.strip():
        errors.append("Email is required")
    if errors:
        raise ValidationError("Company profile cannot be saved", errors)


class Ledger:
    def __init__(self, store, default_due_days: int = 14,
                 today: Callable[[], datetime.date] = datetime.date.today):
        self._store = store
        self._default_due_days = default_due_days
        self._today = today
        self._subscribers: List[Callable] = []
        self._lock = threading.RLock()

        self.invoices: List[Invoice] = self._load(INVOICES_KEY, _invoice_list.validate_python, list)
        self.clients: List[Client] = self._load(CLIENTS_KEY, _client_list.validate_python, list)
        self.company: CompanyProfile = self._load(COMPANY_KEY, CompanyProfile.model_validate, CompanyProfile)
        self.units: List[str] = self._load(UNITS_KEY, _unit_list.validate_python, lambda: list(DEFAULT_UNITS))
        logger.info(
            "Ledger loaded: %d invoices, %d clients",
            len(self.invoices), len(self.clients),
        )

    # ------------------------------------------------------------------
    # Persistence and notification
    # ------------------------------------------------------------------
    def _load(self, key, parse, default):
        raw = self._store.load(key)
        if raw is None:
            return default()
        try:
            return parse(raw)
        except (SchemaError, TypeError, ValueError) as e:
            logger.warning("Stored '%s' is unreadable, starting empty: %s", key, e)
            return default()

    def _persist(self, *keys):
        for key in keys:
            self._store.save(key, self._serialize(key))

    def _serialize(self, key):
        if key == INVOICES_KEY:
            return [inv.model_dump(mode="json") for inv in self.invoices]
        if key == CLIENTS_KEY:
            return [c.model_dump(mode="json") for c in self.clients]
        if key == COMPANY_KEY:
            return self.company.model_dump(mode="json")
        if key == UNITS_KEY:
            return list(self.units)
        raise KeyError(key)

    def _commit(self, event: str, *keys):
        self._persist(*keys)
        logger.info("Committed %s", event)
        for callback in list(self._subscribers):
            callback(event, self)

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Call ``callback(event, ledger)`` after every committed mutation."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------
    def get_client(self, client_id: str) -> Client:
        for client in self.clients:
            if client.id == client_id:
                return client
        raise NotFoundError("Client", client_id)

    def find_client(self, client_id: Optional[str]) -> Optional[Client]:
        return next((c for c in self.clients if c.id == client_id), None)

    @serialized
    def add_client(self, client: Client) -> Client:
        if self.find_client(client.id) is not None:
            raise ValidationError("Client cannot be saved", [f"Client id '{client.id}' already exists"],
                                  code=ErrorCode.INVALID_VALUE)
        self.clients = self.clients + [client]
        self._commit("client_added", CLIENTS_KEY)
        return client

    @serialized
    def update_client(self, client: Client) -> Client:
        self.get_client(client.id)
        self.clients = [client if c.id == client.id else c for c in self.clients]
        self._commit("client_updated", CLIENTS_KEY)
        return client

    @serialized
    def delete_client(self, client_id: str) -> None:
        # Invoices keep their client_id; they render as an unknown client
        self.get_client(client_id)
        self.clients = [c for c in self.clients if c.id != client_id]
        self._commit("client_deleted", CLIENTS_KEY)

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------
    def get_invoice(self, invoice_id: str) -> Invoice:
        for invoice in self.invoices:
            if invoice.id == invoice_id:
                return invoice
        raise NotFoundError("Invoice", invoice_id)

    def client_for(self, invoice: Invoice) -> Optional[Client]:
        return self.find_client(invoice.client_id)

    def next_document_number(self, document_type) -> str:
        return billing.next_document_number(document_type, self.invoices, today=self._today())

    def _priced(self, items) -> dict:
        items = [billing.recompute_item(item) for item in items]
        totals = billing.compute_totals(items)
        return {
            "items": items,
            "subtotal": totals.subtotal,
            "total_tax": totals.total_tax,
            "grand_total": totals.grand_total,
        }

    @serialized
    def create_invoice(self, draft: InvoiceDraft) -> Invoice:
        validate_draft(draft)
        created = draft.created_date or self._today()
        invoice = Invoice(
            document_number=self.next_document_number(draft.document_type),
            document_type=draft.document_type,
            status=draft.status or InvoiceStatus.DRAFT,
            client_id=draft.client_id,
            created_date=created,
            due_date=draft.due_date or created + datetime.timedelta(days=self._default_due_days),
            notes=draft.notes,
            terms=draft.terms,
            **self._priced(draft.items),
        )
        self.invoices = self.invoices + [invoice]
        self._commit("invoice_created", INVOICES_KEY)
        return invoice

    @serialized
    def update_invoice(self, invoice_id: str, draft: InvoiceDraft) -> Invoice:
        existing = self.get_invoice(invoice_id)
        validate_draft(draft)
        updated = Invoice.model_validate({
            **existing.model_dump(),
            "document_type": draft.document_type,
            "client_id": draft.client_id,
            "due_date": draft.due_date or existing.due_date,
            "notes": draft.notes,
            "terms": draft.terms,
            **self._priced(draft.items),
        })
        self.invoices = [updated if inv.id == invoice_id else inv for inv in self.invoices]
        self._commit("invoice_updated", INVOICES_KEY)
        return updated

    @serialized
    def set_status(self, invoice_id: str, status) -> Invoice:
        # Any status may follow any other
        try:
            status = InvoiceStatus(status)
        except ValueError:
            raise ValidationError("Unknown status", [str(status)], code=ErrorCode.INVALID_VALUE)
        updated = self.get_invoice(invoice_id).model_copy(update={"status": status})
        self.invoices = [updated if inv.id == invoice_id else inv for inv in self.invoices]
        self._commit("invoice_status_changed", INVOICES_KEY)
        return updated

    @serialized
    def delete_invoice(self, invoice_id: str) -> None:
        self.get_invoice(invoice_id)
        self.invoices = [inv for inv in self.invoices if inv.id != invoice_id]
        self._commit("invoice_deleted", INVOICES_KEY)

    def filter_invoices(self, document_type=None, status=None, query: str = "") -> List[Invoice]:
        """Invoices matching type, status and a number/client-name search, newest first."""
        document_type = DocumentType(document_type) if document_type else None
        status = InvoiceStatus(status) if status else None
        needle = (query or "").strip().lower()

        matches = []
        for position, invoice in enumerate(self.invoices):
            if document_type and invoice.document_type != document_type:
                continue
            if status and invoice.status != status:
                continue
            if needle:
                client = self.client_for(invoice)
                client_name = (client.name or "").lower() if client else ""
                if needle not in invoice.document_number.lower() and needle not in client_name:
                    continue
            matches.append((invoice.created_date, position, invoice))
        matches.sort(key=lambda m: (m[0], m[1]), reverse=True)
        return [m[2] for m in matches]

    def dashboard(self, recent: int = 5) -> Dict:
        return {
            "invoice_count": sum(1 for i in self.invoices if i.document_type == DocumentType.INVOICE),
            "client_count": len(self.clients),
            "collected": sum((i.grand_total for i in self.invoices if i.status == InvoiceStatus.PAID),
                             start=Decimal("0")),
            "pending": sum((i.grand_total for i in self.invoices if i.status == InvoiceStatus.SENT),
                           start=Decimal("0")),
            "recent": self.filter_invoices()[:recent],
        }

    # ------------------------------------------------------------------
    # Company profile and units
    # ------------------------------------------------------------------
    @serialized
    def update_company(self, profile: CompanyProfile) -> CompanyProfile:
        validate_company(profile)
        self.company = profile
        self._commit("company_updated", COMPANY_KEY)
        return profile

    @serialized
    def add_unit(self, label: str) -> List[str]:
        label = (label or "").strip()
        if not label:
            raise ValidationError("Unit cannot be saved", ["Unit label is required"])
        if label in self.units:
            return self.units
        self.units = self.units + [label]
        self._commit("unit_added", UNITS_KEY)
        return self.units

    # ------------------------------------------------------------------
    # Whole-state export / import
    # ------------------------------------------------------------------
    def export_data(self) -> Dict:
        return {key: self._serialize(key) for key in (INVOICES_KEY, CLIENTS_KEY, COMPANY_KEY, UNITS_KEY)}

    @serialized
    def replace_all(self, data: Dict) -> None:
        """Replace every collection from an export; all or nothing."""
        if not isinstance(data, dict):
            raise ValidationError("Import must be a JSON object", code=ErrorCode.INVALID_IMPORT)
        try:
            invoices = _invoice_list.validate_python(data.get(INVOICES_KEY, []))
            clients = _client_list.validate_python(data.get(CLIENTS_KEY, []))
            company = CompanyProfile.model_validate(data.get(COMPANY_KEY) or {})
            units = _unit_list.validate_python(data.get(UNITS_KEY) or DEFAULT_UNITS)
        except SchemaError as e:
            details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ValidationError("Import file is invalid", details, code=ErrorCode.INVALID_IMPORT)

        client_ids = [c.id for c in clients]
        if len(set(client_ids)) != len(client_ids):
            raise ValidationError("Import file is invalid", ["Duplicate client ids"],
                                  code=ErrorCode.INVALID_IMPORT)

        empty = [f"Invoice {inv.document_number or inv.id}: at least one item is required"
                 for inv in invoices if not inv.items]
        if empty:
            raise ValidationError("Import file is invalid", empty, code=ErrorCode.INVALID_IMPORT)
        # Stored totals are never trusted
        invoices = [inv.model_copy(update=self._priced(inv.items)) for inv in invoices]

        self.invoices,self.clients, self.company, self.units = invoices, clients, company, list(units)
        self._commit("data_imported", INVOICES_KEY, CLIENTS_KEY, COMPANY_KEY, UNITS_KEY)

import datetime
import io
import json
import logging
import os
import sys
import webbrowser
from threading import Timer

from flask import Blueprint, Flask, current_app, jsonify, request, send_file
from flask_cors import CORS
from flask_migrate import Migrate
from pydantic import ValidationError as SchemaError

import db_manager
from config import Settings
from document import build_document
from errors import ErrorCode, LedgerError, ValidationError
from ledger import Ledger
from logging_config import setup_logging
from models import Client, CompanyProfile, DocumentType, InvoiceDraft, InvoiceStatus, db
from pdf_builder import InvoicePDF

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def get_ledger() -> Ledger:
    return current_app.extensions['ledger']


def get_settings() -> Settings:
    return current_app.extensions['invoice_settings']


def parse(model, data):
    try:
        return model.model_validate(data)
    except SchemaError as e:
        details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError("Invalid input", details, code=ErrorCode.INVALID_VALUE)


def parse_choice(enum, value):
    if not value or value == 'all':
        return None
    try:
        return enum(value)
    except ValueError:
        raise ValidationError(f"Unknown {enum.__name__}", [value], code=ErrorCode.INVALID_VALUE)


def parse_draft(data) -> InvoiceDraft:
    settings = get_settings()
    # Items omitted fields fall back to the configured unit and tax rate
    items = [
        {'unit_label': settings.default_unit, 'tax_rate': str(settings.default_tax_rate), **(item or {})}
        for item in data.get('items') or []
    ]
    return parse(InvoiceDraft, {**data, 'items': items})


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object", code=ErrorCode.INVALID_VALUE)
    return data


def invoice_summary(invoice):
    client = get_ledger().client_for(invoice)
    data = invoice.model_dump(mode='json', exclude={'items'})
    data['client_name'] = (client.name or '') if client else None
    return data


def resolved_document(invoice_id):
    ledger = get_ledger()
    invoice = ledger.get_invoice(invoice_id)
    return build_document(invoice, ledger.client_for(invoice), ledger.company,
                          currency=get_settings().currency_suffix)


# ----------------------------------------------------------------------
# Dashboard and invoices
# ----------------------------------------------------------------------
@api.route('/api/dashboard')
def dashboard():
    stats = get_ledger().dashboard()
    return jsonify({
        'invoice_count': stats['invoice_count'],
        'client_count': stats['client_count'],
        'collected': str(stats['collected']),
        'pending': str(stats['pending']),
        'recent': [invoice_summary(inv) for inv in stats['recent']],
    })


@api.route('/api/invoices', methods=['GET'])
def list_invoices():
    invoices = get_ledger().filter_invoices(
        document_type=parse_choice(DocumentType, request.args.get('type')),
        status=parse_choice(InvoiceStatus, request.args.get('status')),
        query=request.args.get('q', ''),
    )
    return jsonify([invoice_summary(inv) for inv in invoices])


@api.route('/api/invoices', methods=['POST'])
def create_invoice():
    invoice = get_ledger().create_invoice(parse_draft(json_body()))
    return jsonify(invoice.model_dump(mode='json')), 201


@api.route('/api/invoices/<invoice_id>', methods=['GET', 'PUT', 'DELETE'])
def manage_invoice(invoice_id):
    ledger = get_ledger()
    if request.method == 'DELETE':
        ledger.delete_invoice(invoice_id)
        return jsonify({"message": "Invoice deleted successfully"})

    if request.method == 'PUT':
        invoice = ledger.update_invoice(invoice_id, parse_draft(json_body()))
        return jsonify(invoice.model_dump(mode='json'))

    invoice = ledger.get_invoice(invoice_id)
    data = invoice.model_dump(mode='json')
    data['client_name'] = invoice_summary(invoice)['client_name']
    return jsonify(data)


@api.route('/api/invoices/<invoice_id>/status', methods=['POST'])
def update_status(invoice_id):
    new_status = json_body().get('status')
    if not new_status:
        raise ValidationError("Status not provided")
    invoice = get_ledger().set_status(invoice_id, new_status)
    return jsonify({"message": f"Status updated to {invoice.status.value}", "status": invoice.status.value})


@api.route('/api/invoices/<invoice_id>/preview')
def preview_invoice(invoice_id):
    return jsonify(resolved_document(invoice_id).to_dict())


@api.route('/api/invoices/<invoice_id>/pdf')
def download_pdf(invoice_id):
    document = resolved_document(invoice_id)
    mem = io.BytesIO()
    InvoicePDF(document, get_settings()).generate(mem)
    mem.seek(0)
    return send_file(
        mem,
        as_attachment=True,
        download_name=f"{document.document_number}.pdf",
        mimetype='application/pdf'
    )


@api.route('/api/next-invoice-number')
def next_invoice_number():
    document_type = parse_choice(DocumentType, request.args.get('type')) or DocumentType.INVOICE
    return jsonify({"document_number": get_ledger().next_document_number(document_type)})


# ----------------------------------------------------------------------
# Clients
# ----------------------------------------------------------------------
@api.route('/api/clients', methods=['GET', 'POST'])
def clients():
    ledger = get_ledger()
    if request.method == 'POST':
        data = json_body()
        data.pop('id', None)
        client = ledger.add_client(parse(Client, data))
        return jsonify(client.model_dump(mode='json')), 201

    return jsonify([c.model_dump(mode='json') for c in ledger.clients])


@api.route('/api/clients/<client_id>', methods=['GET', 'PUT', 'DELETE'])
def manage_client(client_id):
    ledger = get_ledger()
    if request.method == 'DELETE':
        ledger.delete_client(client_id)
        return jsonify({"message": "Client deleted successfully"})

    if request.method == 'PUT':
        merged = {**ledger.get_client(client_id).model_dump(mode='json'), **json_body(), 'id': client_id}
        client = ledger.update_client(parse(Client, merged))
        return jsonify(client.model_dump(mode='json'))

    return jsonify(ledger.get_client(client_id).model_dump(mode='json'))


# ----------------------------------------------------------------------
# Company settings, units, data export/import
# ----------------------------------------------------------------------
@api.route('/api/settings', methods=['GET', 'POST'])
def company_settings():
    ledger = get_ledger()
    if request.method == 'POST':
        merged = {**ledger.company.model_dump(mode='json'), **json_body()}
        profile = ledger.update_company(parse(CompanyProfile, merged))
        return jsonify(profile.model_dump(mode='json'))

    return jsonify(ledger.company.model_dump(mode='json'))


@api.route('/api/units', methods=['GET', 'POST'])
def units():
    ledger = get_ledger()
    if request.method == 'POST':
        return jsonify(ledger.add_unit(json_body().get('label'))), 201
    return jsonify(ledger.units)


@api.route('/api/data/export')
def export_data():
    data = get_ledger().export_data()
    mem = io.BytesIO()
    mem.write(json.dumps(data, indent=4, ensure_ascii=False).encode('utf-8'))
    mem.seek(0)

    filename = f"invoice_data_{datetime.date.today()}.json"
    return send_file(
        mem,
        as_attachment=True,
        download_name=filename,
        mimetype='application/json'
    )


@api.route('/api/data/import', methods=['POST'])
def import_data():
    if 'file' in request.files:
        file = request.files['file']
        if file.filename == '':
            raise ValidationError("No file selected", code=ErrorCode.INVALID_IMPORT)
        try:
            data = json.load(file)
        except ValueError:
            raise ValidationError("Invalid JSON file", code=ErrorCode.INVALID_IMPORT)
    else:
        data = json_body()

    get_ledger().replace_all(data)
    return jsonify({"message": "Data imported successfully"})


# ----------------------------------------------------------------------
# App factory
# ----------------------------------------------------------------------
def handle_ledger_error(e):
    if e.status_code >= 500:
        logger.error("%s: %s", e.code.value, e.message)
    else:
        logger.info("Rejected request: %s %s", e.message, e.details)
    return jsonify(e.to_dict()), e.status_code


def create_app(settings=None, store=None):
    settings = settings or Settings()
    setup_logging(settings)

    app = Flask(__name__)
    if settings.database_path != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(settings.resolve_database_path())), exist_ok=True)
    app.config['SQLALCHEMY_DATABASE_URI'] = settings.database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['TESTING'] = settings.environment == "testing"

    db.init_app(app)
    Migrate(app, db)
    CORS(app)  # the browser shell is served separately
    db_manager.init_db(app)

    with app.app_context():
        ledger = Ledger(store or db_manager.SqlStore(), default_due_days=settings.default_due_days)

    app.extensions['ledger'] = ledger
    app.extensions['invoice_settings'] = settings
    app.extensions['ledger_revision'] = 0

    # Subscribers run under the ledger lock
    def bump_revision(event, _ledger):
        app.extensions['ledger_revision'] += 1
        logger.debug("Ledger revision %d after %s", app.extensions['ledger_revision'], event)

    ledger.subscribe(bump_revision)

    @app.after_request
    def add_revision_header(response):
        # The shell re-fetches its views when the revision moves
        response.headers['X-Ledger-Revision'] = str(app.extensions['ledger_revision'])
        return response

    app.register_error_handler(LedgerError, handle_ledger_error)
    app.register_blueprint(api)
    return app


def open_browser(settings):
    webbrowser.open_new(f"http://{settings.host}:{settings.port}")


if __name__ == '__main__':
    settings = Settings()

    # Check if the port is already in use
    import socket
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((settings.host, settings.port))
    except socket.error:
        # Already running: just open the browser on it
        print("Application is already running. Opening browser...")
        open_browser(settings)
        sys.exit(0)
    finally:
        sock.close()

    app = create_app(settings)

    # Only open the browser automatically for the packaged executable
    if getattr(sys, 'frozen', False):
        Timer(1.5, open_browser, args=(settings,)).start()

    app.run(debug=False, host=settings.host, port=settings.port)

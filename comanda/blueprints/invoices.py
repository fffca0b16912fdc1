"""Invoices blueprint - issued invoices and their printable PDF."""
from flask import Blueprint, jsonify, g, request, send_file

from comanda.database import get_session
from comanda.exceptions import ForbiddenError
from comanda.middleware import require_login, require_manager
from comanda.services import invoice_service
from comanda.services.invoice_pdf_service import render_invoice_pdf

invoices_bp = Blueprint('invoices', __name__, url_prefix='/invoices')


@invoices_bp.route('', methods=['GET'])
@require_login
@require_manager
def list_invoices():
    """Invoices of one day (?date=YYYY-MM-DD, UTC; today by default)."""
    day = invoice_service.parse_day(request.args.get('date'))
    invoices = invoice_service.list_invoices_by_date(get_session(), g.tenant_id, day)
    return jsonify([invoice_service.serialize_invoice(i) for i in invoices])


@invoices_bp.route('/mine', methods=['GET'])
@require_login
def my_invoices():
    """The logged-in waiter's invoices for a day."""
    staff_id = g.principal.staff_id
    if staff_id is None:
        raise ForbiddenError('Solo disponible para el personal')
    day = invoice_service.parse_day(request.args.get('date'))
    invoices = invoice_service.list_staff_invoices(get_session(), g.tenant_id, staff_id, day)
    return jsonify([invoice_service.serialize_invoice(i) for i in invoices])


@invoices_bp.route('/<int:invoice_id>', methods=['GET'])
@require_login
def get_invoice(invoice_id: int):
    invoice = invoice_service.get_invoice(get_session(), g.tenant_id, invoice_id)
    return jsonify(invoice_service.serialize_invoice(invoice))


@invoices_bp.route('/<int:invoice_id>/pdf', methods=['GET'])
@require_login
def invoice_pdf(invoice_id: int):
    invoice = invoice_service.get_invoice(get_session(), g.tenant_id, invoice_id)
    pdf_buffer = render_invoice_pdf(invoice)
    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"factura_{invoice.invoice_number}.pdf"
    )

"""Orders blueprint - items, status changes, checkout and bill splitting."""
from flask import Blueprint, jsonify, g

from comanda.database import get_session
from comanda.middleware import require_login
from comanda.services import order_service, split_service
from comanda.services.invoice_service import serialize_invoice, list_order_invoices
from comanda.utils.request_parsing import json_body, required_int, bool_flag

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


def _order_response(order_id: int, status_code: int = 200):
    order = order_service.get_order(get_session(), g.tenant_id, order_id)
    return jsonify(order_service.serialize_order(order)), status_code


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_login
def get_order(order_id: int):
    return _order_response(order_id)


@orders_bp.route('/<int:order_id>', methods=['DELETE'])
@require_login
def delete_order(order_id: int):
    order_service.delete_order(get_session(), g.tenant_id, order_id)
    return jsonify({'status': 'ok'})


@orders_bp.route('/<int:order_id>/items', methods=['POST'])
@require_login
def add_item(order_id: int):
    data = json_body()
    order_service.add_item(
        get_session(),
        g.tenant_id,
        order_id,
        required_int(data, 'productId', 'El producto'),
        data.get('quantity', 1),
        data.get('options') or [],
        data.get('notes')
    )
    return _order_response(order_id, 201)


@orders_bp.route('/items/<int:item_id>', methods=['PATCH'])
@require_login
def update_item(item_id: int):
    """Quantity 0 or less removes the item."""
    quantity = json_body().get('quantity')
    order = order_service.update_item_quantity(get_session(), g.tenant_id, item_id, quantity)
    return _order_response(order.id)


@orders_bp.route('/items/<int:item_id>', methods=['DELETE'])
@require_login
def delete_item(item_id: int):
    order = order_service.delete_item(get_session(), g.tenant_id, item_id)
    return _order_response(order.id)


@orders_bp.route('/<int:order_id>/status', methods=['POST'])
@require_login
def change_status(order_id: int):
    order_service.transition_status(get_session(), g.tenant_id, order_id, json_body().get('status'))
    return _order_response(order_id)


@orders_bp.route('/<int:order_id>/close', methods=['POST'])
@require_login
def close_order(order_id: int):
    """Checkout. Returns the issued invoice."""
    invoice = order_service.close_order(
        get_session(), g.tenant_id, order_id,
        quick_checkout=bool_flag(json_body(), 'quickCheckout')
    )
    return jsonify(serialize_invoice(invoice)), 201


@orders_bp.route('/<int:order_id>/cancel', methods=['POST'])
@require_login
def cancel_order(order_id: int):
    order_service.cancel_order(get_session(), g.tenant_id, order_id)
    return _order_response(order_id)


@orders_bp.route('/<int:order_id>/invoices', methods=['GET'])
@require_login
def order_invoices(order_id: int):
    invoices = list_order_invoices(get_session(), g.tenant_id, order_id)
    return jsonify([serialize_invoice(i) for i in invoices])


@orders_bp.route('/<int:order_id>/split/preview', methods=['POST'])
@require_login
def preview_split(order_id: int):
    previews = split_service.preview_split(get_session(), g.tenant_id, order_id, json_body().get('splits'))
    return jsonify(previews)


@orders_bp.route('/<int:order_id>/split', methods=['POST'])
@require_login
def commit_split(order_id: int):
    """All-or-nothing split checkout: one invoice per split, then the order closes."""
    data = json_body()
    invoices = split_service.commit_split(
        get_session(), g.tenant_id, order_id, data.get('splits'),
        quick_checkout=bool_flag(data, 'quickCheckout')
    )
    return jsonify([serialize_invoice(i) for i in invoices]), 201

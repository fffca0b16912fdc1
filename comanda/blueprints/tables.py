"""Tables blueprint - floor plan, table status and opening orders."""
from flask import Blueprint, jsonify, g

from comanda.database import get_session
from comanda.middleware import require_login, require_manager
from comanda.services import order_service, table_service
from comanda.utils.request_parsing import json_body

tables_bp = Blueprint('tables', __name__, url_prefix='/tables')


@tables_bp.route('', methods=['GET'])
@require_login
def list_tables():
    return jsonify(table_service.list_tables(get_session(), g.tenant_id))


@tables_bp.route('', methods=['POST'])
@require_login
@require_manager
def create_table():
    table = table_service.create_table(get_session(), g.tenant_id, json_body().get('name'))
    return jsonify(table_service.serialize_table(table)), 201


@tables_bp.route('/<int:table_id>', methods=['DELETE'])
@require_login
@require_manager
def delete_table(table_id: int):
    table_service.delete_table(get_session(), g.tenant_id, table_id)
    return jsonify({'status': 'ok'})


@tables_bp.route('/<int:table_id>/orders', methods=['POST'])
@require_login
def open_order(table_id: int):
    """Seat a table: claims it and opens an order for the caller."""
    session = get_session()
    order = order_service.create_order(session, g.tenant_id, table_id, g.principal.staff_id)
    return jsonify(order_service.serialize_order(order_service.get_order(session, g.tenant_id, order.id))), 201


@tables_bp.route('/<int:table_id>/order', methods=['GET'])
@require_login
def active_order(table_id: int):
    order = order_service.get_active_order_for_table(get_session(), g.tenant_id, table_id)
    return jsonify(order_service.serialize_order(order))


@tables_bp.route('/<int:table_id>/request-bill', methods=['POST'])
@require_login
def request_bill(table_id: int):
    table = table_service.request_bill(get_session(), g.tenant_id, table_id)
    return jsonify(table_service.serialize_table(table))


@tables_bp.route('/<int:table_id>/resume-service', methods=['POST'])
@require_login
def resume_service(table_id: int):
    table = table_service.resume_service(get_session(), g.tenant_id, table_id)
    return jsonify(table_service.serialize_table(table))

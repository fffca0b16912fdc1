"""Kitchen display blueprint - ticket queue."""
from flask import Blueprint, jsonify, g, request

from comanda.database import get_session
from comanda.middleware import require_login
from comanda.services import order_service

kitchen_bp = Blueprint('kitchen', __name__, url_prefix='/kitchen')


@kitchen_bp.route('/orders', methods=['GET'])
@require_login
def queue():
    """Active orders oldest first; filter with ?status=COOKING&status=READY."""
    statuses = request.args.getlist('status')
    orders = order_service.list_kitchen_orders(get_session(), g.tenant_id, statuses or None)
    return jsonify([order_service.serialize_order(o) for o in orders])

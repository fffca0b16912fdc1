"""Settings blueprint - restaurant identity and invoicing rates."""
from flask import Blueprint, jsonify, g

from comanda.database import get_session
from comanda.middleware import require_login, require_manager
from comanda.services import settings_service
from comanda.utils.request_parsing import json_body

settings_bp = Blueprint('settings', __name__, url_prefix='/settings')


@settings_bp.route('', methods=['GET'])
@require_login
def get_settings():
    tenant = settings_service.get_settings(get_session(), g.tenant_id)
    return jsonify(settings_service.serialize_settings(tenant))


@settings_bp.route('', methods=['PUT'])
@require_login
@require_manager
def update_settings():
    tenant = settings_service.update_settings(get_session(), g.tenant_id, json_body())
    return jsonify(settings_service.serialize_settings(tenant))

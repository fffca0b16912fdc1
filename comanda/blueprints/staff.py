"""Staff blueprint - waiters, kitchen staff and their roles."""
from flask import Blueprint, jsonify, request, g

from comanda.database import get_session
from comanda.middleware import require_login, require_manager
from comanda.services import staff_service
from comanda.utils.request_parsing import json_body, bool_flag

staff_bp = Blueprint('staff', __name__)


@staff_bp.route('/staff', methods=['GET'])
@require_login
@require_manager
def list_staff():
    include_inactive = bool_flag(request.args, 'include_inactive')
    staff = staff_service.list_staff(get_session(), g.tenant_id, include_inactive)
    return jsonify([staff_service.serialize_staff(s) for s in staff])


@staff_bp.route('/staff', methods=['POST'])
@require_login
@require_manager
def create_staff():
    data = json_body()
    staff = staff_service.create_staff(
        get_session(),
        g.tenant_id,
        data.get('name'),
        data.get('pin'),
        role_name=data.get('roleName') or 'Mesero',
        role_id=data.get('roleId'),
    )
    return jsonify(staff_service.serialize_staff(staff)), 201


@staff_bp.route('/staff/<int:staff_id>', methods=['PUT'])
@require_login
@require_manager
def update_staff(staff_id: int):
    staff = staff_service.update_staff(get_session(), g.tenant_id, staff_id, json_body())
    return jsonify(staff_service.serialize_staff(staff))


@staff_bp.route('/staff/<int:staff_id>', methods=['DELETE'])
@require_login
@require_manager
def deactivate_staff(staff_id: int):
    staff = staff_service.deactivate_staff(get_session(), g.tenant_id, staff_id)
    return jsonify(staff_service.serialize_staff(staff))


@staff_bp.route('/roles', methods=['GET'])
@require_login
@require_manager
def list_roles():
    return jsonify([staff_service.serialize_role(r) for r in staff_service.list_roles(get_session(), g.tenant_id)])


@staff_bp.route('/roles', methods=['POST'])
@require_login
@require_manager
def create_role():
    data = json_body()
    role = staff_service.create_role(get_session(), g.tenant_id, data.get('name'), bool_flag(data, 'isManager'))
    return jsonify(staff_service.serialize_role(role)), 201


@staff_bp.route('/roles/<int:role_id>', methods=['PUT'])
@require_login
@require_manager
def update_role(role_id: int):
    role = staff_service.update_role(get_session(), g.tenant_id, role_id, json_body())
    return jsonify(staff_service.serialize_role(role))


@staff_bp.route('/roles/<int:role_id>', methods=['DELETE'])
@require_login
@require_manager
def delete_role(role_id: int):
    staff_service.delete_role(get_session(), g.tenant_id, role_id)
    return jsonify({'status': 'ok'})

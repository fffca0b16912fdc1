"""Authentication blueprint - owner and staff login issuing session tokens."""
from flask import Blueprint, jsonify, current_app, g, make_response

from comanda.database import get_session
from comanda.middleware import require_login
from comanda.services.auth_service import authenticate_owner, authenticate_staff, issue_token, OwnerPrincipal
from comanda.services.settings_service import create_restaurant
from comanda.utils.request_parsing import json_body

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _token_response(principal):
    ttl = current_app.config.get('TOKEN_TTL_SECONDS', 86400)
    token = issue_token(
        principal,
        current_app.config['JWT_SECRET'],
        ttl,
        current_app.config.get('JWT_ALGORITHM', 'HS256')
    )
    response = make_response(jsonify({
        'status': 'ok',
        'token': token,
        'principal': principal.to_claims(),
    }))
    response.set_cookie(
        current_app.config.get('TOKEN_COOKIE_NAME', 'comanda_token'),
        token,
        max_age=ttl,
        httponly=True,
        samesite='Lax',
        secure=current_app.config.get('ENV') == 'production'
    )
    return response


@auth_bp.route('/login', methods=['POST'])
def login():
    """Owner login (email + password)."""
    data = json_body()
    principal = authenticate_owner(get_session(), data.get('email'), data.get('password'))
    current_app.logger.info(f"Owner {principal.id} logged in (tenant {principal.tenant_id})")
    return _token_response(principal)


@auth_bp.route('/register', methods=['POST'])
def register():
    """Owner sign-up: creates the restaurant and logs its owner in."""
    data = json_body()
    owner = create_restaurant(
        get_session(),
        data.get('slug'),
        data.get('restaurantName'),
        data.get('email'),
        data.get('password'),
        tax_rate=current_app.config.get('DEFAULT_TAX_RATE', '0'),
        service_charge_rate=current_app.config.get('DEFAULT_SERVICE_CHARGE_RATE', '0'),
        owner_name=data.get('name'),
    )
    principal = OwnerPrincipal(owner.id, owner.tenant_id, owner.full_name)
    current_app.logger.info(f"Owner {owner.id} registered restaurant {owner.tenant_id}")
    response = _token_response(principal)
    response.status_code = 201
    return response


@auth_bp.route('/staff-login', methods=['POST'])
def staff_login():
    """Staff login on a restaurant device (restaurant slug + PIN)."""
    data = json_body()
    principal = authenticate_staff(get_session(), data.get('restaurant'), data.get('pin'))
    current_app.logger.info(f"Staff {principal.id} logged in (tenant {principal.tenant_id})")
    return _token_response(principal)


@auth_bp.route('/logout', methods=['POST'])
def logout():
    response = make_response(jsonify({'status': 'ok'}))
    response.delete_cookie(current_app.config.get('TOKEN_COOKIE_NAME', 'comanda_token'))
    return response


@auth_bp.route('/me', methods=['GET'])
@require_login
def me():
    return jsonify(g.principal.to_claims())

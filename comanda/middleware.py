"""Middleware for authentication and restaurant context."""
from functools import wraps
from flask import g, request, current_app
from comanda.exceptions import UnauthorizedError, ForbiddenError
from comanda.database import get_session
from comanda.services.auth_service import decode_token, verify_principal


def _read_token():
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip()
    return request.cookies.get(current_app.config.get('TOKEN_COOKIE_NAME', 'comanda_token'))


def load_principal():
    """
    Load the caller into g (Flask's per-request global).

    Sets g.principal and g.tenant_id when a valid token of an active account
    is present. A bad, expired or revoked token is remembered in g.auth_error
    and reported by require_login.
    """
    g.principal = None
    g.tenant_id = None
    g.auth_error = None

    token = _read_token()
    if not token:
        return

    try:
        principal = decode_token(
            token,
            current_app.config['JWT_SECRET'],
            current_app.config.get('JWT_ALGORITHM', 'HS256')
        )
        principal = verify_principal(get_session(), principal)
    except UnauthorizedError as e:
        g.auth_error = e
        return

    g.principal = principal
    g.tenant_id = principal.tenant_id


def require_login(f):
    """Decorator: caller must carry a valid session for its restaurant."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        principal = g.get('principal')
        if principal is None:
            raise g.get('auth_error') or UnauthorizedError('Debes iniciar sesión')
        if not principal.can_operate(g.tenant_id):
            raise ForbiddenError()
        return f(*args, **kwargs)
    return decorated_function


def require_manager(f):
    """
    Decorator: owner or a staff member with a manager role.

    Must be used AFTER require_login.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.principal.can_manage(g.tenant_id):
            raise ForbiddenError('Solo el dueño o un gerente puede realizar esta acción')
        return f(*args, **kwargs)
    return decorated_function

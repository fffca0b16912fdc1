"""
Identity service: session principals and signed tokens.

Credentials are verified here only for the two login flows (owner
email/password and staff PIN). Every other request just decodes the token
into a Principal and asks it what it may do.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from sqlalchemy.orm import Session

from comanda.exceptions import UnauthorizedError, ValidationError
from comanda.models import AppUser, Staff, Tenant

logger = logging.getLogger(__name__)


class Principal:
    """Authenticated caller."""

    role = None

    def __init__(self, id: int, tenant_id: int, name: Optional[str] = None):
        self.id = id
        self.tenant_id = tenant_id
        self.name = name

    @property
    def staff_id(self) -> Optional[int]:
        return None

    def can_operate(self, tenant_id: int) -> bool:
        """Take orders, move tickets, close checks."""
        return self.tenant_id is not None and self.tenant_id == tenant_id

    def can_manage(self, tenant_id: int) -> bool:
        """Edit catalog, tables and settings."""
        raise NotImplementedError

    def to_claims(self) -> dict:
        return {
            'sub': str(self.id),
            'role': self.role,
            'tenant_id': self.tenant_id,
            'name': self.name,
        }

    def __repr__(self):
        return f"<{type(self).__name__}(id={self.id}, tenant_id={self.tenant_id})>"


class OwnerPrincipal(Principal):
    role = 'OWNER'

    def can_manage(self, tenant_id: int) -> bool:
        return self.can_operate(tenant_id)


class StaffPrincipal(Principal):
    role = 'STAFF'

    def __init__(self, id: int, tenant_id: int, name: Optional[str] = None,
                 role_name: Optional[str] = None, is_manager: bool = False):
        super().__init__(id, tenant_id, name)
        self.role_name = role_name
        self.is_manager = is_manager

    @property
    def staff_id(self) -> Optional[int]:
        return self.id

    def can_manage(self, tenant_id: int) -> bool:
        # A manager role acts with the owner's rights
        return self.is_manager and self.can_operate(tenant_id)

    def to_claims(self) -> dict:
        claims = super().to_claims()
        claims['role_name'] = self.role_name
        claims['is_manager'] = self.is_manager
        return claims


def principal_from_claims(claims: dict) -> Principal:
    """Rebuild a principal from decoded token claims."""
    try:
        principal_id = int(claims['sub'])
        tenant_id = int(claims['tenant_id'])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError('Sesión inválida')

    role = claims.get('role')
    if role == OwnerPrincipal.role:
        return OwnerPrincipal(principal_id, tenant_id, claims.get('name'))
    if role == StaffPrincipal.role:
        return StaffPrincipal(
            principal_id,
            tenant_id,
            claims.get('name'),
            role_name=claims.get('role_name'),
            is_manager=bool(claims.get('is_manager')),
        )
    raise UnauthorizedError('Sesión inválida')


def issue_token(principal: Principal, secret: str, ttl_seconds: int = 86400, algorithm: str = 'HS256') -> str:
    """Sign a session token for a principal."""
    now = datetime.now(timezone.utc)
    payload = principal.to_claims()
    payload['iat'] = now
    payload['exp'] = now + timedelta(seconds=ttl_seconds)
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str = 'HS256') -> Principal:
    """Verify a token and return its principal."""
    if not token:
        raise UnauthorizedError()
    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError('Sesión expirada')
    except jwt.InvalidTokenError:
        raise UnauthorizedError('Sesión inválida')
    return principal_from_claims(claims)


def authenticate_owner(session: Session, email: str, password: str) -> OwnerPrincipal:
    """Owner login with email and password."""
    if not email or not password:
        raise ValidationError('Email y contraseña son requeridos')

    user = session.query(AppUser).filter(
        AppUser.email == email.strip().lower(),
        AppUser.active == True  # noqa: E712
    ).first()

    if not user or not user.check_password(password):
        logger.info(f"Failed owner login for {email}")
        raise UnauthorizedError('Email o contraseña incorrectos')

    return OwnerPrincipal(user.id, user.tenant_id, user.full_name)


def authenticate_staff(session: Session, restaurant_slug: str, pin: str) -> StaffPrincipal:
    """Staff login on a restaurant device with a PIN."""
    if not restaurant_slug or not pin:
        raise ValidationError('El restaurante y el PIN son requeridos')

    tenant = session.query(Tenant).filter(
        Tenant.slug == restaurant_slug,
        Tenant.active == True  # noqa: E712
    ).first()
    if not tenant:
        raise UnauthorizedError('PIN inválido para este restaurante')

    # PINs are salted hashes, so they are checked one by one
    candidates = session.query(Staff).filter(
        Staff.tenant_id == tenant.id,
        Staff.active == True  # noqa: E712
    ).all()
    for staff in candidates:
        if staff.check_pin(pin):
            return StaffPrincipal(
                staff.id,
                staff.tenant_id,
                staff.name,
                role_name=staff.role.name if staff.role else None,
                is_manager=staff.is_manager,
            )

    logger.info(f"Failed staff login for restaurant {restaurant_slug}")
    raise UnauthorizedError('PIN inválido para este restaurante')


def verify_principal(session: Session, principal: Principal) -> Principal:
    """
    Check a decoded principal against the current account state.

    Tokens outlive account changes, so every request re-reads the account:
    deactivated staff and owners are rejected, and a staff member's manager
    rights follow their role as it is now, not as it was at login.
    """
    if isinstance(principal, StaffPrincipal):
        staff = session.query(Staff).filter(
            Staff.id == principal.id,
            Staff.tenant_id == principal.tenant_id,
            Staff.active == True  # noqa: E712
        ).first()
        if not staff:
            logger.info(f"Rejected token of inactive staff {principal.id} (tenant {principal.tenant_id})")
            raise UnauthorizedError('Sesión revocada')
        return StaffPrincipal(
            staff.id,
            staff.tenant_id,
            staff.name,
            role_name=staff.role.name if staff.role else None,
            is_manager=staff.is_manager,
        )

    user = session.query(AppUser).filter(
        AppUser.id == principal.id,
        AppUser.tenant_id == principal.tenant_id,
        AppUser.active == True  # noqa: E712
    ).first()
    if not user:
        logger.info(f"Rejected token of inactive owner {principal.id} (tenant {principal.tenant_id})")
        raise UnauthorizedError('Sesión revocada')
    return principal

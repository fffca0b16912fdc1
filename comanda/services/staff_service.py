"""
Staff and role management.

Staff rows are never deleted: orders and invoices keep pointing at the waiter
who served them, so removing someone from the floor means deactivating them.
A deactivated staff member can no longer log in, and tokens already issued to
them are rejected on the next request (see auth_service.verify_principal).
"""
import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from comanda.exceptions import ConflictError, NotFoundError, ValidationError
from comanda.models import Role, Staff, Tenant
from comanda.utils.transactions import transaction

logger = logging.getLogger(__name__)

PIN_PATTERN = re.compile(r'^\d{4,8}$')


def serialize_role(role: Role) -> Dict[str, Any]:
    return {
        'id': role.id,
        'name': role.name,
        'isManager': bool(role.is_manager),
    }


def serialize_staff(staff: Staff) -> Dict[str, Any]:
    return {
        'id': staff.id,
        'name': staff.name,
        'active': bool(staff.active),
        'role': serialize_role(staff.role) if staff.role else None,
    }


def _require_name(value: Any, label: str = 'El nombre') -> str:
    name = (value or '').strip() if isinstance(value, str) else ''
    if not name:
        raise ValidationError(f'{label} es requerido')
    return name


def _parse_pin(value: Any) -> str:
    pin = '' if value is None or isinstance(value, bool) else str(value)
    if not PIN_PATTERN.match(pin):
        raise ValidationError('El PIN debe tener entre 4 y 8 dígitos')
    return pin


def _parse_id(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f'{label} debe ser un identificador numérico')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{label} debe ser un identificador numérico')


def _ensure_pin_free(session: Session, tenant_id: int, pin: str, exclude_id: Optional[int] = None) -> None:
    # PINs are salted hashes, so they are compared one by one
    query = session.query(Staff).filter(Staff.tenant_id == tenant_id, Staff.active == True)  # noqa: E712
    if exclude_id is not None:
        query = query.filter(Staff.id != exclude_id)
    for other in query.all():
        if other.check_pin(pin):
            raise ValidationError('Ese PIN ya está en uso en este restaurante')


def _get_role(session: Session, tenant_id: int, role_id: int) -> Role:
    role = session.query(Role).filter(Role.id == role_id, Role.tenant_id == tenant_id).first()
    if not role:
        raise NotFoundError(f'Rol con ID {role_id} no encontrado')
    return role


def _get_staff(session: Session, tenant_id: int, staff_id: int) -> Staff:
    staff = session.query(Staff).filter(
        Staff.id == staff_id,
        Staff.tenant_id == tenant_id
    ).populate_existing().first()
    if not staff:
        raise NotFoundError(f'Empleado con ID {staff_id} no encontrado')
    return staff


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

def list_roles(session: Session, tenant_id: int) -> List[Role]:
    return session.query(Role).filter(Role.tenant_id == tenant_id).order_by(Role.name).all()


def create_role(session: Session, tenant_id: int, name: Any, is_manager: bool = False) -> Role:
    name = _require_name(name, 'El nombre del rol')

    with transaction(session, 'create_role', 'Ya existe un rol con ese nombre'):
        role = Role(tenant_id=tenant_id, name=name, is_manager=bool(is_manager))
        session.add(role)

    logger.info(f"[STAFF] role '{name}' created (tenant {tenant_id}, manager={role.is_manager})")
    return role


def update_role(session: Session, tenant_id: int, role_id: int, data: Dict[str, Any]) -> Role:
    """Rename a role or toggle its manager rights; affects staff on their next request."""
    with transaction(session, 'update_role', 'Ya existe un rol con ese nombre'):
        role = _get_role(session, tenant_id, role_id)
        if 'name' in data:
            role.name = _require_name(data.get('name'), 'El nombre del rol')
        if 'isManager' in data:
            role.is_manager = bool(data.get('isManager'))
    return role


def delete_role(session: Session, tenant_id: int, role_id: int) -> None:
    """Delete a role nobody holds. Deactivated staff still hold their role."""
    with transaction(session, 'delete_role'):
        role = _get_role(session, tenant_id, role_id)
        in_use = session.query(Staff.id).filter(
            Staff.role_id == role.id,
            Staff.tenant_id == tenant_id
        ).first()
        if in_use:
            raise ConflictError('No se puede eliminar el rol: tiene empleados asignados')
        session.delete(role)

    logger.info(f"[STAFF] role {role_id} deleted (tenant {tenant_id})")


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------

def list_staff(session: Session, tenant_id: int, include_inactive: bool = False) -> List[Staff]:
    query = session.query(Staff).filter(Staff.tenant_id == tenant_id)
    if not include_inactive:
        query = query.filter(Staff.active == True)  # noqa: E712
    return query.order_by(Staff.name, Staff.id).all()


def create_staff(session: Session, tenant_id: int, name: Any, pin: Any,
                 role_name: str = 'Mesero', is_manager: bool = False,
                 role_id: Optional[int] = None) -> Staff:
    """
    Create a staff member.

    With role_id the role must exist in the restaurant; otherwise the role is
    looked up by name and created on first use.
    """
    name = _require_name(name)
    pin = _parse_pin(pin)
    if role_id is None:
        role_name = (role_name or '').strip()
        if not role_name:
            raise ValidationError('El rol es requerido')

    with transaction(session, 'create_staff'):
        if not session.get(Tenant, tenant_id):
            raise NotFoundError('Restaurante no encontrado')
        _ensure_pin_free(session, tenant_id, pin)

        if role_id is not None:
            role = _get_role(session, tenant_id, _parse_id(role_id, 'El rol'))
        else:
            role = session.query(Role).filter(Role.tenant_id == tenant_id, Role.name == role_name).first()
            if not role:
                role = Role(tenant_id=tenant_id, name=role_name, is_manager=is_manager)
                session.add(role)
                session.flush()

        staff = Staff(tenant_id=tenant_id, role_id=role.id, name=name, active=True)
        staff.set_pin(pin)
        session.add(staff)

    logger.info(f"[STAFF] staff '{name}' created (tenant {tenant_id}, role {role.name})")
    return staff


def update_staff(session: Session, tenant_id: int, staff_id: int, data: Dict[str, Any]) -> Staff:
    """Partial update: name, pin, roleId, active."""
    with transaction(session, 'update_staff'):
        staff = _get_staff(session, tenant_id, staff_id)
        reactivating = 'active' in data and bool(data.get('active')) and not staff.active
        # The old PIN may have been handed to someone else meanwhile
        if reactivating and 'pin' not in data:
            raise ValidationError('Para reactivar un empleado asigne un PIN nuevo')

        if 'name' in data:
            staff.name = _require_name(data.get('name'))
        if 'roleId' in data:
            staff.role_id = _get_role(session, tenant_id, _parse_id(data.get('roleId'), 'El rol')).id
        if 'pin' in data:
            pin = _parse_pin(data.get('pin'))
            _ensure_pin_free(session, tenant_id, pin, exclude_id=staff.id)
            staff.set_pin(pin)
        if 'active' in data:
            staff.active = bool(data.get('active'))

    session.refresh(staff)
    return staff


def deactivate_staff(session: Session, tenant_id: int, staff_id: int) -> Staff:
    """Take a staff member off the floor; their orders and invoices stay."""
    with transaction(session, 'deactivate_staff'):
        staff = _get_staff(session, tenant_id, staff_id)
        staff.active = False

    logger.info(f"[STAFF] staff {staff_id} deactivated (tenant {tenant_id})")
    return staff

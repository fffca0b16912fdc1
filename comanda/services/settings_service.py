"""
Restaurant settings and account bootstrap.

Tax and service-charge rates edited here only affect invoices issued
afterwards; issued invoices keep the rates of their snapshot.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from comanda.exceptions import NotFoundError, ValidationError
from comanda.models import Tenant, AppUser
from comanda.services.invoice_service import format_rate
from comanda.utils.transactions import transaction

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def parse_rate(value: Any, label: str) -> Decimal:
    """Rate as a decimal fraction between 0 and 1 (0.12 = 12%)."""
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError(f'{label} es requerido')
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{label} debe ser numérico')
    if not rate.is_finite() or rate < 0 or rate > 1:
        raise ValidationError(f'{label} debe estar entre 0 y 1')
    return rate.quantize(Decimal('0.0001'))


def serialize_settings(tenant: Tenant) -> Dict[str, Any]:
    return {
        'slug': tenant.slug,
        'name': tenant.name,
        'restaurantAddress': tenant.restaurant_address,
        'taxId': tenant.tax_id,
        'taxRate': format_rate(tenant.tax_rate or 0),
        'serviceChargeRate': format_rate(tenant.service_charge_rate or 0),
    }


def get_settings(session: Session, tenant_id: int) -> Tenant:
    tenant = session.query(Tenant).filter(Tenant.id == tenant_id).populate_existing().first()
    if not tenant:
        raise NotFoundError('Restaurante no encontrado')
    return tenant


def update_settings(session: Session, tenant_id: int, data: Dict[str, Any]) -> Tenant:
    """Partial update of the restaurant's invoicing settings."""
    with transaction(session, 'update_settings'):
        tenant = get_settings(session, tenant_id)
        if 'name' in data:
            name = (data.get('name') or '').strip()
            if not name:
                raise ValidationError('El nombre del restaurante es requerido')
            tenant.name = name
        if 'restaurantAddress' in data:
            tenant.restaurant_address = (data.get('restaurantAddress') or '').strip() or None
        if 'taxId' in data:
            tenant.tax_id = (data.get('taxId') or '').strip() or None
        if 'taxRate' in data:
            tenant.tax_rate = parse_rate(data.get('taxRate'), 'La tasa de impuesto')
        if 'serviceChargeRate' in data:
            tenant.service_charge_rate = parse_rate(data.get('serviceChargeRate'), 'La tasa de servicio')

    logger.info(f"[SETTINGS] tenant {tenant_id} settings updated")
    return tenant


def create_restaurant(session: Session, slug: str, name: str, owner_email: str, owner_password: str,
                      tax_rate: Any = '0', service_charge_rate: Any = '0',
                      owner_name: Optional[str] = None) -> AppUser:
    """Create a restaurant with its owner account. Returns the owner."""
    slug = str(slug or '').strip().lower()
    if not SLUG_PATTERN.match(slug):
        raise ValidationError('El identificador solo admite minúsculas, números y guiones')
    name = str(name or '').strip()
    if not name:
        raise ValidationError('El nombre del restaurante es requerido')
    email = str(owner_email or '').strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('Email inválido. Use formato: user@example.com')
    if not isinstance(owner_password, str) or len(owner_password) < 6:
        raise ValidationError('La contraseña debe tener al menos 6 caracteres')

    with transaction(session, 'create_restaurant', 'Ya existe un restaurante o usuario con esos datos'):
        tenant = Tenant(
            slug=slug,
            name=name,
            tax_rate=parse_rate(tax_rate, 'La tasa de impuesto'),
            service_charge_rate=parse_rate(service_charge_rate, 'La tasa de servicio'),
            active=True,
        )
        session.add(tenant)
        session.flush()

        owner = AppUser(tenant_id=tenant.id, email=email, full_name=owner_name or name, active=True)
        owner.set_password(owner_password)
        session.add(owner)

    logger.info(f"[SETTINGS] restaurant '{slug}' created (tenant {tenant.id})")
    return owner

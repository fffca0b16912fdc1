"""
Dining table service - floor plan and table status.

A table becomes OCCUPIED only through order_service.create_order and returns to
AVAILABLE only when its order is closed, canceled or deleted. The BILLING flag
is a staff signal ("bring the check") and does not change the order.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from comanda.exceptions import ConflictError, NotFoundError, ValidationError
from comanda.models import DiningTable, TableStatus, Order, ACTIVE_ORDER_STATUSES
from comanda.services.event_service import EventPublisher
from comanda.services.order_service import publish_table_update
from comanda.utils.transactions import transaction

logger = logging.getLogger(__name__)


def serialize_table(table: DiningTable, active_order: Optional[Order] = None) -> Dict[str, Any]:
    return {
        'id': table.id,
        'name': table.name,
        'status': table.status.value,
        'activeOrderId': active_order.id if active_order else None,
    }


def _find_table(session: Session, tenant_id: int, table_id: int) -> DiningTable:
    table = session.query(DiningTable).filter(
        DiningTable.id == table_id,
        DiningTable.tenant_id == tenant_id
    ).populate_existing().first()
    if not table:
        raise NotFoundError(f'Mesa con ID {table_id} no encontrada')
    return table


def get_table(session: Session, tenant_id: int, table_id: int) -> DiningTable:
    return _find_table(session, tenant_id, table_id)


def list_tables(session: Session, tenant_id: int) -> List[Dict[str, Any]]:
    """Floor plan with each table's active order id."""
    tables = session.query(DiningTable).filter(
        DiningTable.tenant_id == tenant_id
    ).order_by(DiningTable.name, DiningTable.id).all()

    active_orders = session.query(Order).filter(
        Order.tenant_id == tenant_id,
        Order.status.in_(ACTIVE_ORDER_STATUSES)
    ).all()
    by_table = {o.table_id: o for o in active_orders}

    return [serialize_table(t, by_table.get(t.id)) for t in tables]


def create_table(session: Session, tenant_id: int, name: str) -> DiningTable:
    name = (name or '').strip()
    if not name:
        raise ValidationError('El nombre de la mesa es requerido')

    with transaction(session, 'create_table', f'Ya existe una mesa llamada "{name}"'):
        table = DiningTable(tenant_id=tenant_id, name=name, status=TableStatus.AVAILABLE)
        session.add(table)

    logger.info(f"[TABLES] table {table.id} '{name}' created for tenant {tenant_id}")
    return table


def delete_table(session: Session, tenant_id: int, table_id: int) -> None:
    """Remove a table that never had orders."""
    with transaction(session, 'delete_table'):
        table = _find_table(session, tenant_id, table_id)
        referenced = session.query(Order.id).filter(Order.table_id == table.id).first()
        if referenced:
            raise ConflictError('No se puede eliminar la mesa: tiene pedidos registrados')
        session.delete(table)


def _swap_table_status(session: Session, tenant_id: int, table_id: int,
                       from_status: TableStatus, to_status: TableStatus, conflict_message: str) -> DiningTable:
    columns = DiningTable.__table__.c
    result = session.execute(
        DiningTable.__table__.update()
        .where(columns.id == table_id)
        .where(columns.tenant_id == tenant_id)
        .where(columns.status == from_status)
        .values(status=to_status)
    )
    if result.rowcount == 0:
        _find_table(session, tenant_id, table_id)
        raise ConflictError(conflict_message)

    active = session.query(Order.id).filter(
        Order.table_id == table_id,
        Order.status.in_(ACTIVE_ORDER_STATUSES)
    ).first()
    if not active:
        raise ConflictError('La mesa no tiene un pedido activo')
    return _find_table(session, tenant_id, table_id)


def request_bill(session: Session, tenant_id: int, table_id: int,
                 publisher: Optional[EventPublisher] = None) -> DiningTable:
    """OCCUPIED -> BILLING."""
    with transaction(session, 'request_bill'):
        table = _swap_table_status(
            session, tenant_id, table_id, TableStatus.OCCUPIED, TableStatus.BILLING,
            'Solo se puede pedir la cuenta de una mesa ocupada'
        )

    publish_table_update(table.id, table.status, publisher)
    return table


def resume_service(session: Session, tenant_id: int, table_id: int,
                   publisher: Optional[EventPublisher] = None) -> DiningTable:
    """BILLING -> OCCUPIED, when diners keep ordering after asking for the check."""
    with transaction(session, 'resume_service'):
        table = _swap_table_status(
            session, tenant_id, table_id, TableStatus.BILLING, TableStatus.OCCUPIED,
            'La mesa no está esperando la cuenta'
        )

    publish_table_update(table.id, table.status, publisher)
    return table

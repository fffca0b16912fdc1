"""
Order service with transactional logic - table orders (comandas).

State graph:
    OPEN -> COOKING -> READY -> DELIVERED -> CLOSED
    COOKING -> OPEN                     (pull back to add/modify items)
    READY | DELIVERED -> CLOSED         (close_order)
    any non-terminal -> CANCELED        (cancel_order)

Concurrency rules:
- Status changes are compare-and-swap UPDATEs (WHERE status IN ...); a zero
  rowcount means another request got there first.
- Item writes first "touch" the order row while it is OPEN, which takes the row
  lock for the rest of the transaction, then recompute the total from every item.
- Notifications are published strictly after commit.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from comanda.blueprints.metrics import orders_created_total, invoices_issued_total
from comanda.exceptions import ConflictError, NotFoundError, ValidationError
from comanda.models import (
    DiningTable, TableStatus, Order, OrderItem, OrderStatus, Product, ModifierGroup,
    Staff, Tenant, ACTIVE_ORDER_STATUSES, TERMINAL_ORDER_STATUSES
)
from comanda.services import event_service
from comanda.services.event_service import EventPublisher, publish_safely
from comanda.services.invoice_service import issue_invoice, waiter_name
from comanda.services.order_totals import compute_total, item_total, format_money
from comanda.utils.transactions import transaction

logger = logging.getLogger(__name__)

ORDER_TRANSITIONS = {
    OrderStatus.OPEN: {OrderStatus.COOKING, OrderStatus.CANCELED},
    OrderStatus.COOKING: {OrderStatus.READY, OrderStatus.OPEN, OrderStatus.CANCELED},
    OrderStatus.READY: {OrderStatus.DELIVERED, OrderStatus.CLOSED, OrderStatus.CANCELED},
    OrderStatus.DELIVERED: {OrderStatus.CLOSED, OrderStatus.CANCELED},
    OrderStatus.CLOSED: set(),
    OrderStatus.CANCELED: set(),
}

CLOSABLE_STATUSES = (OrderStatus.READY, OrderStatus.DELIVERED)


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ORDER_TRANSITIONS.get(current, set())


def parse_status(value: Any) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f'Estado de pedido inválido: {value}')


# ---------------------------------------------------------------------------
# Serializers (kitchen tickets and API responses)
# ---------------------------------------------------------------------------

def serialize_item(item: OrderItem) -> Dict[str, Any]:
    return {
        'id': item.id,
        'productId': item.product_id,
        'productName': item.product.name if item.product else None,
        'quantity': item.quantity,
        'price': format_money(item.price),
        'modifiers': [dict(m) for m in (item.selected_modifiers or [])],
        'notes': item.notes,
        'itemTotal': format_money(item_total(item)),
    }


def serialize_order(order: Order, with_items: bool = True) -> Dict[str, Any]:
    """Full order snapshot; a kitchen display renders from this alone."""
    data = {
        'id': order.id,
        'tableId': order.table_id,
        'table': {'id': order.table.id, 'name': order.table.name} if order.table else None,
        'staffId': order.staff_id,
        'waiterName': waiter_name(order),
        'status': order.status.value,
        'total': format_money(order.total),
        'createdAt': order.created_at.isoformat() if order.created_at else None,
        'updatedAt': order.updated_at.isoformat() if order.updated_at else None,
    }
    if with_items:
        data['items'] = [serialize_item(i) for i in order.items]
    return data


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _now():
    return datetime.now(timezone.utc)


def _order_query(session: Session, tenant_id: int):
    return session.query(Order).options(
        selectinload(Order.table),
        selectinload(Order.staff),
        selectinload(Order.items).selectinload(OrderItem.product)
    ).filter(Order.tenant_id == tenant_id)


def _find_order(session: Session, tenant_id: int, order_id: int) -> Order:
    order = session.query(Order).filter(
        Order.id == order_id,
        Order.tenant_id == tenant_id
    ).populate_existing().first()
    if not order:
        raise NotFoundError(f'Pedido con ID {order_id} no encontrado')
    return order


def _swap_status(session: Session, tenant_id: int, order_id: int,
                 from_statuses: Iterable[OrderStatus], to_status: OrderStatus,
                 conflict_message: str) -> Order:
    """
    Compare-and-swap the order status inside the current transaction.

    Setting OPEN -> OPEN is how item writes lock an editable order.
    """
    from_statuses = tuple(from_statuses)
    table = Order.__table__
    result = session.execute(
        table.update()
        .where(table.c.id == order_id)
        .where(table.c.tenant_id == tenant_id)
        .where(table.c.status.in_(from_statuses))
        .values(status=to_status, updated_at=_now())
    )
    if result.rowcount == 0:
        order = _find_order(session, tenant_id, order_id)
        logger.info(f"[ORDERS] order {order_id} is {order.status.value}, wanted {to_status.value}")
        raise ConflictError(conflict_message)
    return _find_order(session, tenant_id, order_id)


def _set_table_status(session: Session, table_id: int, status: TableStatus) -> None:
    table = DiningTable.__table__
    session.execute(
        table.update().where(table.c.id == table_id).values(status=status)
    )


def _recompute_total(session: Session, order: Order):
    """Recompute order.total from every item currently stored."""
    session.flush()
    items = session.query(OrderItem).filter(
        OrderItem.order_id == order.id
    ).populate_existing().all()
    order.total = compute_total(items)
    session.expire(order, ['items'])
    return order.total


def _lock_open_order(session: Session, tenant_id: int, order_id: int) -> Order:
    return _swap_status(
        session, tenant_id, order_id,
        [OrderStatus.OPEN], OrderStatus.OPEN,
        'El pedido ya fue enviado a cocina. Regréselo a ABIERTO para modificarlo'
    )


def _find_item(session: Session, tenant_id: int, item_id: int) -> OrderItem:
    item = session.query(OrderItem).join(Order).filter(
        OrderItem.id == item_id,
        Order.tenant_id == tenant_id
    ).first()
    if not item:
        raise NotFoundError(f'Ítem con ID {item_id} no encontrado')
    return item


def _parse_quantity(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError('La cantidad debe ser un número entero')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError('La cantidad debe ser un número entero')
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('La cantidad debe ser un número entero')


def _option_id(raw: Any) -> int:
    if isinstance(raw, dict):
        raw = raw.get('id')
    if isinstance(raw, bool):
        raise ValidationError('Opción de modificador inválida')
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError('Opción de modificador inválida')


def _resolve_modifiers(product: Product, options: Optional[List[Any]]) -> List[Dict[str, Any]]:
    """Validate option ids against the product's groups and snapshot them."""
    available = {}
    for group in product.modifier_groups:
        for option in group.options:
            available[option.id] = option

    snapshot = []
    seen = set()
    for raw in options or []:
        option_id = _option_id(raw)
        if option_id in seen:
            raise ValidationError('La misma opción de modificador fue seleccionada dos veces')
        option = available.get(option_id)
        if option is None:
            raise ValidationError(f'La opción {option_id} no pertenece al producto "{product.name}"')
        seen.add(option_id)
        snapshot.append({
            'id': option.id,
            'name': option.name,
            'price': format_money(option.price),
        })
    return snapshot


def _publish_order_update(order: Order, publisher: Optional[EventPublisher]) -> None:
    publish_safely(event_service.KITCHEN_EVENTS, event_service.ORDER_UPDATE, {
        'orderId': order.id,
        'tableId': order.table_id,
        'status': order.status.value,
    }, publisher)


def publish_table_update(table_id: int, status: TableStatus, publisher: Optional[EventPublisher] = None) -> None:
    publish_safely(event_service.TABLE_EVENTS, event_service.TABLE_UPDATE, {
        'tableId': table_id,
        'status': status.value,
    }, publisher)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_order(session: Session, tenant_id: int, order_id: int) -> Order:
    order = _order_query(session, tenant_id).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError(f'Pedido con ID {order_id} no encontrado')
    return order


def get_active_order_for_table(session: Session, tenant_id: int, table_id: int) -> Order:
    order = _order_query(session, tenant_id).filter(
        Order.table_id == table_id,
        Order.status.in_(ACTIVE_ORDER_STATUSES)
    ).first()
    if not order:
        raise NotFoundError('La mesa no tiene un pedido activo')
    return order


def list_kitchen_orders(session: Session, tenant_id: int,
                        statuses: Optional[Iterable[Any]] = None) -> List[Order]:
    """Non-terminal orders, oldest first."""
    if statuses:
        wanted = [parse_status(s) for s in statuses]
        if any(s in TERMINAL_ORDER_STATUSES for s in wanted):
            raise ValidationError('Solo se pueden listar pedidos activos')
    else:
        wanted = list(ACTIVE_ORDER_STATUSES)
    return _order_query(session, tenant_id).filter(
        Order.status.in_(wanted)
    ).order_by(Order.created_at, Order.id).all()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def create_order(session: Session, tenant_id: int, table_id: int, staff_id: Optional[int] = None,
                 publisher: Optional[EventPublisher] = None) -> Order:
    """
    Open an order on an AVAILABLE table.

    The table claim is one conditional UPDATE; when two waiters race for the
    same table exactly one of them gets a row back.
    """
    with transaction(session, 'create_order', 'La mesa ya tiene un pedido activo'):
        if staff_id is not None:
            staff = session.query(Staff).filter(
                Staff.id == staff_id,
                Staff.tenant_id == tenant_id,
                Staff.active == True  # noqa: E712
            ).first()
            if not staff:
                raise NotFoundError(f'Empleado con ID {staff_id} no encontrado')

        table = DiningTable.__table__
        result = session.execute(
            table.update()
            .where(table.c.id == table_id)
            .where(table.c.tenant_id == tenant_id)
            .where(table.c.status == TableStatus.AVAILABLE)
            .values(status=TableStatus.OCCUPIED)
        )
        if result.rowcount == 0:
            exists = session.query(DiningTable.id).filter(
                DiningTable.id == table_id,
                DiningTable.tenant_id == tenant_id
            ).first()
            if not exists:
                raise NotFoundError(f'Mesa con ID {table_id} no encontrada')
            raise ConflictError('La mesa no está disponible')

        order = Order(
            tenant_id=tenant_id,
            table_id=table_id,
            staff_id=staff_id,
            status=OrderStatus.OPEN,
            total=compute_total([]),
        )
        session.add(order)
        session.flush()
        session.get(DiningTable, table_id, populate_existing=True)

    orders_created_total.inc()
    logger.info(f"[ORDERS] order {order.id} opened on table {table_id} (tenant {tenant_id})")
    publish_table_update(table_id, TableStatus.OCCUPIED, publisher)
    return order


def add_item(session: Session, tenant_id: int, order_id: int, product_id: int, quantity: Any = 1,
             options: Optional[List[Any]] = None, notes: Optional[str] = None) -> OrderItem:
    """
    Add a product line to an OPEN order.

    Price and modifiers are read fresh from the catalog and stored as a
    snapshot; the order total is recomputed in the same transaction.
    """
    quantity = _parse_quantity(quantity)
    if quantity <= 0:
        raise ValidationError('La cantidad debe ser mayor a 0')

    with transaction(session, 'add_item'):
        order = _lock_open_order(session, tenant_id, order_id)

        product = session.query(Product).options(
            selectinload(Product.modifier_groups).selectinload(ModifierGroup.options)
        ).filter(
            Product.id == product_id,
            Product.tenant_id == tenant_id,
            Product.active == True  # noqa: E712
        ).populate_existing().first()
        if not product:
            raise NotFoundError(f'Producto con ID {product_id} no encontrado')

        item = OrderItem(
            order_id=order.id,
            product_id=product.id,
            quantity=quantity,
            price=product.price,
            selected_modifiers=_resolve_modifiers(product, options),
            notes=(notes or '').strip() or None,
        )
        session.add(item)
        _recompute_total(session, order)

    logger.info(f"[ORDERS] item {item.id} added to order {order.id}; total {order.total}")
    return item


def update_item_quantity(session: Session, tenant_id: int, item_id: int, new_quantity: Any) -> Order:
    """Set an item's quantity; zero or less removes it. Returns the order."""
    new_quantity = _parse_quantity(new_quantity)

    with transaction(session, 'update_item_quantity'):
        item = _find_item(session, tenant_id, item_id)
        order = _lock_open_order(session, tenant_id, item.order_id)
        if new_quantity <= 0:
            session.delete(item)
        else:
            item.quantity = new_quantity
        _recompute_total(session, order)

    return order


def delete_item(session: Session, tenant_id: int, item_id: int) -> Order:
    with transaction(session, 'delete_item'):
        item = _find_item(session, tenant_id, item_id)
        order = _lock_open_order(session, tenant_id, item.order_id)
        session.delete(item)
        _recompute_total(session, order)

    return order


def transition_status(session: Session, tenant_id: int, order_id: int, new_status: Any,
                      publisher: Optional[EventPublisher] = None) -> Order:
    """
    Move an order along the state graph and notify the displays.

    CLOSED and CANCELED are delegated to close_order / cancel_order so the
    invoice and table release happen in their transactions.
    """
    new_status = parse_status(new_status)

    if new_status == OrderStatus.CLOSED:
        close_order(session, tenant_id, order_id, publisher=publisher)
        return get_order(session, tenant_id, order_id)
    if new_status == OrderStatus.CANCELED:
        return cancel_order(session, tenant_id, order_id, publisher=publisher)

    with transaction(session, 'transition_status'):
        current = _find_order(session, tenant_id, order_id)
        if not can_transition(current.status, new_status):
            raise ConflictError(
                f'Transición no permitida: {current.status.value} -> {new_status.value}'
            )
        previous = current.status
        order = _swap_status(
            session, tenant_id, order_id, [previous], new_status,
            'El pedido fue modificado por otra persona. Actualice e intente de nuevo'
        )
        if new_status == OrderStatus.COOKING:
            has_items = session.query(OrderItem.id).filter(OrderItem.order_id == order.id).first()
            if not has_items:
                raise ConflictError('No se puede enviar a cocina un pedido sin productos')

    order = get_order(session, tenant_id, order_id)
    logger.info(f"[ORDERS] order {order.id}: {previous.value} -> {new_status.value}")

    if new_status == OrderStatus.COOKING:
        publish_safely(event_service.KITCHEN_EVENTS, event_service.NEW_ORDER, serialize_order(order), publisher)
    elif new_status == OrderStatus.READY:
        publish_safely(event_service.WAITER_EVENTS, event_service.ORDER_READY, {
            'tableId': order.table_id,
            'tableName': order.table.name if order.table else None,
        }, publisher)
    _publish_order_update(order, publisher)
    return order


# ---------------------------------------------------------------------------
# Close / cancel / delete
# ---------------------------------------------------------------------------

def lock_for_close(session: Session, tenant_id: int, order_id: int, quick_checkout: bool = False):
    """
    First step of every checkout transaction: flip the order to CLOSED.

    Returns (order, items, tenant). Must run inside a transaction; the caller
    issues the invoice(s) and calls release_table before committing.
    """
    allowed = ACTIVE_ORDER_STATUSES if quick_checkout else CLOSABLE_STATUSES
    order = _swap_status(
        session, tenant_id, order_id, allowed, OrderStatus.CLOSED,
        'El pedido debe estar LISTO o ENTREGADO para cerrarse'
    )
    items = session.query(OrderItem).filter(
        OrderItem.order_id == order.id
    ).order_by(OrderItem.id).populate_existing().all()
    if not items:
        raise ConflictError('No se puede cerrar un pedido sin productos')

    tenant = session.get(Tenant, tenant_id, populate_existing=True)
    return order, items, tenant


def release_table(session: Session, order: Order) -> None:
    _set_table_status(session, order.table_id, TableStatus.AVAILABLE)


def after_close(session: Session, order: Order, invoices: List[Any],
                publisher: Optional[EventPublisher] = None) -> None:
    """Post-commit side effects of a checkout."""
    invoices_issued_total.inc(len(invoices))
    session.get(DiningTable, order.table_id, populate_existing=True)
    logger.info(
        f"[ORDERS] order {order.id} closed with invoice(s) "
        f"{', '.join(i.invoice_number for i in invoices)}"
    )
    publish_table_update(order.table_id, TableStatus.AVAILABLE, publisher)
    _publish_order_update(order, publisher)


def close_order(session: Session, tenant_id: int, order_id: int, quick_checkout: bool = False,
                publisher: Optional[EventPublisher] = None):
    """
    Checkout: invoice the order, mark it CLOSED and free the table.

    All three writes commit together; the table-update notification goes out
    only after the commit.
    """
    with transaction(session, 'close_order', 'No se pudo emitir la factura, intente de nuevo'):
        order, items, tenant = lock_for_close(session, tenant_id, order_id, quick_checkout)
        invoice = issue_invoice(session, tenant, order, items)
        release_table(session, order)

    after_close(session, order, [invoice], publisher)
    return invoice


def cancel_order(session: Session, tenant_id: int, order_id: int,
                 publisher: Optional[EventPublisher] = None) -> Order:
    """Cancel a non-terminal order and free its table. The row is kept."""
    with transaction(session, 'cancel_order'):
        order = _swap_status(
            session, tenant_id, order_id, ACTIVE_ORDER_STATUSES, OrderStatus.CANCELED,
            'El pedido ya está cerrado o cancelado'
        )
        release_table(session, order)

    session.get(DiningTable, order.table_id, populate_existing=True)
    logger.info(f"[ORDERS] order {order.id} canceled")
    publish_table_update(order.table_id, TableStatus.AVAILABLE, publisher)
    _publish_order_update(order, publisher)
    return order


def delete_order(session: Session, tenant_id: int, order_id: int,
                 publisher: Optional[EventPublisher] = None) -> None:
    """
    Hard-delete an order opened by mistake.

    Only an OPEN order without items qualifies; anything else must be canceled
    so the history survives.
    """
    with transaction(session, 'delete_order'):
        order = _swap_status(
            session, tenant_id, order_id, [OrderStatus.OPEN], OrderStatus.OPEN,
            'Solo se puede eliminar un pedido ABIERTO. Cancélelo en su lugar'
        )
        has_items = session.query(OrderItem.id).filter(OrderItem.order_id == order.id).first()
        if has_items:
            raise ConflictError('El pedido tiene productos. Cancélelo en lugar de eliminarlo')
        table_id = order.table_id
        session.delete(order)
        _set_table_status(session, table_id, TableStatus.AVAILABLE)

    session.get(DiningTable, table_id, populate_existing=True)
    logger.info(f"[ORDERS] order {order_id} deleted")
    publish_table_update(table_id, TableStatus.AVAILABLE, publisher)

"""
Invoice service - numbering, immutable snapshots and queries.

An invoice is issued inside the checkout transaction of the order service.
`invoice_data` is the permanent record: it is built once from the order items
and the restaurant settings of that instant and never rebuilt.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from comanda.exceptions import NotFoundError, ValidationError
from comanda.models import Invoice, InvoiceSequence, Order, OrderItem, Tenant
from comanda.services.order_totals import financial_summary, item_total, format_money

logger = logging.getLogger(__name__)

INVOICE_PREFIX = 'F'
UNASSIGNED_WAITER = 'Sin asignar'


def waiter_name(order: Order) -> str:
    return order.staff.name if order.staff else UNASSIGNED_WAITER


def format_invoice_number(year: int, sequence: int) -> str:
    """F-<year>-<5 digit sequence>."""
    return f"{INVOICE_PREFIX}-{year}-{sequence:05d}"


def format_rate(rate: Any) -> str:
    """Rate as a plain decimal string without trailing zeros ('0.12', '0')."""
    value = Decimal(str(rate)).normalize()
    return format(value, 'f')


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------

def _create_sequence_row(session: Session, year: int) -> None:
    table = InvoiceSequence.__table__
    dialect = session.get_bind().dialect.name
    if dialect == 'postgresql':
        stmt = pg_insert(table).values(year=year, last_value=0).on_conflict_do_nothing(index_elements=['year'])
    elif dialect == 'sqlite':
        stmt = sqlite_insert(table).values(year=year, last_value=0).on_conflict_do_nothing(index_elements=['year'])
    else:
        if session.execute(select(table.c.year).where(table.c.year == year)).first():
            return
        stmt = table.insert().values(year=year, last_value=0)
    session.execute(stmt)


def next_invoice_number(session: Session, year: Optional[int] = None) -> str:
    """
    Advance the year's counter and return the formatted number.

    The increment is a single UPDATE, so the counter row stays locked until the
    surrounding transaction ends and concurrent checkouts get distinct values.
    """
    year = year or datetime.now(timezone.utc).year
    table = InvoiceSequence.__table__
    increment = table.update().where(table.c.year == year).values(last_value=table.c.last_value + 1)

    result = session.execute(increment)
    if result.rowcount == 0:
        _create_sequence_row(session, year)
        session.execute(increment)

    value = session.execute(select(table.c.last_value).where(table.c.year == year)).scalar_one()
    return format_invoice_number(year, value)


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

def build_invoice_data(tenant: Tenant, order: Order, items: Sequence[OrderItem], invoice_number: str,
                       issued_at: datetime, split: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
    """
    Immutable invoice snapshot for one set of items.

    Amounts are fixed-point strings so the stored JSON is exact.
    """
    lines = []
    for item in items:
        lines.append({
            'itemId': item.id,
            'quantity': item.quantity,
            'productName': item.product.name if item.product else None,
            'unitPrice': format_money(item.price),
            'modifiers': [
                {'id': m.get('id'), 'name': m.get('name'), 'price': format_money(m.get('price') or 0)}
                for m in (item.selected_modifiers or [])
            ],
            'notes': item.notes,
            'itemTotal': format_money(item_total(item)),
        })

    subtotal = sum((item_total(item) for item in items), Decimal('0'))
    summary = financial_summary(subtotal, tenant.tax_rate or 0, tenant.service_charge_rate or 0)

    data = {
        'restaurantInfo': {
            'name': tenant.name,
            'address': tenant.restaurant_address,
            'taxId': tenant.tax_id,
        },
        'saleInfo': {
            'invoiceNumber': invoice_number,
            'date': issued_at.isoformat(),
            'waiterName': waiter_name(order),
            'tableName': order.table.name if order.table else None,
            'orderId': order.id,
        },
        'items': lines,
        'financialSummary': {
            'subtotal': format_money(summary['subtotal']),
            'taxRate': format_rate(summary['tax_rate']),
            'taxAmount': format_money(summary['tax_amount']),
            'serviceChargeRate': format_rate(summary['service_charge_rate']),
            'serviceChargeAmount': format_money(summary['service_charge_amount']),
            'grandTotal': format_money(summary['grand_total']),
        },
    }
    if split:
        data['split'] = {'index': split['index'], 'count': split['count']}
    return data


def issue_invoice(session: Session, tenant: Tenant, order: Order, items: Sequence[OrderItem],
                  split: Optional[Dict[str, int]] = None, issued_at: Optional[datetime] = None) -> Invoice:
    """
    Number and persist one invoice in the caller's transaction (no commit).
    """
    if not items:
        raise ValidationError('No se puede facturar un conjunto vacío de productos')

    issued_at = issued_at or datetime.now(timezone.utc)
    number = next_invoice_number(session, issued_at.year)

    invoice = Invoice(
        tenant_id=tenant.id,
        order_id=order.id,
        staff_id=order.staff_id,
        invoice_number=number,
        invoice_data=build_invoice_data(tenant, order, items, number, issued_at, split),
        created_at=issued_at,
    )
    session.add(invoice)
    session.flush()
    logger.info(f"[INVOICES] {number} issued for order {order.id} (tenant {tenant.id})")
    return invoice


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def serialize_invoice(invoice: Invoice) -> Dict[str, Any]:
    return {
        'id': invoice.id,
        'orderId': invoice.order_id,
        'staffId': invoice.staff_id,
        'invoiceNumber': invoice.invoice_number,
        'createdAt': invoice.created_at.isoformat() if invoice.created_at else None,
        'invoiceData': invoice.invoice_data,
    }


def _day_bounds(day: date):
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def parse_day(value: Optional[str]) -> date:
    """YYYY-MM-DD, defaulting to today (UTC)."""
    if not value:
        return datetime.now(timezone.utc).date()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError('Fecha inválida, use el formato AAAA-MM-DD')


def get_invoice(session: Session, tenant_id: int, invoice_id: int) -> Invoice:
    invoice = session.query(Invoice).filter(
        Invoice.id == invoice_id,
        Invoice.tenant_id == tenant_id
    ).first()
    if not invoice:
        raise NotFoundError(f'Factura con ID {invoice_id} no encontrada')
    return invoice


def list_order_invoices(session: Session, tenant_id: int, order_id: int) -> List[Invoice]:
    return session.query(Invoice).filter(
        Invoice.tenant_id == tenant_id,
        Invoice.order_id == order_id
    ).order_by(Invoice.id).all()


def list_invoices_by_date(session: Session, tenant_id: int, day: date) -> List[Invoice]:
    """Invoices issued during one UTC day, oldest first."""
    start, end = _day_bounds(day)
    return session.query(Invoice).filter(
        Invoice.tenant_id == tenant_id,
        Invoice.created_at >= start,
        Invoice.created_at < end
    ).order_by(Invoice.created_at, Invoice.id).all()


def list_staff_invoices(session: Session, tenant_id: int, staff_id: int, day: Optional[date] = None) -> List[Invoice]:
    """A waiter's invoices for one day (today by default)."""
    start, end = _day_bounds(day or datetime.now(timezone.utc).date())
    return session.query(Invoice).filter(
        Invoice.tenant_id == tenant_id,
        Invoice.staff_id == staff_id,
        Invoice.created_at >= start,
        Invoice.created_at < end
    ).order_by(Invoice.created_at, Invoice.id).all()

"""
Bill splitting.

BillSplitSession is the in-memory working state a waiter edits on the device
(nothing is stored). When it validates, its partition is sent to commit_split,
which checks it again against the order's current items and invoices every
split in one transaction: either all invoices exist and the order is CLOSED, or
nothing changed.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from comanda.exceptions import ValidationError
from comanda.models import Invoice
from comanda.services.event_service import EventPublisher
from comanda.services.invoice_service import issue_invoice
from comanda.services.order_service import get_order, lock_for_close, release_table, after_close
from comanda.services.order_totals import item_total, financial_summary, format_money
from comanda.utils.transactions import transaction

logger = logging.getLogger(__name__)


def _item_id(item: Any) -> int:
    raw = item.get('id') if isinstance(item, dict) else getattr(item, 'id', item)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f'Ítem inválido: {raw!r}')


class BillSplitSession:
    """Assign each order item to exactly one split."""

    def __init__(self, items: Iterable[Any]):
        self._items: Dict[int, Any] = {}
        for item in items:
            self._items[_item_id(item)] = item
        self._order = list(self._items)
        self.unassigned_items: List[int] = list(self._order)
        self.splits: List[Dict[str, Any]] = []
        self._next_split_id = 1

    @classmethod
    def from_order(cls, order) -> 'BillSplitSession':
        return cls(order.items)

    def _split(self, split_id: int) -> Dict[str, Any]:
        for split in self.splits:
            if split['id'] == split_id:
                return split
        raise ValidationError(f'División {split_id} no existe')

    def _sort(self, item_ids: List[int]) -> List[int]:
        return sorted(item_ids, key=self._order.index)

    def _detach(self, item_id: int) -> None:
        if item_id in self.unassigned_items:
            self.unassigned_items.remove(item_id)
            return
        for split in self.splits:
            if item_id in split['items']:
                split['items'].remove(item_id)
                return

    def add_split(self) -> int:
        split_id = self._next_split_id
        self._next_split_id += 1
        self.splits.append({'id': split_id, 'items': []})
        return split_id

    def remove_split(self, split_id: int) -> None:
        """Drop a split; its items go back to the unassigned pool."""
        split = self._split(split_id)
        self.splits.remove(split)
        self.unassigned_items = self._sort(self.unassigned_items + split['items'])

    def assign(self, item_id: int, split_id: int) -> None:
        item_id = int(item_id)
        if item_id not in self._items:
            raise ValidationError(f'El ítem {item_id} no pertenece al pedido')
        split = self._split(split_id)
        self._detach(item_id)
        split['items'] = self._sort(split['items'] + [item_id])

    def unassign(self, item_id: int) -> None:
        item_id = int(item_id)
        if item_id not in self._items:
            raise ValidationError(f'El ítem {item_id} no pertenece al pedido')
        self._detach(item_id)
        self.unassigned_items = self._sort(self.unassigned_items + [item_id])

    def subtotal(self, split_id: int) -> Decimal:
        split = self._split(split_id)
        return sum((item_total(self._items[i]) for i in split['items']), Decimal('0.00'))

    def validate(self) -> None:
        """Raise ValidationError unless every item sits in exactly one non-empty split."""
        validate_partition(self._order, self.to_partition(check=False))

    @property
    def is_valid(self) -> bool:
        try:
            self.validate()
        except ValidationError:
            return False
        return True

    def to_partition(self, check: bool = True) -> List[List[int]]:
        if check:
            self.validate()
        return [list(split['items']) for split in self.splits]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'unassignedItems': list(self.unassigned_items),
            'splits': [
                {'id': s['id'], 'items': list(s['items']), 'subtotal': format_money(self.subtotal(s['id']))}
                for s in self.splits
            ],
        }


def validate_partition(item_ids: Iterable[int], partition: Any) -> List[List[int]]:
    """
    Check a partition of an order's items.

    Every split non-empty, no item twice, no unknown item, no item left out.
    Returns the partition with ids normalized to int.
    """
    if not isinstance(partition, (list, tuple)) or not partition:
        raise ValidationError('Debe indicar al menos una cuenta')

    expected = [int(i) for i in item_ids]
    expected_set = set(expected)
    seen = set()
    normalized = []

    for index, part in enumerate(partition, start=1):
        if not isinstance(part, (list, tuple)) or not part:
            raise ValidationError(f'La cuenta {index} no tiene productos')
        ids = []
        for raw in part:
            item_id = _item_id(raw)
            if item_id not in expected_set:
                raise ValidationError(f'El ítem {item_id} no pertenece al pedido')
            if item_id in seen:
                raise ValidationError(f'El ítem {item_id} está en más de una cuenta')
            seen.add(item_id)
            ids.append(item_id)
        normalized.append(ids)

    missing = [i for i in expected if i not in seen]
    if missing:
        raise ValidationError(
            f"Hay productos sin asignar: {', '.join(str(i) for i in missing)}"
        )
    return normalized


def preview_split(session: Session, tenant_id: int, order_id: int, partition: Any) -> List[Dict[str, str]]:
    """Per-split financial summary for the current items. Writes nothing."""
    order = get_order(session, tenant_id, order_id)
    partition = validate_partition([i.id for i in order.items], partition)
    by_id = {i.id: i for i in order.items}
    tenant = order.tenant

    previews = []
    for part in partition:
        subtotal = sum((item_total(by_id[i]) for i in part), Decimal('0.00'))
        summary = financial_summary(subtotal, tenant.tax_rate or 0, tenant.service_charge_rate or 0)
        previews.append({
            'items': part,
            'subtotal': format_money(summary['subtotal']),
            'taxAmount': format_money(summary['tax_amount']),
            'serviceChargeAmount': format_money(summary['service_charge_amount']),
            'grandTotal': format_money(summary['grand_total']),
        })
    return previews


def commit_split(session: Session, tenant_id: int, order_id: int, partition: Any,
                 quick_checkout: bool = False, publisher: Optional[EventPublisher] = None) -> List[Invoice]:
    """
    Issue one invoice per split and close the order, all in one transaction.

    The partition is checked against the items stored at commit time, so an
    item added or removed after the session was built fails validation.
    """
    with transaction(session, 'commit_split', 'No se pudo emitir las facturas, intente de nuevo'):
        order, items, tenant = lock_for_close(session, tenant_id, order_id, quick_checkout)
        normalized = validate_partition([i.id for i in items], partition)
        by_id = {i.id: i for i in items}
        position = {i.id: n for n, i in enumerate(items)}

        invoices = []
        for index, part in enumerate(normalized, start=1):
            split_items = sorted((by_id[i] for i in part), key=lambda i: position[i.id])
            invoices.append(issue_invoice(
                session, tenant, order, split_items,
                split={'index': index, 'count': len(normalized)}
            ))
        release_table(session, order)

    after_close(session, order, invoices, publisher)
    logger.info(f"[SPLIT] order {order.id} split into {len(invoices)} invoice(s)")
    return invoices

"""
Integration tests for the order state machine, item mutations and table status.
"""

import pytest
from decimal import Decimal

from comanda.exceptions import ConflictError, NotFoundError, ValidationError
from comanda.models import DiningTable, TableStatus, Order, OrderItem, OrderStatus
from comanda.services import order_service
from comanda.services.order_totals import compute_total
from comanda.services.event_service import (
    TABLE_EVENTS, TABLE_UPDATE, KITCHEN_EVENTS, NEW_ORDER, ORDER_UPDATE, WAITER_EVENTS, ORDER_READY
)


def _advance(session, tenant_id, order_id, *statuses):
    for status in statuses:
        order_service.transition_status(session, tenant_id, order_id, status)


class TestCreateOrder:
    """Opening an order claims the table."""

    def test_table_becomes_occupied(self, session, tenant, table, waiter, publisher):
        order = order_service.create_order(session, tenant.id, table.id, waiter.id)

        assert order.status == OrderStatus.OPEN
        assert order.total == Decimal('0.00')
        assert order.staff_id == waiter.id
        assert session.get(DiningTable, table.id).status == TableStatus.OCCUPIED
        assert publisher.events(TABLE_EVENTS, TABLE_UPDATE)[-1]['data'] == {
            'tableId': table.id, 'status': 'OCCUPIED'
        }

    def test_second_order_on_same_table_conflicts(self, session, tenant, table):
        first = order_service.create_order(session, tenant.id, table.id)

        with pytest.raises(ConflictError):
            order_service.create_order(session, tenant.id, table.id)

        orders = session.query(Order).filter(Order.table_id == table.id).all()
        assert [o.id for o in orders] == [first.id]

    def test_owner_order_has_no_waiter(self, session, tenant, table):
        order = order_service.create_order(session, tenant.id, table.id, None)
        assert order_service.serialize_order(order)['waiterName'] == 'Sin asignar'

    def test_unknown_table(self, session, tenant):
        with pytest.raises(NotFoundError):
            order_service.create_order(session, tenant.id, 999)

    def test_table_of_other_restaurant(self, session, tenant, other_tenant, make_table):
        foreign = make_table('Mesa 1', tenant_id=other_tenant.id)

        with pytest.raises(NotFoundError):
            order_service.create_order(session, tenant.id, foreign.id)
        assert session.get(DiningTable, foreign.id).status == TableStatus.AVAILABLE


class TestItems:
    """Item writes recompute the total from every item."""

    def test_modifiers_and_quantity(self, session, tenant, table, burger, burger_options):
        order = order_service.create_order(session, tenant.id, table.id)

        item = order_service.add_item(
            session, tenant.id, order.id, burger.id, 2,
            [burger_options['BBQ'], {'id': burger_options['Queso']}]
        )

        assert session.get(Order, order.id).total == Decimal('24.00')
        assert item.price == Decimal('10.00')
        assert [m['name'] for m in item.selected_modifiers] == ['BBQ', 'Queso']
        assert [m['price'] for m in item.selected_modifiers] == ['1.50', '0.50']

        order = order_service.update_item_quantity(session, tenant.id, item.id, 0)

        assert order.total == Decimal('0.00')
        assert session.get(OrderItem, item.id) is None

    def test_update_quantity_is_idempotent(self, session, tenant, table, soup, soda):
        order = order_service.create_order(session, tenant.id, table.id)
        order_service.add_item(session, tenant.id, order.id, soup.id, 1)
        item = order_service.add_item(session, tenant.id, order.id, soda.id, 1)

        first = order_service.update_item_quantity(session, tenant.id, item.id, 3).total
        second = order_service.update_item_quantity(session, tenant.id, item.id, 3).total

        assert first == second == Decimal('14.00')

    def test_total_matches_items_after_every_mutation(self, session, tenant, table, soup, soda, burger, burger_options):
        order = order_service.create_order(session, tenant.id, table.id)
        a = order_service.add_item(session, tenant.id, order.id, soup.id, 2)
        b = order_service.add_item(session, tenant.id, order.id, burger.id, 1, [burger_options['BBQ']])
        order_service.add_item(session, tenant.id, order.id, soda.id, 4)
        order_service.update_item_quantity(session, tenant.id, a.id, 1)
        order = order_service.delete_item(session, tenant.id, b.id)

        items = session.query(OrderItem).filter(OrderItem.order_id == order.id).all()
        assert order.total == compute_total(items) == Decimal('17.00')

    def test_price_is_a_snapshot(self, session, tenant, table, soup):
        order = order_service.create_order(session, tenant.id, table.id)
        item = order_service.add_item(session, tenant.id, order.id, soup.id, 1)

        soup.price = Decimal('99.00')
        session.commit()

        assert session.get(OrderItem, item.id).price == Decimal('5.00')
        assert session.get(Order, order.id).total == Decimal('5.00')

    def test_unknown_or_inactive_product(self, session, tenant, table, soup):
        order = order_service.create_order(session, tenant.id, table.id)
        with pytest.raises(NotFoundError):
            order_service.add_item(session, tenant.id, order.id, 999, 1)

        soup.active = False
        session.commit()
        with pytest.raises(NotFoundError):
            order_service.add_item(session, tenant.id, order.id, soup.id, 1)

    def test_option_from_another_product(self, session, tenant, table, soup, burger_options):
        order = order_service.create_order(session, tenant.id, table.id)

        with pytest.raises(ValidationError):
            order_service.add_item(session, tenant.id, order.id, soup.id, 1, [burger_options['BBQ']])
        assert session.query(OrderItem).count() == 0

    @pytest.mark.parametrize('quantity', [0, -1, 'dos', 1.5, True])
    def test_invalid_quantity_on_add(self, session, tenant, table, soup, quantity):
        order = order_service.create_order(session, tenant.id, table.id)

        with pytest.raises(ValidationError):
            order_service.add_item(session, tenant.id, order.id, soup.id, quantity)

    def test_items_are_locked_once_sent_to_kitchen(self, session, tenant, table, soup):
        order = order_service.create_order(session, tenant.id, table.id)
        item = order_service.add_item(session, tenant.id, order.id, soup.id, 1)
        _advance(session, tenant.id, order.id, 'COOKING')

        with pytest.raises(ConflictError):
            order_service.add_item(session, tenant.id, order.id, soup.id, 1)
        with pytest.raises(ConflictError):
            order_service.update_item_quantity(session, tenant.id, item.id, 5)
        with pytest.raises(ConflictError):
            order_service.delete_item(session, tenant.id, item.id)

        assert session.get(Order, order.id).total == Decimal('5.00')


class TestTransitions:
    """State graph and notifications."""

    def test_happy_path_notifications(self, session, tenant, table, soup, publisher):
        order = order_service.create_order(session, tenant.id, table.id)
        order_service.add_item(session, tenant.id, order.id, soup.id, 1, notes='sin sal')

        _advance(session, tenant.id, order.id, 'COOKING', 'READY', 'DELIVERED')

        ticket = publisher.events(KITCHEN_EVENTS, NEW_ORDER)[-1]['data']
        assert ticket['table'] == {'id': table.id, 'name': 'Mesa 5'}
        assert ticket['items'][0]['productName'] == 'Sopa'
        assert ticket['items'][0]['notes'] == 'sin sal'

        assert publisher.events(WAITER_EVENTS, ORDER_READY)[-1]['data'] == {
            'tableId': table.id, 'tableName': 'Mesa 5'
        }
        assert [e['data']['status'] for e in publisher.events(KITCHEN_EVENTS, ORDER_UPDATE)] == [
            'COOKING', 'READY', 'DELIVERED'
        ]

    def test_rollback_resends_full_item_list(self, session, tenant, table, soup, soda, publisher):
        order = order_service.create_order(session, tenant.id, table.id)
        order_service.add_item(session, tenant.id, order.id, soup.id, 1)
        _advance(session, tenant.id, order.id, 'COOKING', 'OPEN')

        order_service.add_item(session, tenant.id, order.id, soda.id, 2)
        _advance(session, tenant.id, order.id, 'COOKING')

        tickets = publisher.events(KITCHEN_EVENTS, NEW_ORDER)
        assert len(tickets) == 2
        assert [i['productName'] for i in tickets[-1]['data']['items']] == ['Sopa', 'Refresco']
        assert tickets[-1]['data']['total'] == '11.00'

    @pytest.mark.parametrize('path,illegal', [
        ([], 'READY'),
        ([], 'DELIVERED'),
        (['COOKING'], 'DELIVERED'),
        (['COOKING', 'READY'], 'COOKING'),
        (['COOKING', 'READY'], 'OPEN'),
        (['COOKING', 'READY', 'DELIVERED'], 'COOKING'),
        (['COOKING', 'READY', 'DELIVERED'], 'READY'),
    ])
    def test_illegal_edges(self, session, tenant, table, soup, path, illegal):
        order = order_service.create_order(session, tenant.id, table.id)
        order_service.add_item(session, tenant.id, order.id, soup.id, 1)
        _advance(session, tenant.id, order.id, *path)
        before = session.get(Order, order.id).status

        with pytest.raises(ConflictError):
            order_service.transition_status(session, tenant.id, order.id, illegal)
        assert session.get(Order, order.id).status == before

    def test_terminal_orders_do_not_move(self, session, tenant, table, soup):
        order = order_service.create_order(session, tenant.id, table.id)
        order_service.add_item(session, tenant.id, order.id, soup.id, 1)
        order_service.cancel_order(session, tenant.id, order.id)

        for status in ('OPEN', 'COOKING', 'CLOSED', 'CANCELED'):
            with pytest.raises(ConflictError):
                order_service.transition_status(session, tenant.id, order.id, status)

    def test_empty_order_cannot_go_to_kitchen(self, session, tenant, table):
        order = order_service.create_order(session, tenant.id, table.id)

        with pytest.raises(ConflictError):
            order_service.transition_status(session, tenant.id, order.id, 'COOKING')
        assert session.get(Order, order.id).status == OrderStatus.OPEN

    def test_unknown_status(self, session, tenant, table):
        order = order_service.create_order(session, tenant.id, table.id)
        with pytest.raises(ValidationError):
            order_service.transition_status(session, tenant.id, order.id, 'BURNT')

    def test_transition_to_closed_checks_out(self, session, tenant, table, soup):
        order = order_service.create_order(session, tenant.id, table.id)
        order_service.add_item(session, tenant.id, order.id, soup.id, 1)
        _advance(session, tenant.id, order.id, 'COOKING', 'READY')

        order = order_service.transition_status(session, tenant.id, order.id, 'CLOSED')

        assert order.status == OrderStatus.CLOSED
        assert len(order.invoices) == 1
        assert session.get(DiningTable, table.id).status == TableStatus.AVAILABLE


class TestCancelAndDelete:
    """Orders leave the table through cancel or delete."""

    def test_cancel_frees_table_and_keeps_row(self, session, tenant, table, soup, publisher):
        order = order_service.create_order(session, tenant.id, table.id)
        order_service.add_item(session, tenant.id, order.id, soup.id, 1)
        _advance(session, tenant.id, order.id, 'COOKING')

        order_service.cancel_order(session, tenant.id, order.id)

        assert session.get(Order, order.id).status == OrderStatus.CANCELED
        assert session.get(DiningTable, table.id).status == TableStatus.AVAILABLE
        assert publisher.events(TABLE_EVENTS, TABLE_UPDATE)[-1]['data']['status'] == 'AVAILABLE'

        # the table can be seated again
        again = order_service.create_order(session, tenant.id, table.id)
        assert again.id != order.id

    def test_delete_empty_open_order(self, session, tenant, table):
        order = order_service.create_order(session, tenant.id, table.id)
        order_id = order.id

        order_service.delete_order(session, tenant.id, order_id)

        assert session.get(Order, order_id) is None
        assert session.get(DiningTable, table.id).status == TableStatus.AVAILABLE

    def test_delete_with_items_conflicts(self, session, tenant, table, soup):
        order = order_service.create_order(session, tenant.id, table.id)
        order_service.add_item(session, tenant.id, order.id, soup.id, 1)

        with pytest.raises(ConflictError):
            order_service.delete_order(session, tenant.id, order.id)
        assert session.get(DiningTable, table.id).status == TableStatus.OCCUPIED

    def test_delete_sent_order_conflicts(self, session, tenant, table, soup):
        order = order_service.create_order(session, tenant.id, table.id)
        order_service.add_item(session, tenant.id, order.id, soup.id, 1)
        _advance(session, tenant.id, order.id, 'COOKING')

        with pytest.raises(ConflictError):
            order_service.delete_order(session, tenant.id, order.id)


class TestQueries:
    """Order lookups."""

    def test_active_order_for_table(self, session, tenant, table):
        with pytest.raises(NotFoundError):
            order_service.get_active_order_for_table(session, tenant.id, table.id)

        order = order_service.create_order(session, tenant.id, table.id)
        assert order_service.get_active_order_for_table(session, tenant.id, table.id).id == order.id

    def test_kitchen_queue_oldest_first(self, session, tenant, make_table, soup):
        ids = []
        for name in ('Mesa 1', 'Mesa 2', 'Mesa 3'):
            order = order_service.create_order(session, tenant.id, make_table(name).id)
            order_service.add_item(session, tenant.id, order.id, soup.id, 1)
            ids.append(order.id)
        _advance(session, tenant.id, ids[0], 'COOKING')
        _advance(session, tenant.id, ids[2], 'COOKING')
        order_service.cancel_order(session, tenant.id, ids[1])

        assert [o.id for o in order_service.list_kitchen_orders(session, tenant.id)] == [ids[0], ids[2]]
        assert [o.id for o in order_service.list_kitchen_orders(session, tenant.id, ['COOKING'])] == [ids[0], ids[2]]
        assert order_service.list_kitchen_orders(session, tenant.id, ['READY']) == []

        with pytest.raises(ValidationError):
            order_service.list_kitchen_orders(session, tenant.id, ['CLOSED'])

    def test_other_restaurant_sees_nothing(self, session, tenant, other_tenant, table):
        order = order_service.create_order(session, tenant.id, table.id)

        with pytest.raises(NotFoundError):
            order_service.get_order(session, other_tenant.id, order.id)
        with pytest.raises(NotFoundError):
            order_service.cancel_order(session, other_tenant.id, order.id)
        assert session.get(Order, order.id).status == OrderStatus.OPEN

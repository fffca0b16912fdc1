"""
Unit tests for invoice numbering format and the snapshot builder.
"""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from comanda.services.invoice_service import (
    build_invoice_data, format_invoice_number, format_rate, waiter_name
)


def _order(staff=None):
    return SimpleNamespace(id=7, staff=staff, staff_id=staff.id if staff else None,
                           table=SimpleNamespace(name='Mesa 5'))


def _item(item_id, name, price, quantity, modifiers=None, notes=None):
    return SimpleNamespace(
        id=item_id,
        product=SimpleNamespace(name=name),
        price=Decimal(price),
        quantity=quantity,
        selected_modifiers=modifiers or [],
        notes=notes,
    )


TENANT = SimpleNamespace(
    id=1, name='La Esquina', restaurant_address='Av. Principal 123', tax_id='J-30123456-7',
    tax_rate=Decimal('0.1200'), service_charge_rate=Decimal('0.1000'),
)


class TestFormatting:
    """Tests for invoice number and rate formatting."""

    def test_invoice_number_is_zero_padded(self):
        assert format_invoice_number(2026, 1) == 'F-2026-00001'
        assert format_invoice_number(2026, 12345) == 'F-2026-12345'

    def test_rates_drop_trailing_zeros(self):
        assert format_rate(Decimal('0.1200')) == '0.12'
        assert format_rate(Decimal('0.0000')) == '0'
        assert format_rate('0.125') == '0.125'

    def test_waiter_name_fallback(self):
        assert waiter_name(_order()) == 'Sin asignar'
        assert waiter_name(_order(SimpleNamespace(id=3, name='Luis'))) == 'Luis'


class TestBuildInvoiceData:
    """Tests for the immutable invoice snapshot."""

    def test_financial_summary_for_sample_order(self):
        items = [_item(1, 'Sopa', '5.00', 1), _item(2, 'Refresco', '3.00', 2)]
        issued_at = datetime(2026, 3, 1, 20, 30, tzinfo=timezone.utc)

        data = build_invoice_data(TENANT, _order(), items, 'F-2026-00001', issued_at)

        assert data['financialSummary'] == {
            'subtotal': '11.00',
            'taxRate': '0.12',
            'taxAmount': '1.32',
            'serviceChargeRate': '0.1',
            'serviceChargeAmount': '1.10',
            'grandTotal': '13.42',
        }
        assert data['restaurantInfo'] == {
            'name': 'La Esquina', 'address': 'Av. Principal 123', 'taxId': 'J-30123456-7'
        }
        assert data['saleInfo'] == {
            'invoiceNumber': 'F-2026-00001',
            'date': issued_at.isoformat(),
            'waiterName': 'Sin asignar',
            'tableName': 'Mesa 5',
            'orderId': 7,
        }
        assert 'split' not in data

    def test_line_items_carry_modifiers_and_notes(self):
        item = _item(9, 'Hamburguesa', '10.00', 2,
                     modifiers=[{'id': 4, 'name': 'BBQ', 'price': '1.5'}], notes='sin cebolla')

        data = build_invoice_data(TENANT, _order(), [item], 'F-2026-00002',
                                  datetime(2026, 3, 1, tzinfo=timezone.utc))

        assert data['items'] == [{
            'itemId': 9,
            'quantity': 2,
            'productName': 'Hamburguesa',
            'unitPrice': '10.00',
            'modifiers': [{'id': 4, 'name': 'BBQ', 'price': '1.50'}],
            'notes': 'sin cebolla',
            'itemTotal': '23.00',
        }]
        assert data['financialSummary']['subtotal'] == '23.00'

    def test_split_marker(self):
        data = build_invoice_data(TENANT, _order(), [_item(1, 'Sopa', '5.00', 1)], 'F-2026-00003',
                                  datetime(2026, 3, 1, tzinfo=timezone.utc), split={'index': 2, 'count': 3})

        assert data['split'] == {'index': 2, 'count': 3}

"""
Money helpers for orders and invoices.

The order total is always recomputed from the full item list; incremental
add/subtract arithmetic is never used.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable, Mapping, Union

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

Number = Union[int, float, str, Decimal]


def to_money(value: Number) -> Decimal:
    """Convert to Decimal rounded to cents (half up)."""
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValueError(f'Monto inválido: {value!r}')
    if not amount.is_finite():
        raise ValueError(f'Monto inválido: {value!r}')
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Number) -> str:
    """Fixed-point string with two decimals ('13.42')."""
    return f"{to_money(value):.2f}"


def _field(item: Any, name: str):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name)


def modifiers_total(selected_modifiers) -> Decimal:
    """Sum of modifier snapshot prices."""
    total = ZERO
    for modifier in selected_modifiers or []:
        total += to_money(_field(modifier, 'price') or 0)
    return total


def item_total(item: Any) -> Decimal:
    """(price + sum(modifier prices)) * quantity, never negative."""
    quantity = int(_field(item, 'quantity') or 0)
    if quantity <= 0:
        return ZERO
    unit = to_money(_field(item, 'price') or 0) + modifiers_total(_field(item, 'selected_modifiers'))
    return max(to_money(unit * quantity), ZERO)


def compute_total(items: Iterable[Any]) -> Decimal:
    """Order total from scratch: sum of item totals."""
    total = ZERO
    for item in items:
        total += item_total(item)
    return to_money(total)


def financial_summary(subtotal: Number, tax_rate: Number, service_charge_rate: Number) -> dict:
    """
    Invoice financial summary as Decimals.

    grand_total = subtotal * (1 + tax_rate + service_charge_rate), rounded
    once. The tax and service-charge amounts are rounded for display only and
    never summed back into the total.
    """
    subtotal = to_money(subtotal)
    tax_rate = Decimal(str(tax_rate))
    service_charge_rate = Decimal(str(service_charge_rate))

    tax_amount = to_money(subtotal * tax_rate)
    service_charge_amount = to_money(subtotal * service_charge_rate)
    grand_total = to_money(subtotal * (1 + tax_rate + service_charge_rate))

    return {
        'subtotal': subtotal,
        'tax_rate': tax_rate,
        'tax_amount': tax_amount,
        'service_charge_rate': service_charge_rate,
        'service_charge_amount': service_charge_amount,
        'grand_total': grand_total,
    }

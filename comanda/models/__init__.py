"""Models package - exports all SQLAlchemy models."""
# Restaurant accounts
from comanda.models.tenant import Tenant
from comanda.models.app_user import AppUser
from comanda.models.staff import Staff, Role

# Menu catalog
from comanda.models.category import Category
from comanda.models.product import Product
from comanda.models.modifier import ModifierGroup, ModifierOption

# Floor and orders
from comanda.models.dining_table import DiningTable, TableStatus
from comanda.models.order import Order, OrderStatus, ACTIVE_ORDER_STATUSES, TERMINAL_ORDER_STATUSES
from comanda.models.order_item import OrderItem
from comanda.models.invoice import Invoice, InvoiceSequence

__all__ = [
    'Tenant', 'AppUser', 'Staff', 'Role',
    'Category', 'Product', 'ModifierGroup', 'ModifierOption',
    'DiningTable', 'TableStatus',
    'Order', 'OrderStatus', 'ACTIVE_ORDER_STATUSES', 'TERMINAL_ORDER_STATUSES',
    'OrderItem', 'Invoice', 'InvoiceSequence',
]

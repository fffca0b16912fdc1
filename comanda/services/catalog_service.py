"""
Menu catalog service - categories, products and modifier groups/options.

Every query is restaurant-scoped: rows of another tenant behave as missing.
Deletions never cascade into history; a referenced row raises ConflictError.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from comanda.exceptions import ConflictError, NotFoundError, ValidationError
from comanda.models import (
    Category, Product, ModifierGroup, ModifierOption,
    Order, OrderItem, ACTIVE_ORDER_STATUSES
)
from comanda.services.cache_service import get_cache
from comanda.services.order_totals import to_money, format_money
from comanda.utils.transactions import transaction

logger = logging.getLogger(__name__)

CACHE_MODULE = 'catalog'


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------

def serialize_category(category: Category) -> Dict[str, Any]:
    return {'id': category.id, 'name': category.name}


def serialize_option(option: ModifierOption) -> Dict[str, Any]:
    return {
        'id': option.id,
        'groupId': option.group_id,
        'name': option.name,
        'price': format_money(option.price),
        'position': option.position,
    }


def serialize_group(group: ModifierGroup) -> Dict[str, Any]:
    return {
        'id': group.id,
        'productId': group.product_id,
        'name': group.name,
        'position': group.position,
        'options': [serialize_option(o) for o in group.options],
    }


def serialize_product(product: Product, with_modifiers: bool = False) -> Dict[str, Any]:
    data = {
        'id': product.id,
        'name': product.name,
        'description': product.description,
        'price': format_money(product.price),
        'active': product.active,
        'categoryId': product.category_id,
        'category': serialize_category(product.category) if product.category else None,
    }
    if with_modifiers:
        data['modifierGroups'] = [serialize_group(g) for g in product.modifier_groups]
    return data


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _require_name(name: Optional[str], label: str = 'El nombre') -> str:
    name = (name or '').strip()
    if not name:
        raise ValidationError(f'{label} es requerido')
    return name


def _parse_price(value: Any, label: str = 'El precio') -> Decimal:
    if value is None or value == '':
        raise ValidationError(f'{label} es requerido')
    if isinstance(value, bool):
        raise ValidationError(f'{label} debe ser numérico')
    try:
        price = to_money(value)
    except ValueError:
        raise ValidationError(f'{label} debe ser numérico')
    if price < 0:
        raise ValidationError(f'{label} no puede ser negativo')
    return price


def _parse_position(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('La posición debe ser un número entero')


def _parse_category_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError('La categoría debe ser un identificador numérico')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('La categoría debe ser un identificador numérico')


def _invalidate(tenant_id: int) -> None:
    get_cache().invalidate_module(tenant_id, CACHE_MODULE)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def _get_category(session: Session, tenant_id: int, category_id: int) -> Category:
    category = session.query(Category).filter(
        Category.id == category_id,
        Category.tenant_id == tenant_id
    ).first()
    if not category:
        raise NotFoundError(f'Categoría con ID {category_id} no encontrada')
    return category


def _get_product(session: Session, tenant_id: int, product_id: int) -> Product:
    product = session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id
    ).first()
    if not product:
        raise NotFoundError(f'Producto con ID {product_id} no encontrado')
    return product


def _get_group(session: Session, tenant_id: int, group_id: int) -> ModifierGroup:
    group = session.query(ModifierGroup).join(Product).filter(
        ModifierGroup.id == group_id,
        Product.tenant_id == tenant_id
    ).first()
    if not group:
        raise NotFoundError(f'Grupo de modificadores con ID {group_id} no encontrado')
    return group


def _get_option(session: Session, tenant_id: int, option_id: int) -> ModifierOption:
    option = session.query(ModifierOption).join(ModifierGroup).join(Product).filter(
        ModifierOption.id == option_id,
        Product.tenant_id == tenant_id
    ).first()
    if not option:
        raise NotFoundError(f'Opción con ID {option_id} no encontrada')
    return option


def get_product_with_modifiers(session: Session, tenant_id: int, product_id: int) -> Product:
    """
    Product with its category and modifier groups/options eagerly loaded.

    Groups and options come ordered by (position, created_at, id).
    """
    product = session.query(Product).options(
        selectinload(Product.category),
        selectinload(Product.modifier_groups).selectinload(ModifierGroup.options)
    ).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id
    ).first()
    if not product:
        raise NotFoundError(f'Producto con ID {product_id} no encontrado')
    return product


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories(session: Session, tenant_id: int) -> List[Category]:
    return session.query(Category).filter(
        Category.tenant_id == tenant_id
    ).order_by(Category.name, Category.id).all()


def create_category(session: Session, tenant_id: int, name: str) -> Category:
    name = _require_name(name)
    with transaction(session, 'create_category'):
        category = Category(tenant_id=tenant_id, name=name)
        session.add(category)
    _invalidate(tenant_id)
    return category


def update_category(session: Session, tenant_id: int, category_id: int, name: str) -> Category:
    name = _require_name(name)
    with transaction(session, 'update_category'):
        category = _get_category(session, tenant_id, category_id)
        category.name = name
    _invalidate(tenant_id)
    return category


def delete_category(session: Session, tenant_id: int, category_id: int) -> None:
    with transaction(session, 'delete_category'):
        category = _get_category(session, tenant_id, category_id)
        in_use = session.query(Product.id).filter(
            Product.category_id == category.id,
            Product.tenant_id == tenant_id
        ).first()
        if in_use:
            raise ConflictError('No se puede eliminar la categoría: tiene productos asociados')
        session.delete(category)
    _invalidate(tenant_id)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def list_products(session: Session, tenant_id: int, category_id: Optional[int] = None,
                  include_inactive: bool = False, ttl: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Serialized product list, read through the catalog cache.

    Cached values are only for menu browsing; add_item always reads the
    product row fresh.
    """
    key = f"products:{category_id or 'all'}:{'all' if include_inactive else 'active'}"

    def _load():
        query = session.query(Product).options(
            selectinload(Product.category)
        ).filter(Product.tenant_id == tenant_id)
        if category_id:
            query = query.filter(Product.category_id == category_id)
        if not include_inactive:
            query = query.filter(Product.active == True)  # noqa: E712
        return [serialize_product(p) for p in query.order_by(Product.name, Product.id).all()]

    return get_cache().memoize(tenant_id, CACHE_MODULE, key, _load, ttl)


def _apply_product_fields(session: Session, tenant_id: int, product: Product, data: Dict[str, Any]) -> None:
    if 'name' in data:
        product.name = _require_name(data.get('name'))
    if 'price' in data:
        product.price = _parse_price(data.get('price'))
    if 'description' in data:
        product.description = (data.get('description') or '').strip() or None
    if 'active' in data:
        product.active = bool(data.get('active'))
    if 'category_id' in data:
        category_id = data.get('category_id')
        if category_id:
            product.category_id = _get_category(session, tenant_id, _parse_category_id(category_id)).id
        else:
            product.category_id = None


def create_product(session: Session, tenant_id: int, data: Dict[str, Any]) -> Product:
    """Create a product. Requires name and price; category is optional."""
    _require_name(data.get('name'))
    _parse_price(data.get('price'))

    with transaction(session, 'create_product'):
        product = Product(tenant_id=tenant_id, active=True)
        _apply_product_fields(session, tenant_id, product, data)
        session.add(product)
    _invalidate(tenant_id)
    logger.info(f"[CATALOG] product {product.id} created for tenant {tenant_id}")
    return product


def update_product(session: Session, tenant_id: int, product_id: int, data: Dict[str, Any]) -> Product:
    """
    Update product fields.

    Prices of items already on orders are snapshots and do not change.
    """
    with transaction(session, 'update_product'):
        product = _get_product(session, tenant_id, product_id)
        _apply_product_fields(session, tenant_id, product, data)
    _invalidate(tenant_id)
    return product


def delete_product(session: Session, tenant_id: int, product_id: int) -> None:
    with transaction(session, 'delete_product'):
        product = _get_product(session, tenant_id, product_id)
        referenced = session.query(OrderItem.id).filter(
            OrderItem.product_id == product.id
        ).first()
        if referenced:
            raise ConflictError(
                'No se puede eliminar el producto: figura en pedidos. Desactívelo en su lugar'
            )
        session.delete(product)
    _invalidate(tenant_id)


# ---------------------------------------------------------------------------
# Modifiers
# ---------------------------------------------------------------------------

def _option_ids_in_active_orders(session: Session, tenant_id: int, option_ids) -> bool:
    """True when any option id appears in an item snapshot of a non-terminal order."""
    wanted = {int(i) for i in option_ids}
    if not wanted:
        return False
    rows = session.query(OrderItem.selected_modifiers).join(Order).filter(
        Order.tenant_id == tenant_id,
        Order.status.in_(ACTIVE_ORDER_STATUSES)
    ).all()
    for (snapshot,) in rows:
        for modifier in snapshot or []:
            try:
                if int(modifier.get('id')) in wanted:
                    return True
            except (TypeError, ValueError, AttributeError):
                continue
    return False


def _next_position(session: Session, column, *criteria) -> int:
    current = session.query(func.max(column)).filter(*criteria).scalar()
    return 0 if current is None else current + 1


def create_modifier_group(session: Session, tenant_id: int, product_id: int,
                          name: str, position: Optional[int] = None) -> ModifierGroup:
    name = _require_name(name)
    with transaction(session, 'create_modifier_group'):
        product = _get_product(session, tenant_id, product_id)
        if position is None:
            position = _next_position(session, ModifierGroup.position, ModifierGroup.product_id == product.id)
        group = ModifierGroup(product_id=product.id, name=name, position=_parse_position(position))
        session.add(group)
    _invalidate(tenant_id)
    return group


def delete_modifier_group(session: Session, tenant_id: int, group_id: int) -> None:
    with transaction(session, 'delete_modifier_group'):
        group = _get_group(session, tenant_id, group_id)
        if _option_ids_in_active_orders(session, tenant_id, [o.id for o in group.options]):
            raise ConflictError('No se puede eliminar el grupo: sus opciones están en pedidos abiertos')
        session.delete(group)
    _invalidate(tenant_id)


def create_modifier_option(session: Session, tenant_id: int, group_id: int, name: str,
                           price: Any = 0, position: Optional[int] = None) -> ModifierOption:
    name = _require_name(name)
    price = _parse_price(price)
    with transaction(session, 'create_modifier_option'):
        group = _get_group(session, tenant_id, group_id)
        if position is None:
            position = _next_position(session, ModifierOption.position, ModifierOption.group_id == group.id)
        option = ModifierOption(group_id=group.id, name=name, price=price, position=_parse_position(position))
        session.add(option)
    _invalidate(tenant_id)
    return option


def update_modifier_option(session: Session, tenant_id: int, option_id: int, data: Dict[str, Any]) -> ModifierOption:
    with transaction(session, 'update_modifier_option'):
        option = _get_option(session, tenant_id, option_id)
        if 'name' in data:
            option.name = _require_name(data.get('name'))
        if 'price' in data:
            option.price = _parse_price(data.get('price'))
        if 'position' in data:
            option.position = _parse_position(data.get('position'))
    _invalidate(tenant_id)
    return option


def delete_modifier_option(session: Session, tenant_id: int, option_id: int) -> None:
    with transaction(session, 'delete_modifier_option'):
        option = _get_option(session, tenant_id, option_id)
        if _option_ids_in_active_orders(session, tenant_id, [option.id]):
            raise ConflictError('No se puede eliminar la opción: está en pedidos abiertos')
        session.delete(option)
    _invalidate(tenant_id)

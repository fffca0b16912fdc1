"""Catalog blueprint - categories, products and modifiers (JSON)."""
from flask import Blueprint, jsonify, g, request

from comanda.database import get_session
from comanda.middleware import require_login, require_manager
from comanda.services import catalog_service
from comanda.utils.request_parsing import json_body

catalog_bp = Blueprint('catalog', __name__, url_prefix='/catalog')


def _product_fields(data):
    """Map the JSON body onto the service's field names (only keys that were sent)."""
    mapping = {
        'name': 'name',
        'price': 'price',
        'description': 'description',
        'active': 'active',
        'categoryId': 'category_id',
    }
    return {field: data[key] for key, field in mapping.items() if key in data}


# ============================================================================
# Categories
# ============================================================================

@catalog_bp.route('/categories', methods=['GET'])
@require_login
def list_categories():
    categories = catalog_service.list_categories(get_session(), g.tenant_id)
    return jsonify([catalog_service.serialize_category(c) for c in categories])


@catalog_bp.route('/categories', methods=['POST'])
@require_login
@require_manager
def create_category():
    category = catalog_service.create_category(get_session(), g.tenant_id, json_body().get('name'))
    return jsonify(catalog_service.serialize_category(category)), 201


@catalog_bp.route('/categories/<int:category_id>', methods=['PUT'])
@require_login
@require_manager
def update_category(category_id: int):
    category = catalog_service.update_category(get_session(), g.tenant_id, category_id, json_body().get('name'))
    return jsonify(catalog_service.serialize_category(category))


@catalog_bp.route('/categories/<int:category_id>', methods=['DELETE'])
@require_login
@require_manager
def delete_category(category_id: int):
    catalog_service.delete_category(get_session(), g.tenant_id, category_id)
    return jsonify({'status': 'ok'})


# ============================================================================
# Products
# ============================================================================

@catalog_bp.route('/products', methods=['GET'])
@require_login
def list_products():
    category_id = request.args.get('category_id', type=int)
    include_inactive = request.args.get('include_inactive') == '1'
    return jsonify(catalog_service.list_products(get_session(), g.tenant_id, category_id, include_inactive))


@catalog_bp.route('/products/<int:product_id>', methods=['GET'])
@require_login
def get_product(product_id: int):
    product = catalog_service.get_product_with_modifiers(get_session(), g.tenant_id, product_id)
    return jsonify(catalog_service.serialize_product(product, with_modifiers=True))


@catalog_bp.route('/products', methods=['POST'])
@require_login
@require_manager
def create_product():
    session = get_session()
    product = catalog_service.create_product(session, g.tenant_id, _product_fields(json_body()))
    product = catalog_service.get_product_with_modifiers(session, g.tenant_id, product.id)
    return jsonify(catalog_service.serialize_product(product, with_modifiers=True)), 201


@catalog_bp.route('/products/<int:product_id>', methods=['PUT'])
@require_login
@require_manager
def update_product(product_id: int):
    session = get_session()
    catalog_service.update_product(session, g.tenant_id, product_id, _product_fields(json_body()))
    product = catalog_service.get_product_with_modifiers(session, g.tenant_id, product_id)
    return jsonify(catalog_service.serialize_product(product, with_modifiers=True))


@catalog_bp.route('/products/<int:product_id>', methods=['DELETE'])
@require_login
@require_manager
def delete_product(product_id: int):
    catalog_service.delete_product(get_session(), g.tenant_id, product_id)
    return jsonify({'status': 'ok'})


# ============================================================================
# Modifiers
# ============================================================================

@catalog_bp.route('/products/<int:product_id>/modifier-groups', methods=['POST'])
@require_login
@require_manager
def create_modifier_group(product_id: int):
    data = json_body()
    group = catalog_service.create_modifier_group(
        get_session(), g.tenant_id, product_id, data.get('name'), data.get('position')
    )
    return jsonify(catalog_service.serialize_group(group)), 201


@catalog_bp.route('/modifier-groups/<int:group_id>', methods=['DELETE'])
@require_login
@require_manager
def delete_modifier_group(group_id: int):
    catalog_service.delete_modifier_group(get_session(), g.tenant_id, group_id)
    return jsonify({'status': 'ok'})


@catalog_bp.route('/modifier-groups/<int:group_id>/options', methods=['POST'])
@require_login
@require_manager
def create_modifier_option(group_id: int):
    data = json_body()
    option = catalog_service.create_modifier_option(
        get_session(), g.tenant_id, group_id, data.get('name'), data.get('price', 0), data.get('position')
    )
    return jsonify(catalog_service.serialize_option(option)), 201


@catalog_bp.route('/modifier-options/<int:option_id>', methods=['PUT'])
@require_login
@require_manager
def update_modifier_option(option_id: int):
    option = catalog_service.update_modifier_option(get_session(), g.tenant_id, option_id, json_body())
    return jsonify(catalog_service.serialize_option(option))


@catalog_bp.route('/modifier-options/<int:option_id>', methods=['DELETE'])
@require_login
@require_manager
def delete_modifier_option(option_id: int):
    catalog_service.delete_modifier_option(get_session(), g.tenant_id, option_id)
    return jsonify({'status': 'ok'})

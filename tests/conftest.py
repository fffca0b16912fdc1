import pytest
from decimal import Decimal

from comanda import create_app
from comanda.database import get_session, create_schema, drop_schema
from comanda.models import (
    Tenant, AppUser, Role, Staff, DiningTable, TableStatus,
    Category, Product, ModifierGroup, ModifierOption
)
from comanda.services.auth_service import OwnerPrincipal, StaffPrincipal, issue_token


@pytest.fixture(scope='function')
def app():
    """Application on a fresh in-memory SQLite schema."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_schema()
        yield app
        get_session().remove()
        drop_schema()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session shared with the services."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def publisher(app):
    """In-memory publisher the services publish to."""
    return app.extensions['events']


@pytest.fixture(scope='function')
def tenant(session):
    """Restaurant with 12% tax and 10% service charge."""
    tenant = Tenant(
        slug='la-esquina',
        name='La Esquina',
        restaurant_address='Av. Principal 123',
        tax_id='J-30123456-7',
        tax_rate=Decimal('0.12'),
        service_charge_rate=Decimal('0.10'),
        active=True
    )
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def other_tenant(session):
    """Second restaurant for isolation tests."""
    tenant = Tenant(slug='el-puerto', name='El Puerto', active=True)
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def owner(session, tenant):
    user = AppUser(tenant_id=tenant.id, email='duena@laesquina.com', full_name='Ana Duarte', active=True)
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def waiter(session, tenant):
    """Staff member with the plain waiter role (PIN 1234)."""
    role = Role(tenant_id=tenant.id, name='Mesero', is_manager=False)
    session.add(role)
    session.flush()
    staff = Staff(tenant_id=tenant.id, role_id=role.id, name='Luis Pérez', active=True)
    staff.set_pin('1234')
    session.add(staff)
    session.commit()
    return staff


@pytest.fixture(scope='function')
def manager(session, tenant):
    """Staff member with a manager role (PIN 9999)."""
    role = Role(tenant_id=tenant.id, name='Gerente', is_manager=True)
    session.add(role)
    session.flush()
    staff = Staff(tenant_id=tenant.id, role_id=role.id, name='Marta Gómez', active=True)
    staff.set_pin('9999')
    session.add(staff)
    session.commit()
    return staff


@pytest.fixture(scope='function')
def make_table(session, tenant):
    """Factory: available table in the main restaurant."""
    def _make(name, tenant_id=None):
        table = DiningTable(tenant_id=tenant_id or tenant.id, name=name, status=TableStatus.AVAILABLE)
        session.add(table)
        session.commit()
        return table
    return _make


@pytest.fixture(scope='function')
def table(make_table):
    return make_table('Mesa 5')


@pytest.fixture(scope='function')
def category(session, tenant):
    category = Category(tenant_id=tenant.id, name='Platos fuertes')
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(session, tenant, category):
    """Factory: active product, optionally with modifier groups {group: [(option, price)]}."""
    def _make(name, price, modifiers=None, tenant_id=None):
        product = Product(
            tenant_id=tenant_id or tenant.id,
            category_id=category.id if tenant_id in (None, tenant.id) else None,
            name=name,
            price=Decimal(price),
            active=True
        )
        session.add(product)
        session.flush()
        for position, (group_name, options) in enumerate((modifiers or {}).items()):
            group = ModifierGroup(product_id=product.id, name=group_name, position=position)
            session.add(group)
            session.flush()
            for option_position, (option_name, option_price) in enumerate(options):
                session.add(ModifierOption(
                    group_id=group.id,
                    name=option_name,
                    price=Decimal(option_price),
                    position=option_position
                ))
        session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def burger(make_product):
    """10.00 burger with sauce (+1.50 BBQ) and extras (+0.50 cheese)."""
    return make_product('Hamburguesa', '10.00', {
        'Salsa': [('BBQ', '1.50'), ('Mostaza', '0.00')],
        'Extras': [('Queso', '0.50')],
    })


@pytest.fixture(scope='function')
def burger_options(session, burger):
    """Option ids of the burger by name."""
    options = session.query(ModifierOption).join(ModifierGroup).filter(
        ModifierGroup.product_id == burger.id
    ).all()
    return {o.name: o.id for o in options}


@pytest.fixture(scope='function')
def soup(make_product):
    return make_product('Sopa', '5.00')


@pytest.fixture(scope='function')
def soda(make_product):
    return make_product('Refresco', '3.00')


def _headers(app, principal):
    token = issue_token(principal, app.config['JWT_SECRET'], 3600)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(app, owner):
    return _headers(app, OwnerPrincipal(owner.id, owner.tenant_id, owner.full_name))


@pytest.fixture(scope='function')
def waiter_headers(app, waiter):
    return _headers(app, StaffPrincipal(waiter.id, waiter.tenant_id, waiter.name, role_name='Mesero'))


@pytest.fixture(scope='function')
def manager_headers(app, manager):
    return _headers(app, StaffPrincipal(manager.id, manager.tenant_id, manager.name, role_name='Gerente', is_manager=True))

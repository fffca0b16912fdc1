"""
Integration tests for staff and role management, owner sign-up and token revocation.
"""

import pytest

from comanda.exceptions import ConflictError, NotFoundError, ValidationError, UnauthorizedError
from comanda.models import Role, Staff, Order
from comanda.services import staff_service, order_service
from comanda.services.auth_service import authenticate_staff, StaffPrincipal, verify_principal


class TestRoles:
    """Role CRUD."""

    def test_create_and_list_sorted(self, session, tenant, other_tenant):
        staff_service.create_role(session, tenant.id, 'Mesero')
        staff_service.create_role(session, tenant.id, ' Cocina ')
        staff_service.create_role(session, other_tenant.id, 'Ajeno')

        roles = staff_service.list_roles(session, tenant.id)
        assert [r.name for r in roles] == ['Cocina', 'Mesero']

    def test_duplicate_name_conflicts(self, session, tenant):
        staff_service.create_role(session, tenant.id, 'Cocina')

        with pytest.raises(ConflictError):
            staff_service.create_role(session, tenant.id, 'Cocina')

    def test_blank_name(self, session, tenant):
        with pytest.raises(ValidationError):
            staff_service.create_role(session, tenant.id, '  ')

    def test_delete_held_role_conflicts(self, session, tenant, waiter):
        with pytest.raises(ConflictError):
            staff_service.delete_role(session, tenant.id, waiter.role_id)
        assert session.get(Role, waiter.role_id) is not None

    def test_deactivated_staff_still_hold_their_role(self, session, tenant, waiter):
        staff_service.deactivate_staff(session, tenant.id, waiter.id)

        with pytest.raises(ConflictError):
            staff_service.delete_role(session, tenant.id, waiter.role_id)

    def test_delete_unused_role(self, session, tenant):
        role = staff_service.create_role(session, tenant.id, 'Barra')
        role_id = role.id

        staff_service.delete_role(session, tenant.id, role_id)

        assert session.get(Role, role_id) is None

    def test_role_of_other_restaurant(self, session, tenant, other_tenant):
        foreign = staff_service.create_role(session, other_tenant.id, 'Ajeno')

        with pytest.raises(NotFoundError):
            staff_service.delete_role(session, tenant.id, foreign.id)


class TestStaffManagement:
    """Listing, editing and deactivating staff."""

    def test_list_hides_inactive(self, session, tenant, waiter, manager):
        staff_service.deactivate_staff(session, tenant.id, waiter.id)

        assert [s.name for s in staff_service.list_staff(session, tenant.id)] == ['Marta Gómez']
        assert len(staff_service.list_staff(session, tenant.id, include_inactive=True)) == 2

    def test_create_with_existing_role(self, session, tenant, manager):
        staff = staff_service.create_staff(session, tenant.id, 'Sofía', '5555', role_id=manager.role_id)

        assert staff.is_manager is True

    def test_create_with_unknown_role(self, session, tenant):
        with pytest.raises(NotFoundError):
            staff_service.create_staff(session, tenant.id, 'Sofía', '5555', role_id=999)
        assert session.query(Staff).count() == 0

    def test_update_name_role_and_pin(self, session, tenant, waiter, manager):
        staff = staff_service.update_staff(session, tenant.id, waiter.id, {
            'name': 'Luis P.', 'roleId': manager.role_id, 'pin': '4321'
        })

        assert staff.name == 'Luis P.'
        assert staff.role.name == 'Gerente'
        assert authenticate_staff(session, 'la-esquina', '4321').is_manager is True
        with pytest.raises(UnauthorizedError):
            authenticate_staff(session, 'la-esquina', '1234')

    def test_update_to_pin_in_use(self, session, tenant, waiter, manager):
        with pytest.raises(ValidationError):
            staff_service.update_staff(session, tenant.id, waiter.id, {'pin': '9999'})

    def test_keeping_own_pin_is_allowed(self, session, tenant, waiter):
        staff_service.update_staff(session, tenant.id, waiter.id, {'pin': '1234'})

        assert authenticate_staff(session, 'la-esquina', '1234').id == waiter.id

    def test_deactivated_staff_cannot_log_in(self, session, tenant, waiter):
        staff_service.deactivate_staff(session, tenant.id, waiter.id)

        with pytest.raises(UnauthorizedError):
            authenticate_staff(session, 'la-esquina', '1234')

    def test_deactivation_keeps_order_history(self, session, tenant, table, soup, waiter):
        order = order_service.create_order(session, tenant.id, table.id, waiter.id)

        staff_service.deactivate_staff(session, tenant.id, waiter.id)

        assert session.get(Order, order.id).staff_id == waiter.id
        assert session.get(Staff, waiter.id).active is False

    def test_reactivation_needs_new_pin(self, session, tenant, waiter):
        staff_service.deactivate_staff(session, tenant.id, waiter.id)
        staff_service.create_staff(session, tenant.id, 'Nuevo', '1234')

        with pytest.raises(ValidationError):
            staff_service.update_staff(session, tenant.id, waiter.id, {'active': True})
        with pytest.raises(ValidationError):
            staff_service.update_staff(session, tenant.id, waiter.id, {'active': True, 'pin': '1234'})

        staff = staff_service.update_staff(session, tenant.id, waiter.id, {'active': True, 'pin': '2468'})
        assert staff.active is True

    def test_staff_of_other_restaurant(self, session, other_tenant, waiter):
        with pytest.raises(NotFoundError):
            staff_service.deactivate_staff(session, other_tenant.id, waiter.id)


class TestVerifyPrincipal:
    """Decoded tokens are checked against the account as it is now."""

    def test_inactive_staff_is_revoked(self, session, tenant, waiter):
        principal = StaffPrincipal(waiter.id, tenant.id, waiter.name)
        staff_service.deactivate_staff(session, tenant.id, waiter.id)

        with pytest.raises(UnauthorizedError):
            verify_principal(session, principal)

    def test_manager_rights_follow_the_role(self, session, tenant, manager):
        principal = StaffPrincipal(manager.id, tenant.id, manager.name, is_manager=True)
        staff_service.update_role(session, tenant.id, manager.role_id, {'isManager': False})

        assert verify_principal(session, principal).can_manage(tenant.id) is False

    def test_staff_id_from_other_restaurant(self, session, other_tenant, waiter):
        with pytest.raises(UnauthorizedError):
            verify_principal(session, StaffPrincipal(waiter.id, other_tenant.id))


class TestStaffHttp:
    """Staff and role routes are for the owner and managers only."""

    def test_waiter_is_forbidden(self, client, waiter_headers):
        assert client.get('/staff', headers=waiter_headers).status_code == 403
        assert client.post('/roles', json={'name': 'Cocina'}, headers=waiter_headers).status_code == 403

    def test_manager_manages_staff(self, client, manager_headers):
        role = client.post('/roles', json={'name': 'Cocina'}, headers=manager_headers)
        assert role.status_code == 201
        role_id = role.get_json()['id']

        created = client.post('/staff', json={'name': 'Rita', 'pin': '7777', 'roleId': role_id},
                              headers=manager_headers)
        assert created.status_code == 201
        staff_id = created.get_json()['id']
        assert created.get_json()['role'] == {'id': role_id, 'name': 'Cocina', 'isManager': False}

        updated = client.put(f'/staff/{staff_id}', json={'name': 'Rita M.'}, headers=manager_headers)
        assert updated.get_json()['name'] == 'Rita M.'

        assert client.delete(f'/roles/{role_id}', headers=manager_headers).status_code == 409

        removed = client.delete(f'/staff/{staff_id}', headers=manager_headers)
        assert removed.get_json()['active'] is False
        names = [s['name'] for s in client.get('/staff', headers=manager_headers).get_json()]
        assert 'Rita M.' not in names
        names = [s['name'] for s in client.get('/staff?include_inactive=1', headers=manager_headers).get_json()]
        assert 'Rita M.' in names

    def test_owner_lists_roles(self, client, owner_headers, waiter, manager):
        roles = client.get('/roles', headers=owner_headers).get_json()

        assert [(r['name'], r['isManager']) for r in roles] == [('Gerente', True), ('Mesero', False)]

    def test_token_of_deactivated_staff_is_rejected(self, client, owner_headers, waiter, waiter_headers, table):
        waiter_id = waiter.id
        assert client.get('/tables', headers=waiter_headers).status_code == 200

        client.delete(f'/staff/{waiter_id}', headers=owner_headers)

        response = client.get('/tables', headers=waiter_headers)
        assert response.status_code == 401
        assert response.get_json()['message'] == 'Sesión revocada'

    def test_demoted_manager_loses_manager_routes(self, client, owner_headers, manager, manager_headers):
        role_id = manager.role_id
        assert client.get('/staff', headers=manager_headers).status_code == 200

        client.put(f'/roles/{role_id}', json={'isManager': False}, headers=owner_headers)

        assert client.get('/staff', headers=manager_headers).status_code == 403

    def test_non_numeric_role_id(self, client, manager_headers):
        response = client.post('/staff', json={'name': 'Rita', 'pin': '7777', 'roleId': 'cocina'},
                               headers=manager_headers)
        assert response.status_code == 400


class TestRegister:
    """Owner sign-up over HTTP."""

    def test_register_logs_the_owner_in(self, client):
        response = client.post('/auth/register', json={
            'slug': 'el-faro', 'restaurantName': 'El Faro', 'name': 'Julia',
            'email': 'julia@elfaro.com', 'password': 'secreto123'
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['principal']['role'] == 'OWNER'
        assert data['principal']['name'] == 'Julia'
        settings = client.get('/settings', headers={'Authorization': f"Bearer {data['token']}"}).get_json()
        assert settings['name'] == 'El Faro'
        assert settings['taxRate'] == '0.12'

    def test_duplicate_slug(self, client, tenant):
        response = client.post('/auth/register', json={
            'slug': 'la-esquina', 'restaurantName': 'Otra', 'email': 'otra@correo.com', 'password': 'secreto123'
        })
        assert response.status_code == 409

    def test_missing_fields(self, client):
        assert client.post('/auth/register', json={'slug': 'x'}).status_code == 400

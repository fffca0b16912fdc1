"""
Unit tests for session principals and signed tokens.
"""

import pytest
import jwt
from datetime import datetime, timedelta, timezone

from comanda.exceptions import UnauthorizedError
from comanda.services.auth_service import (
    OwnerPrincipal, StaffPrincipal, issue_token, decode_token, principal_from_claims
)

SECRET = 'unit-test-secret-with-enough-length-for-hs256'


class TestPrincipals:
    """Tests for the authorization rules of each principal."""

    def test_owner_manages_own_restaurant_only(self):
        owner = OwnerPrincipal(1, tenant_id=10)

        assert owner.can_operate(10) is True
        assert owner.can_manage(10) is True
        assert owner.can_operate(11) is False
        assert owner.can_manage(11) is False
        assert owner.staff_id is None

    def test_waiter_operates_but_does_not_manage(self):
        waiter = StaffPrincipal(5, tenant_id=10, role_name='Mesero')

        assert waiter.can_operate(10) is True
        assert waiter.can_manage(10) is False
        assert waiter.staff_id == 5

    def test_manager_role_acts_as_owner(self):
        manager = StaffPrincipal(6, tenant_id=10, role_name='Gerente', is_manager=True)

        assert manager.can_manage(10) is True
        assert manager.can_manage(11) is False


class TestTokens:
    """Tests for issuing and decoding tokens."""

    def test_round_trip_keeps_role(self):
        token = issue_token(StaffPrincipal(5, 10, 'Luis', role_name='Gerente', is_manager=True), SECRET)
        principal = decode_token(token, SECRET)

        assert isinstance(principal, StaffPrincipal)
        assert principal.id == 5
        assert principal.tenant_id == 10
        assert principal.is_manager is True

    def test_owner_token(self):
        principal = decode_token(issue_token(OwnerPrincipal(1, 10, 'Ana'), SECRET), SECRET)
        assert isinstance(principal, OwnerPrincipal)
        assert principal.name == 'Ana'

    def test_wrong_secret(self):
        token = issue_token(OwnerPrincipal(1, 10), SECRET)
        with pytest.raises(UnauthorizedError, match='inválida'):
            decode_token(token, 'another-secret-with-enough-length-for-hs256')

    def test_expired_token(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        claims = OwnerPrincipal(1, 10).to_claims()
        claims.update(iat=past, exp=past + timedelta(minutes=5))
        token = jwt.encode(claims, SECRET, algorithm='HS256')

        with pytest.raises(UnauthorizedError, match='expirada'):
            decode_token(token, SECRET)

    def test_empty_token(self):
        with pytest.raises(UnauthorizedError):
            decode_token('', SECRET)

    @pytest.mark.parametrize('claims', [
        {'sub': '1', 'role': 'ADMIN', 'tenant_id': 10},
        {'sub': 'abc', 'role': 'OWNER', 'tenant_id': 10},
        {'role': 'OWNER', 'tenant_id': 10},
    ])
    def test_bad_claims(self, claims):
        with pytest.raises(UnauthorizedError):
            principal_from_claims(claims)

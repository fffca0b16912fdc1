"""
Unit tests for the in-memory bill splitting session.
"""

import pytest
from decimal import Decimal

from comanda.exceptions import ValidationError
from comanda.services.split_service import BillSplitSession, validate_partition


@pytest.fixture
def items():
    return [
        {'id': 11, 'price': '5.00', 'quantity': 1, 'selected_modifiers': []},
        {'id': 12, 'price': '3.00', 'quantity': 2, 'selected_modifiers': []},
        {'id': 13, 'price': '10.00', 'quantity': 1, 'selected_modifiers': [{'price': '1.50'}]},
    ]


class TestBillSplitSession:
    """Tests for assigning items to splits."""

    def test_starts_with_everything_unassigned(self, items):
        split_session = BillSplitSession(items)

        assert split_session.unassigned_items == [11, 12, 13]
        assert split_session.splits == []
        assert split_session.is_valid is False

    def test_assign_moves_item_between_splits(self, items):
        split_session = BillSplitSession(items)
        first = split_session.add_split()
        second = split_session.add_split()

        split_session.assign(11, first)
        split_session.assign(11, second)

        assert split_session.to_partition(check=False) == [[], [11]]
        assert 11 not in split_session.unassigned_items

    def test_complete_partition_validates(self, items):
        split_session = BillSplitSession(items)
        first = split_session.add_split()
        second = split_session.add_split()
        split_session.assign(13, first)
        split_session.assign(11, first)
        split_session.assign(12, second)

        assert split_session.is_valid is True
        assert split_session.to_partition() == [[11, 13], [12]]
        assert split_session.subtotal(first) == Decimal('16.50')
        assert split_session.subtotal(second) == Decimal('6.00')

    def test_unassigned_item_fails_validation(self, items):
        split_session = BillSplitSession(items)
        first = split_session.add_split()
        split_session.assign(11, first)
        split_session.assign(12, first)

        with pytest.raises(ValidationError, match='sin asignar'):
            split_session.validate()

    def test_empty_split_fails_validation(self, items):
        split_session = BillSplitSession(items)
        first = split_session.add_split()
        split_session.add_split()
        for item_id in (11, 12, 13):
            split_session.assign(item_id, first)

        with pytest.raises(ValidationError, match='no tiene productos'):
            split_session.to_partition()

    def test_remove_split_returns_items(self, items):
        split_session = BillSplitSession(items)
        first = split_session.add_split()
        split_session.assign(13, first)
        split_session.assign(11, first)

        split_session.remove_split(first)

        assert split_session.splits == []
        assert split_session.unassigned_items == [11, 12, 13]

    def test_unassign(self, items):
        split_session = BillSplitSession(items)
        first = split_session.add_split()
        split_session.assign(12, first)
        split_session.unassign(12)

        assert split_session.unassigned_items == [11, 12, 13]
        assert split_session.to_partition(check=False) == [[]]

    def test_unknown_item_or_split(self, items):
        split_session = BillSplitSession(items)
        first = split_session.add_split()

        with pytest.raises(ValidationError):
            split_session.assign(99, first)
        with pytest.raises(ValidationError):
            split_session.assign(11, 42)
        with pytest.raises(ValidationError):
            split_session.remove_split(42)

    def test_to_dict(self, items):
        split_session = BillSplitSession(items)
        first = split_session.add_split()
        split_session.assign(12, first)

        assert split_session.to_dict() == {
            'unassignedItems': [11, 13],
            'splits': [{'id': first, 'items': [12], 'subtotal': '6.00'}],
        }


class TestValidatePartition:
    """Tests for the partition check used at commit time."""

    def test_normalizes_ids(self):
        assert validate_partition([1, 2, 3], [['1', 3], [2]]) == [[1, 3], [2]]

    def test_duplicate_item(self):
        with pytest.raises(ValidationError, match='más de una cuenta'):
            validate_partition([1, 2], [[1, 2], [2]])

    def test_unknown_item(self):
        with pytest.raises(ValidationError, match='no pertenece'):
            validate_partition([1, 2], [[1, 2, 3]])

    def test_missing_item(self):
        with pytest.raises(ValidationError, match='sin asignar'):
            validate_partition([1, 2, 3], [[1], [2]])

    @pytest.mark.parametrize('partition', [None, [], [[]], 'abc'])
    def test_malformed(self, partition):
        with pytest.raises(ValidationError):
            validate_partition([1], partition)

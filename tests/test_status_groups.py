"""
Tests for the per-item status distribution.

Tests verify:
- initial / collapse / move / resize keep the sum equal to the quantity
- zero entries are never kept
- invalid moves are rejected without touching the input
"""

import pytest
from hypothesis import given, settings, strategies as st

from rest_api.services.domain import status_groups
from shared.utils.exceptions import ValidationError


ITEM_STATUSES = list(status_groups.ITEM_STATUS_ORDER)


@st.composite
def distributions(draw):
    """A valid distribution: positive quantities over distinct item statuses."""
    statuses = draw(st.lists(st.sampled_from(ITEM_STATUSES), min_size=1, unique=True))
    return {status: draw(st.integers(min_value=1, max_value=50)) for status in statuses}


class TestStatusGroupOperations:
    """Example-based tests."""

    def test_initial_puts_every_unit_in_pending(self):
        """A new item of quantity 5 starts as {pendiente: 5}."""
        assert status_groups.initial(5) == {"pendiente": 5}

    def test_move_partial_quantity(self):
        """Moving 2 of 5 pending units to preparando splits the item."""
        result = status_groups.move({"pendiente": 5}, 2, "pendiente", "preparando")

        assert result == {"pendiente": 3, "preparando": 2}

    def test_move_all_units_drops_source_status(self):
        result = status_groups.move({"pendiente": 3, "preparando": 2}, 2, "preparando", "listo")

        assert result == {"pendiente": 3, "listo": 2}
        assert "preparando" not in result

    def test_move_merges_into_existing_status(self):
        result = status_groups.move({"pendiente": 3, "listo": 2}, 3, "pendiente", "listo")

        assert result == {"listo": 5}

    def test_move_more_than_available_fails(self):
        """Source status holding fewer units than requested is rejected."""
        source = {"pendiente": 1, "preparando": 1}

        with pytest.raises(ValidationError) as exc_info:
            status_groups.move(source, 2, "pendiente", "listo")

        assert exc_info.value.status_code == 400
        assert exc_info.value.error["available"] == 1
        assert source == {"pendiente": 1, "preparando": 1}

    def test_move_from_absent_status_fails(self):
        with pytest.raises(ValidationError):
            status_groups.move({"pendiente": 4}, 1, "listo", "entregado")

    def test_move_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            status_groups.move({"pendiente": 4}, 1, "pendiente", "cancelado")

    def test_move_rejects_non_positive_quantity(self):
        with pytest.raises(ValidationError):
            status_groups.move({"pendiente": 4}, 0, "pendiente", "listo")

    def test_collapse_sets_single_status(self):
        assert status_groups.collapse(4, "entregado") == {"entregado": 4}

    def test_collapse_rejects_order_only_status(self):
        """cancelado is an order status, never an item status."""
        with pytest.raises(ValidationError):
            status_groups.collapse(4, "cancelado")

    def test_resize_grow_adds_pending_units(self):
        result = status_groups.resize({"listo": 2}, 5)

        assert result == {"listo": 2, "pendiente": 3}

    def test_resize_shrink_removes_least_advanced_first(self):
        result = status_groups.resize({"pendiente": 1, "preparando": 2, "entregado": 2}, 3)

        assert result == {"preparando": 1, "entregado": 2}

    def test_is_fully_delivered(self):
        assert status_groups.is_fully_delivered({"entregado": 3})
        assert not status_groups.is_fully_delivered({"entregado": 2, "listo": 1})
        assert not status_groups.is_fully_delivered({})

    def test_as_groups_follows_lifecycle_order(self):
        groups = status_groups.as_groups({"entregado": 1, "pendiente": 2, "listo": 3})

        assert groups == [("pendiente", 2), ("listo", 3), ("entregado", 1)]

    def test_validate_order_status_accepts_cancelado(self):
        assert status_groups.validate_order_status("cancelado") == "cancelado"

    def test_validate_order_status_rejects_unknown(self):
        with pytest.raises(ValidationError) as exc_info:
            status_groups.validate_order_status("enviado")

        assert "Valores permitidos" in exc_info.value.detail


class TestStatusGroupProperties:
    """Property-based tests: the sum always equals the item quantity."""

    @given(dist=distributions(), data=st.data())
    @settings(max_examples=100)
    def test_move_preserves_total(self, dist, data):
        from_status = data.draw(st.sampled_from(sorted(dist)))
        to_status = data.draw(st.sampled_from(ITEM_STATUSES))
        quantity = data.draw(st.integers(min_value=1, max_value=dist[from_status]))

        result = status_groups.move(dist, quantity, from_status, to_status)

        assert status_groups.total(result) == status_groups.total(dist)
        assert all(qty > 0 for qty in result.values())

    @given(dist=distributions(), new_quantity=st.integers(min_value=1, max_value=300))
    @settings(max_examples=100)
    def test_resize_matches_new_quantity(self, dist, new_quantity):
        result = status_groups.resize(dist, new_quantity)

        assert status_groups.total(result) == new_quantity
        assert all(qty > 0 for qty in result.values())

    @given(dist=distributions(), new_quantity=st.integers(min_value=1, max_value=300))
    @settings(max_examples=50)
    def test_resize_shrink_never_removes_delivered_before_others(self, dist, new_quantity):
        result = status_groups.resize(dist, new_quantity)
        delivered_before = dist.get("entregado", 0)
        others_after = status_groups.total(result) - result.get("entregado", 0)

        if result.get("entregado", 0) < delivered_before:
            assert others_after == 0

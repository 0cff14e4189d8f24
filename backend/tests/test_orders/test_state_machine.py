"""
Test suite for OrderStateMachine and the status transition rules.

The state machine is exercised with mock sessions and orders; persistence of
transitions is covered by the service tests.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database.models import OrderStatusHistory
from storefront.services.orders.enums import (
    TERMINAL_ORDER_STATUSES,
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from storefront.services.orders.exceptions import InvalidTransitionError
from storefront.services.orders.state_machine import OrderStateMachine

NON_TERMINAL = [s for s in OrderStatus if s not in TERMINAL_ORDER_STATUSES]


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create mock async database session."""
    session = AsyncMock(spec=AsyncSession)
    session.flush = AsyncMock()
    claimed = Mock()
    claimed.scalar_one_or_none.return_value = uuid4()
    session.execute = AsyncMock(return_value=claimed)
    return session


@pytest.fixture
def state_machine(mock_session: AsyncMock) -> OrderStateMachine:
    return OrderStateMachine(mock_session)


@pytest.fixture
def mock_order() -> Mock:
    """Create mock order in pending status."""
    order = Mock()
    order.id = uuid4()
    order.status = OrderStatus.PENDING
    order.updated_at = datetime.now(timezone.utc) - timedelta(hours=1)
    order.status_history = []
    return order


# ============================================================================
# Transition Rules
# ============================================================================


class TestTransitionRules:
    """Test the status transition table."""

    @pytest.mark.parametrize("current", NON_TERMINAL)
    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_non_terminal_statuses_reach_every_status(self, current, target):
        assert validate_order_status_transition(current, target) is True

    @pytest.mark.parametrize("current", sorted(TERMINAL_ORDER_STATUSES))
    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_terminal_statuses_are_locked(self, current, target):
        assert validate_order_status_transition(current, target) is False
        assert get_allowed_order_transitions(current) == frozenset()

    def test_terminal_set(self):
        assert TERMINAL_ORDER_STATUSES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("pending", OrderStatus.PENDING),
            ("SHIPPED", OrderStatus.SHIPPED),
            ("  Cancelled ", OrderStatus.CANCELLED),
        ],
    )
    def test_from_string(self, value, expected):
        assert OrderStatus.from_string(value) is expected

    def test_from_string_rejects_unknown_value(self):
        with pytest.raises(ValueError, match="Invalid order status"):
            OrderStatus.from_string("refunded")

    @pytest.mark.parametrize("status", list(OrderStatus))
    def test_can_cancel(self, status):
        assert status.can_cancel() is (status not in TERMINAL_ORDER_STATUSES)


# ============================================================================
# State Machine
# ============================================================================


class TestApplyTransition:
    """Test applying transitions to an order."""

    async def test_updates_status_and_timestamp(
        self, state_machine, mock_order, mock_session
    ):
        previous_update = mock_order.updated_at

        await state_machine.apply_transition(mock_order, OrderStatus.CONFIRMED)

        assert mock_order.status == OrderStatus.CONFIRMED
        assert mock_order.updated_at > previous_update
        mock_session.flush.assert_awaited_once()

    async def test_appends_history_entry(self, state_machine, mock_order):
        await state_machine.apply_transition(
            mock_order,
            OrderStatus.SHIPPED,
            changed_by="admin-1",
            reason="Left the warehouse",
        )

        [entry] = mock_order.status_history
        assert isinstance(entry, OrderStatusHistory)
        assert entry.from_status == OrderStatus.PENDING
        assert entry.to_status == OrderStatus.SHIPPED
        assert entry.changed_by == "admin-1"
        assert entry.reason == "Left the warehouse"

    async def test_skipping_statuses_is_allowed(self, state_machine, mock_order):
        await state_machine.apply_transition(mock_order, OrderStatus.DELIVERED)

        assert mock_order.status == OrderStatus.DELIVERED

    async def test_same_status_write_is_recorded(self, state_machine, mock_order):
        mock_order.status = OrderStatus.CONFIRMED

        await state_machine.apply_transition(mock_order, OrderStatus.CONFIRMED)

        assert mock_order.status == OrderStatus.CONFIRMED
        assert len(mock_order.status_history) == 1

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_ORDER_STATUSES))
    async def test_terminal_order_rejected_without_changes(
        self, state_machine, mock_order, mock_session, terminal
    ):
        mock_order.status = terminal
        previous_update = mock_order.updated_at

        with pytest.raises(InvalidTransitionError) as exc_info:
            await state_machine.apply_transition(mock_order, OrderStatus.PENDING)

        assert exc_info.value.current_status == terminal
        assert exc_info.value.target_status == OrderStatus.PENDING
        assert exc_info.value.context["allowed_transitions"] == []
        assert mock_order.status == terminal
        assert mock_order.updated_at == previous_update
        assert mock_order.status_history == []
        mock_session.flush.assert_not_awaited()
        mock_session.execute.assert_not_awaited()

    def test_allowed_transitions_for_order(self, state_machine, mock_order):
        assert state_machine.get_allowed_transitions(mock_order) == frozenset(OrderStatus)
        assert state_machine.can_cancel(mock_order) is True

        mock_order.status = OrderStatus.DELIVERED

        assert state_machine.get_allowed_transitions(mock_order) == frozenset()
        assert state_machine.can_cancel(mock_order) is False

    async def test_order_finalized_concurrently_is_not_overwritten(
        self, state_machine, mock_order, mock_session
    ):
        lost = Mock()
        lost.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = lost

        async def reload_status(order, attribute_names=None):
            order.status = OrderStatus.DELIVERED

        mock_session.refresh.side_effect = reload_status

        with pytest.raises(InvalidTransitionError) as exc_info:
            await state_machine.apply_transition(mock_order, OrderStatus.CANCELLED)

        assert exc_info.value.current_status == OrderStatus.DELIVERED
        assert exc_info.value.target_status == OrderStatus.CANCELLED
        assert mock_order.status == OrderStatus.DELIVERED
        assert mock_order.status_history == []
        mock_session.flush.assert_not_awaited()

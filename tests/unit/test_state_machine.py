# tests/unit/test_state_machine.py

import pytest

from eventease.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    OrderStateMachine,
    OrderStatus,
    booking_holds_inventory,
    order_holds_inventory,
)
from eventease.domain.exceptions import (
    AlreadyCancelledError,
    AlreadyCheckedInError,
    CannotCancelCheckedInError,
    CannotCheckInCancelledError,
    ErrorKind,
    InvalidStateTransitionError,
)


# ---------------------
# VALID TRANSITIONS
# ---------------------

def test_confirmed_can_be_cancelled_or_checked_in():
    assert BookingStateMachine.can_transition(
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
    )

    assert BookingStateMachine.can_transition(
        BookingStatus.CONFIRMED,
        BookingStatus.CHECKED_IN,
    )


def test_allowed_transitions_from_confirmed():
    assert BookingStateMachine.get_allowed_transitions(BookingStatus.CONFIRMED) == {
        BookingStatus.CANCELLED,
        BookingStatus.CHECKED_IN,
    }


# ---------------------
# INVALID TRANSITIONS
# ---------------------

def test_cancelled_is_terminal():
    assert BookingStateMachine.is_terminal(BookingStatus.CANCELLED)

    with pytest.raises(AlreadyCancelledError) as exc_info:
        BookingStateMachine.validate_transition(
            BookingStatus.CANCELLED,
            BookingStatus.CANCELLED,
        )
    assert exc_info.value.kind == ErrorKind.ALREADY_CANCELLED


def test_checked_in_is_terminal():
    assert BookingStateMachine.is_terminal(BookingStatus.CHECKED_IN)

    with pytest.raises(AlreadyCheckedInError):
        BookingStateMachine.validate_transition(
            BookingStatus.CHECKED_IN,
            BookingStatus.CHECKED_IN,
        )


def test_cannot_cancel_checked_in():
    with pytest.raises(CannotCancelCheckedInError) as exc_info:
        BookingStateMachine.validate_transition(
            BookingStatus.CHECKED_IN,
            BookingStatus.CANCELLED,
        )
    assert exc_info.value.from_state == "checked-in"
    assert exc_info.value.to_state == "cancelled"


def test_cannot_check_in_cancelled():
    with pytest.raises(CannotCheckInCancelledError) as exc_info:
        BookingStateMachine.validate_transition(
            BookingStatus.CANCELLED,
            BookingStatus.CHECKED_IN,
        )
    assert exc_info.value.kind == ErrorKind.CANNOT_CHECK_IN_CANCELLED


def test_transition_errors_share_base_class():
    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(
            BookingStatus.CANCELLED,
            BookingStatus.CONFIRMED,
        )


def test_invalid_type_guard():
    with pytest.raises(TypeError):
        BookingStateMachine.validate_transition(
            "confirmed",  # invalid type
            BookingStatus.CANCELLED,
        )


# ---------------------
# INVENTORY PREDICATES
# ---------------------

def test_only_live_bookings_hold_inventory():
    assert booking_holds_inventory(BookingStatus.CONFIRMED)
    assert booking_holds_inventory(BookingStatus.CHECKED_IN)
    assert not booking_holds_inventory(BookingStatus.CANCELLED)


def test_only_pending_and_completed_orders_hold_inventory():
    assert order_holds_inventory(OrderStatus.PENDING)
    assert order_holds_inventory(OrderStatus.COMPLETED)
    for status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED, OrderStatus.FAILED):
        assert not order_holds_inventory(status)


# ---------------------
# ORDERS
# ---------------------

def test_order_happy_path_and_refund():
    assert OrderStateMachine.can_transition(OrderStatus.PENDING, OrderStatus.COMPLETED)
    assert OrderStateMachine.can_transition(OrderStatus.COMPLETED, OrderStatus.REFUNDED)


def test_pending_order_cannot_be_refunded():
    with pytest.raises(InvalidStateTransitionError):
        OrderStateMachine.validate_transition(OrderStatus.PENDING, OrderStatus.REFUNDED)


@pytest.mark.parametrize(
    "status",
    [OrderStatus.CANCELLED, OrderStatus.REFUNDED, OrderStatus.FAILED],
)
def test_order_terminal_states(status):
    assert OrderStateMachine.is_terminal(status)

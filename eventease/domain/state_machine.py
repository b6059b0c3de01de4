# eventease/domain/state_machine.py

from enum import Enum
from typing import Dict, Set, Tuple, Type

from eventease.domain.exceptions import (
    AlreadyCancelledError,
    AlreadyCheckedInError,
    CannotCancelCheckedInError,
    CannotCheckInCancelledError,
    InvalidStateTransitionError,
)


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    CHECKED_IN = "checked-in"


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


# Statuses whose quantity is included in TicketType.sold.
INVENTORY_HOLDING_BOOKING_STATUSES = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN}
)
INVENTORY_HOLDING_ORDER_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.COMPLETED}
)


def booking_holds_inventory(status: BookingStatus) -> bool:
    return status in INVENTORY_HOLDING_BOOKING_STATUSES


def order_holds_inventory(status: OrderStatus) -> bool:
    return status in INVENTORY_HOLDING_ORDER_STATUSES


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.

    confirmed -> checked-in and confirmed -> cancelled are the only legal
    moves; both targets are terminal.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.CONFIRMED: {
            BookingStatus.CANCELLED,
            BookingStatus.CHECKED_IN,
        },
        BookingStatus.CANCELLED: set(),
        BookingStatus.CHECKED_IN: set(),
    }

    _TRANSITION_ERRORS: Dict[
        Tuple[BookingStatus, BookingStatus], Type[InvalidStateTransitionError]
    ] = {
        (BookingStatus.CANCELLED, BookingStatus.CANCELLED): AlreadyCancelledError,
        (BookingStatus.CHECKED_IN, BookingStatus.CANCELLED): CannotCancelCheckedInError,
        (BookingStatus.CHECKED_IN, BookingStatus.CHECKED_IN): AlreadyCheckedInError,
        (BookingStatus.CANCELLED, BookingStatus.CHECKED_IN): CannotCheckInCancelledError,
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        """
        Raises the specific InvalidStateTransitionError subclass for the
        attempted move if it is illegal.
        """
        if cls.can_transition(from_status, to_status):
            return

        error_cls = cls._TRANSITION_ERRORS.get(
            (from_status, to_status), InvalidStateTransitionError
        )
        raise error_cls(from_status.value, to_status.value)

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def get_allowed_transitions(
        cls, status: BookingStatus
    ) -> Set[BookingStatus]:
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )


class OrderStateMachine:
    """
    Lifecycle controller for multi-ticket orders.
    """

    _ALLOWED_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
        OrderStatus.PENDING: {
            OrderStatus.COMPLETED,
            OrderStatus.CANCELLED,
            OrderStatus.FAILED,
        },
        OrderStatus.COMPLETED: {
            OrderStatus.REFUNDED,
            OrderStatus.CANCELLED,
        },
        OrderStatus.CANCELLED: set(),
        OrderStatus.REFUNDED: set(),
        OrderStatus.FAILED: set(),
    }

    @classmethod
    def can_transition(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status: OrderStatus, to_status: OrderStatus) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: OrderStatus) -> bool:
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @staticmethod
    def _ensure_valid_status(status: OrderStatus) -> None:
        if not isinstance(status, OrderStatus):
            raise TypeError(
                f"Expected OrderStatus, got {type(status)}"
            )

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    USER_LIMIT_EXCEEDED = "USER_LIMIT_EXCEEDED"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    CANNOT_CANCEL_CHECKED_IN = "CANNOT_CANCEL_CHECKED_IN"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"
    CANNOT_CHECK_IN_CANCELLED = "CANNOT_CHECK_IN_CANCELLED"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    REFERENCE_GENERATION_FAILED = "REFERENCE_GENERATION_FAILED"
    NEGATIVE_INVENTORY = "NEGATIVE_INVENTORY"
    INVALID_PROMOTION = "INVALID_PROMOTION"
    TICKET_TYPE_IN_USE = "TICKET_TYPE_IN_USE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE = "DUPLICATE"
    CAPACITY_BELOW_SOLD = "CAPACITY_BELOW_SOLD"
    UNAUTHENTICATED = "UNAUTHENTICATED"


class EventEaseError(Exception):
    """
    Base exception for all domain-level errors.
    Every subclass carries a stable machine-readable kind.
    """

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(EventEaseError):
    """Raised when an event, ticket type, booking or order is absent or not owned by the caller."""

    kind = ErrorKind.NOT_FOUND


class ValidationError(EventEaseError):
    kind = ErrorKind.VALIDATION_ERROR


class InvalidQuantityError(EventEaseError):
    kind = ErrorKind.INVALID_QUANTITY

    def __init__(self, quantity=None, message: str | None = None):
        self.quantity = quantity
        super().__init__(message or "Quantity must be a whole number of at least 1.")


class InsufficientInventoryError(EventEaseError):
    """Raised when the requested quantity exceeds remaining capacity."""

    kind = ErrorKind.INSUFFICIENT_INVENTORY

    def __init__(self, ticket_type_id: str, requested: int, available: int | None = None):
        self.ticket_type_id = ticket_type_id
        self.requested = requested
        self.available = available

        if available is None:
            message = "Not enough tickets available"
        else:
            message = (
                f"Not enough tickets available: "
                f"requested {requested}, {available} left"
            )
        super().__init__(message)


class UserLimitExceededError(EventEaseError):
    kind = ErrorKind.USER_LIMIT_EXCEEDED

    def __init__(self, max_per_user: int, existing: int, requested: int):
        self.max_per_user = max_per_user
        self.existing = existing
        self.requested = requested
        super().__init__(
            f"You can only book a maximum of {max_per_user} tickets of this type"
        )


class InvalidStateTransitionError(EventEaseError):
    """
    Raised when an illegal booking or order state transition is attempted.
    """

    kind = ErrorKind.INVALID_STATE_TRANSITION

    def __init__(self, from_state: str, to_state: str, message: str | None = None):
        self.from_state = from_state
        self.to_state = to_state

        if message is None:
            message = (
                f"Illegal state transition attempted: "
                f"{from_state} -> {to_state}"
            )
        super().__init__(message)


class AlreadyCancelledError(InvalidStateTransitionError):
    kind = ErrorKind.ALREADY_CANCELLED

    def __init__(self, from_state: str, to_state: str):
        super().__init__(from_state, to_state, "Booking is already cancelled")


class CannotCancelCheckedInError(InvalidStateTransitionError):
    kind = ErrorKind.CANNOT_CANCEL_CHECKED_IN

    def __init__(self, from_state: str, to_state: str):
        super().__init__(from_state, to_state, "Cannot cancel a checked-in booking")


class AlreadyCheckedInError(InvalidStateTransitionError):
    kind = ErrorKind.ALREADY_CHECKED_IN

    def __init__(self, from_state: str, to_state: str):
        super().__init__(from_state, to_state, "Booking is already checked in")


class CannotCheckInCancelledError(InvalidStateTransitionError):
    kind = ErrorKind.CANNOT_CHECK_IN_CANCELLED

    def __init__(self, from_state: str, to_state: str):
        super().__init__(from_state, to_state, "Cannot check in a cancelled booking")


class ReferenceGenerationFailedError(EventEaseError):
    kind = ErrorKind.REFERENCE_GENERATION_FAILED

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique booking reference after {attempts} attempts"
        )


class NegativeInventoryError(EventEaseError):
    """
    Internal invariant violation: a release would drive sold below zero.
    Indicates a defect in the calling code, never a user error.
    """

    kind = ErrorKind.NEGATIVE_INVENTORY

    def __init__(self, ticket_type_id: str, quantity: int):
        self.ticket_type_id = ticket_type_id
        self.quantity = quantity
        super().__init__(
            f"Releasing {quantity} units would drive sold below zero "
            f"for ticket type {ticket_type_id}"
        )


class InvalidPromotionError(EventEaseError):
    kind = ErrorKind.INVALID_PROMOTION

    def __init__(self, code: str):
        self.code = code
        super().__init__("Invalid or expired promotion code")


class TicketTypeInUseError(EventEaseError):
    kind = ErrorKind.TICKET_TYPE_IN_USE

    def __init__(self, ticket_type_id: str):
        self.ticket_type_id = ticket_type_id
        super().__init__("Ticket type has bookings or orders and cannot be deleted")


class DuplicateError(EventEaseError):
    """Raised when a ticket tier name or promotion code is already used for the event."""

    kind = ErrorKind.DUPLICATE


class CapacityBelowSoldError(EventEaseError):
    kind = ErrorKind.CAPACITY_BELOW_SOLD

    def __init__(self, ticket_type_id: str, quantity: int, sold: int):
        self.ticket_type_id = ticket_type_id
        self.quantity = quantity
        self.sold = sold
        super().__init__(
            f"Quantity cannot be lower than the {sold} tickets already sold"
        )

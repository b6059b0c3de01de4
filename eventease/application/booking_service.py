import logging
import os

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventease.domain.exceptions import (
    InsufficientInventoryError,
    InvalidQuantityError,
    NotFoundError,
    ReferenceGenerationFailedError,
    UserLimitExceededError,
)
from eventease.domain.pricing import line_total
from eventease.domain.references import generate_booking_reference
from eventease.domain.state_machine import BookingStateMachine, BookingStatus
from eventease.infrastructure.db.models import Booking, TicketType
from eventease.infrastructure.repositories.booking_repository import BookingRepository
from eventease.infrastructure.repositories.event_repository import EventRepository
from eventease.infrastructure.repositories.outbox_repository import OutboxRepository
from eventease.infrastructure.repositories.ticket_type_repository import TicketTypeRepository

logger = logging.getLogger(__name__)

BOOKING_REFERENCE_MAX_ATTEMPTS = int(os.getenv("BOOKING_REFERENCE_MAX_ATTEMPTS", "3"))


class BookingService:
    """
    Application service coordinating the booking workflow.

    Every method runs inside the caller's transaction (the request-scoped
    session); nothing here commits. A raised error therefore leaves no
    partial effects once the scope rolls back.
    """

    def __init__(self, db: Session, reference_generator=generate_booking_reference):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.event_repository = EventRepository(db)
        self.ticket_type_repository = TicketTypeRepository(db)
        self.outbox_repository = OutboxRepository(db)
        self.reference_generator = reference_generator

    def book_event(
        self,
        user_id: str,
        event_id: str,
        ticket_type_id: str,
        quantity: int | None,
    ) -> Booking:
        # Validating: no writes until every check has passed.
        event = self.event_repository.get_approved(event_id)
        if not event:
            raise NotFoundError("Event not found")

        ticket_type = self.ticket_type_repository.get_for_event(ticket_type_id, event_id)
        if not ticket_type:
            raise NotFoundError("Ticket type not found for this event")

        if not _is_valid_quantity(quantity):
            raise InvalidQuantityError(quantity)

        ticket_type = self.ticket_type_repository.lock(ticket_type_id)
        available = ticket_type.quantity - ticket_type.sold
        if available < quantity:
            raise InsufficientInventoryError(
                ticket_type_id=ticket_type_id,
                requested=quantity,
                available=available,
            )

        self._check_user_limit(user_id, event_id, ticket_type, quantity)

        # Committing: both writes land in the caller's transaction.
        self.ticket_type_repository.reserve(ticket_type_id, event_id, quantity)
        booking = self._insert_with_unique_reference(
            user_id=user_id,
            event_id=event_id,
            ticket_type=ticket_type,
            quantity=quantity,
        )

        self.outbox_repository.add_event(
            aggregate_type="booking",
            aggregate_id=booking.id,
            event_type="BOOKING_CONFIRMED",
            payload={
                "booking_id": booking.id,
                "reference": booking.reference,
                "event_id": event_id,
                "ticket_type_id": ticket_type_id,
                "quantity": quantity,
                "total_price": str(booking.total_price),
            },
            dedupe_key=f"booking:{booking.id}:confirmed",
        )

        logger.info(
            "Booking confirmed. booking_id=%s reference=%s ticket_type_id=%s quantity=%s",
            booking.id,
            booking.reference,
            ticket_type_id,
            quantity,
        )
        return booking

    def cancel_booking(self, user_id: str, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id, for_update=True)
        if not booking or booking.user_id != user_id:
            raise NotFoundError("Booking not found")

        self._transition(booking, BookingStatus.CANCELLED)
        self.ticket_type_repository.release(booking.ticket_type_id, booking.quantity)

        self.outbox_repository.add_event(
            aggregate_type="booking",
            aggregate_id=booking.id,
            event_type="BOOKING_CANCELLED",
            payload={
                "booking_id": booking.id,
                "event_id": booking.event_id,
                "ticket_type_id": booking.ticket_type_id,
                "quantity": booking.quantity,
            },
            dedupe_key=f"booking:{booking.id}:cancelled",
        )

        logger.info(
            "Booking cancelled. booking_id=%s released=%s ticket_type_id=%s",
            booking.id,
            booking.quantity,
            booking.ticket_type_id,
        )
        return booking

    def check_in_booking(
        self,
        organizer_id: str,
        event_id: str,
        booking_id: str,
    ) -> Booking:
        event = self.event_repository.get_owned(event_id, organizer_id)
        booking = self.booking_repository.get_by_id(booking_id, for_update=True)
        if not event or not booking or booking.event_id != event_id:
            raise NotFoundError("Booking not found")

        self._transition(booking, BookingStatus.CHECKED_IN)

        self.outbox_repository.add_event(
            aggregate_type="booking",
            aggregate_id=booking.id,
            event_type="BOOKING_CHECKED_IN",
            payload={
                "booking_id": booking.id,
                "event_id": booking.event_id,
                "checked_in_at": booking.checked_in_at,
            },
            dedupe_key=f"booking:{booking.id}:checked-in",
        )

        logger.info("Attendee checked in. booking_id=%s event_id=%s", booking.id, event_id)
        return booking

    def get_booking(self, user_id: str, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking or booking.user_id != user_id:
            raise NotFoundError("Booking not found")
        return booking

    def get_booking_by_reference(self, reference: str) -> Booking:
        booking = self.booking_repository.get_by_reference(reference.strip().upper())
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def list_user_bookings(self, user_id: str) -> list[Booking]:
        return self.booking_repository.list_for_user(user_id)

    def list_event_bookings(self, organizer_id: str, event_id: str) -> list[Booking]:
        if not self.event_repository.get_owned(event_id, organizer_id):
            raise NotFoundError(
                "Event not found or you do not have permission to view its bookings"
            )
        return self.booking_repository.list_for_event(event_id)

    def _check_user_limit(
        self,
        user_id: str,
        event_id: str,
        ticket_type: TicketType,
        quantity: int,
    ) -> None:
        if not ticket_type.max_per_user:
            return

        existing = self.booking_repository.count_user_units(
            user_id=user_id,
            event_id=event_id,
            ticket_type_id=ticket_type.id,
        )
        if existing + quantity > ticket_type.max_per_user:
            raise UserLimitExceededError(
                max_per_user=ticket_type.max_per_user,
                existing=existing,
                requested=quantity,
            )

    def _insert_with_unique_reference(
        self,
        user_id: str,
        event_id: str,
        ticket_type: TicketType,
        quantity: int,
    ) -> Booking:
        total_price = line_total(ticket_type.price, quantity, ticket_type.is_free)

        for attempt in range(1, BOOKING_REFERENCE_MAX_ATTEMPTS + 1):
            reference = self.reference_generator()
            try:
                return self.booking_repository.add_booking(
                    user_id=user_id,
                    event_id=event_id,
                    ticket_type_id=ticket_type.id,
                    quantity=quantity,
                    total_price=total_price,
                    reference=reference,
                )
            except IntegrityError:
                if not self.booking_repository.get_by_reference(reference):
                    raise
                logger.warning(
                    "Booking reference collision (attempt %s/%s). reference=%s",
                    attempt,
                    BOOKING_REFERENCE_MAX_ATTEMPTS,
                    reference,
                )

        raise ReferenceGenerationFailedError(BOOKING_REFERENCE_MAX_ATTEMPTS)

    def _transition(self, booking: Booking, to_status: BookingStatus) -> None:
        BookingStateMachine.validate_transition(booking.status, to_status)
        self.booking_repository.update_status(booking, to_status)


def _is_valid_quantity(quantity) -> bool:
    return (
        isinstance(quantity, int)
        and not isinstance(quantity, bool)
        and quantity >= 1
    )

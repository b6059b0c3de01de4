# eventease/infrastructure/repositories/booking_repository.py

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import select

from eventease.infrastructure.db.models import Booking
from eventease.domain.state_machine import BookingStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
        for_update: bool = False,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_reference(
        self,
        reference: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.reference == reference)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_user(self, user_id: str) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_event(self, event_id: str) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.event_id == event_id)
            .order_by(Booking.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_user_units(
        self,
        user_id: str,
        event_id: str,
        ticket_type_id: str,
        exclude_statuses: frozenset = frozenset({BookingStatus.CANCELLED}),
    ) -> int:
        """
        Sum of quantities over the user's bookings of a ticket type whose
        status is not excluded.
        """
        stmt = (
            select(Booking.status, Booking.quantity)
            .where(Booking.user_id == user_id)
            .where(Booking.event_id == event_id)
            .where(Booking.ticket_type_id == ticket_type_id)
        )
        rows = self.db.execute(stmt).all()

        return sum(
            quantity
            for status, quantity in rows
            if status not in exclude_statuses
        )

    def add_booking(
        self,
        user_id: str,
        event_id: str,
        ticket_type_id: str,
        quantity: int,
        total_price: Decimal,
        reference: str,
    ) -> Booking:
        """
        Inserts inside a SAVEPOINT so a reference collision only rolls back
        this insert, not the surrounding transaction.
        """

        booking = Booking(
            user_id=user_id,
            event_id=event_id,
            ticket_type_id=ticket_type_id,
            quantity=quantity,
            total_price=total_price,
            reference=reference,
            status=BookingStatus.CONFIRMED,
        )

        with self.db.begin_nested():
            self.db.add(booking)
            self.db.flush()

        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        now = datetime.now(timezone.utc)
        booking.status = new_status

        if new_status == BookingStatus.CANCELLED:
            booking.cancelled_at = now
        elif new_status == BookingStatus.CHECKED_IN:
            booking.checked_in_at = now

        self.db.flush()

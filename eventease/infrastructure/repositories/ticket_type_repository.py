# eventease/infrastructure/repositories/ticket_type_repository.py

from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import exists, select, update

from eventease.infrastructure.db.models import Booking, Order, OrderItem, TicketType
from eventease.domain.exceptions import (
    InsufficientInventoryError,
    InvalidQuantityError,
    NegativeInventoryError,
    NotFoundError,
)
from eventease.domain.state_machine import booking_holds_inventory, order_holds_inventory


class TicketTypeRepository:
    """
    Ledger of per-tier capacity. ``reserve`` and ``release`` are the only
    writers of ``TicketType.sold``.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, ticket_type_id: str) -> TicketType | None:
        stmt = select(TicketType).where(TicketType.id == ticket_type_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_for_event(self, ticket_type_id: str, event_id: str) -> TicketType | None:
        stmt = (
            select(TicketType)
            .where(TicketType.id == ticket_type_id)
            .where(TicketType.event_id == event_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_name(self, event_id: str, name: str) -> TicketType | None:
        stmt = (
            select(TicketType)
            .where(TicketType.event_id == event_id)
            .where(TicketType.name == name)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_event(self, event_id: str) -> list[TicketType]:
        stmt = (
            select(TicketType)
            .where(TicketType.event_id == event_id)
            .order_by(TicketType.price, TicketType.name)
        )
        return list(self.db.execute(stmt).scalars().all())

    def lock(self, ticket_type_id: str) -> TicketType:
        """
        SELECT ... FOR UPDATE
        Availability and per-user reads made after this share the
        snapshot the reservation is written against.
        """

        stmt = (
            select(TicketType)
            .where(TicketType.id == ticket_type_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

        ticket_type = self.db.execute(stmt).scalar_one_or_none()

        if not ticket_type:
            raise NotFoundError("Ticket type not found")

        return ticket_type

    def get_available(self, ticket_type_id: str) -> int:
        ticket_type = self.get_by_id(ticket_type_id)
        if not ticket_type:
            raise NotFoundError("Ticket type not found")
        return ticket_type.quantity - ticket_type.sold

    def create(
        self,
        event_id: str,
        name: str,
        price: Decimal,
        quantity: int,
        currency: str = "ETB",
        description: str | None = None,
        max_per_user: int | None = None,
        is_free: bool = False,
    ) -> TicketType:
        ticket_type = TicketType(
            event_id=event_id,
            name=name,
            description=description,
            price=price,
            currency=currency,
            quantity=quantity,
            sold=0,
            max_per_user=max_per_user,
            is_free=is_free,
        )
        self.db.add(ticket_type)
        self.db.flush()
        return ticket_type

    def update(self, ticket_type: TicketType, **fields) -> TicketType:
        # sold is owned by reserve/release and never set here.
        fields.pop("sold", None)
        for key, value in fields.items():
            setattr(ticket_type, key, value)
        self.db.flush()
        return ticket_type

    def reserve(
        self,
        ticket_type_id: str,
        event_id: str,
        quantity: int,
    ) -> TicketType:
        if quantity < 1:
            raise InvalidQuantityError(quantity)

        # Capacity is re-checked by the UPDATE itself, not only by the
        # caller's earlier read.
        stmt = (
            update(TicketType)
            .where(TicketType.id == ticket_type_id)
            .where(TicketType.event_id == event_id)
            .where(TicketType.sold + quantity <= TicketType.quantity)
            .values(sold=TicketType.sold + quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        ticket_type = self._reload(ticket_type_id)
        if result.rowcount != 1:
            if not ticket_type or ticket_type.event_id != event_id:
                raise NotFoundError("Ticket type not found for this event")
            raise InsufficientInventoryError(
                ticket_type_id=ticket_type_id,
                requested=quantity,
                available=ticket_type.quantity - ticket_type.sold,
            )

        return ticket_type

    def release(
        self,
        ticket_type_id: str,
        quantity: int,
    ) -> TicketType:
        if quantity < 0:
            raise NegativeInventoryError(ticket_type_id, quantity)

        stmt = (
            update(TicketType)
            .where(TicketType.id == ticket_type_id)
            .where(TicketType.sold >= quantity)
            .values(sold=TicketType.sold - quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount != 1:
            raise NegativeInventoryError(ticket_type_id, quantity)

        return self._reload(ticket_type_id)

    def is_referenced(self, ticket_type_id: str) -> bool:
        booking_stmt = select(
            exists().where(Booking.ticket_type_id == ticket_type_id)
        )
        item_stmt = select(
            exists().where(OrderItem.ticket_type_id == ticket_type_id)
        )
        return bool(
            self.db.execute(booking_stmt).scalar()
            or self.db.execute(item_stmt).scalar()
        )

    def delete(self, ticket_type: TicketType) -> None:
        self.db.delete(ticket_type)
        self.db.flush()

    def committed_units(self, ticket_type_id: str) -> int:
        """
        Units held by live bookings and orders. Equals ``sold`` whenever the
        ledger is consistent.
        """
        booking_rows = self.db.execute(
            select(Booking.status, Booking.quantity)
            .where(Booking.ticket_type_id == ticket_type_id)
        ).all()
        item_rows = self.db.execute(
            select(Order.status, OrderItem.quantity)
            .join(Order, Order.id == OrderItem.order_id)
            .where(OrderItem.ticket_type_id == ticket_type_id)
        ).all()

        booked = sum(qty for status, qty in booking_rows if booking_holds_inventory(status))
        ordered = sum(qty for status, qty in item_rows if order_holds_inventory(status))
        return booked + ordered

    def _reload(self, ticket_type_id: str) -> TicketType | None:
        return self.db.get(TicketType, ticket_type_id, populate_existing=True)

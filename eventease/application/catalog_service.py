import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventease.domain.exceptions import (
    CapacityBelowSoldError,
    DuplicateError,
    NotFoundError,
    TicketTypeInUseError,
    ValidationError,
)
from eventease.domain.pricing import DiscountType
from eventease.infrastructure.db.models import Event, Promotion, TicketType
from eventease.infrastructure.repositories.event_repository import EventRepository
from eventease.infrastructure.repositories.order_repository import OrderRepository
from eventease.infrastructure.repositories.ticket_type_repository import TicketTypeRepository

logger = logging.getLogger(__name__)

APPROVAL_STATUSES = {"draft", "pending", "approved", "rejected", "cancelled"}

UPDATABLE_TICKET_FIELDS = {
    "name",
    "description",
    "price",
    "currency",
    "quantity",
    "max_per_user",
    "is_free",
}
REQUIRED_TICKET_FIELDS = {"name", "price", "currency", "quantity", "is_free"}


class CatalogService:
    """Organizer-side management of events, ticket tiers and promotions."""

    def __init__(self, db: Session):
        self.db = db
        self.event_repository = EventRepository(db)
        self.ticket_type_repository = TicketTypeRepository(db)
        self.order_repository = OrderRepository(db)

    def create_event(
        self,
        organizer_id: str,
        title: str,
        location: str | None = None,
        start_date: datetime | None = None,
    ) -> Event:
        event = self.event_repository.create(
            organizer_id=organizer_id,
            title=title,
            location=location,
            start_date=start_date,
        )
        logger.info("Event created. event_id=%s organizer_id=%s", event.id, organizer_id)
        return event

    def get_event(self, event_id: str) -> Event:
        event = self.event_repository.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    def set_approval_status(
        self,
        organizer_id: str,
        event_id: str,
        approval_status: str = "approved",
    ) -> Event:
        if approval_status not in APPROVAL_STATUSES:
            raise ValidationError(f"Unknown approval status: {approval_status}")

        event = self._owned_event(organizer_id, event_id)
        event.approval_status = approval_status
        self.db.flush()
        return event

    def create_ticket_type(
        self,
        organizer_id: str,
        event_id: str,
        name: str,
        price: Decimal,
        quantity: int,
        currency: str = "ETB",
        description: str | None = None,
        max_per_user: int | None = None,
        is_free: bool = False,
    ) -> TicketType:
        self._owned_event(organizer_id, event_id)
        _validate_ticket_fields(quantity=quantity, price=price, max_per_user=max_per_user)

        if self.ticket_type_repository.get_by_name(event_id, name):
            raise DuplicateError(f"A ticket type named {name!r} already exists for this event")

        try:
            with self.db.begin_nested():
                ticket_type = self.ticket_type_repository.create(
                    event_id=event_id,
                    name=name,
                    price=Decimal(0) if is_free else price,
                    quantity=quantity,
                    currency=currency,
                    description=description,
                    max_per_user=max_per_user,
                    is_free=is_free,
                )
        except IntegrityError as exc:
            raise DuplicateError(
                f"A ticket type named {name!r} already exists for this event"
            ) from exc
        logger.info(
            "Ticket type created. ticket_type_id=%s event_id=%s quantity=%s",
            ticket_type.id,
            event_id,
            quantity,
        )
        return ticket_type

    def list_ticket_types(self, event_id: str) -> list[TicketType]:
        self.get_event(event_id)
        return self.ticket_type_repository.list_for_event(event_id)

    def update_ticket_type(self, organizer_id: str, ticket_type_id: str, **changes) -> TicketType:
        """
        Edits a tier under its row lock. Capacity may shrink only down to
        the units already sold.
        """
        ticket_type = self.ticket_type_repository.get_by_id(ticket_type_id)
        if not ticket_type or ticket_type.event.organizer_id != organizer_id:
            raise NotFoundError("Ticket type not found")

        unknown = set(changes) - UPDATABLE_TICKET_FIELDS
        if unknown:
            raise ValidationError(f"Ticket type fields cannot be updated: {sorted(unknown)}")
        cleared = sorted(key for key in REQUIRED_TICKET_FIELDS & set(changes) if changes[key] is None)
        if cleared:
            raise ValidationError(f"Ticket type fields cannot be empty: {cleared}")

        ticket_type = self.ticket_type_repository.lock(ticket_type_id)
        _validate_ticket_fields(
            quantity=changes.get("quantity", ticket_type.quantity),
            price=changes.get("price", ticket_type.price),
            max_per_user=changes.get("max_per_user", ticket_type.max_per_user),
        )

        if "quantity" in changes and changes["quantity"] < ticket_type.sold:
            raise CapacityBelowSoldError(ticket_type_id, changes["quantity"], ticket_type.sold)

        new_name = changes.get("name")
        if new_name and new_name != ticket_type.name:
            if self.ticket_type_repository.get_by_name(ticket_type.event_id, new_name):
                raise DuplicateError(
                    f"A ticket type named {new_name!r} already exists for this event"
                )

        if changes.get("is_free", ticket_type.is_free):
            changes["price"] = Decimal(0)

        try:
            with self.db.begin_nested():
                self.ticket_type_repository.update(ticket_type, **changes)
        except IntegrityError as exc:
            raise DuplicateError(
                f"A ticket type named {new_name!r} already exists for this event"
            ) from exc
        logger.info(
            "Ticket type updated. ticket_type_id=%s fields=%s",
            ticket_type_id,
            sorted(changes),
        )
        return ticket_type

    def delete_ticket_type(self, organizer_id: str, ticket_type_id: str) -> None:
        ticket_type = self.ticket_type_repository.get_by_id(ticket_type_id)
        if not ticket_type or ticket_type.event.organizer_id != organizer_id:
            raise NotFoundError("Ticket type not found")

        self.ticket_type_repository.lock(ticket_type_id)
        if self.ticket_type_repository.is_referenced(ticket_type_id):
            raise TicketTypeInUseError(ticket_type_id)

        self.ticket_type_repository.delete(ticket_type)
        logger.info("Ticket type deleted. ticket_type_id=%s", ticket_type_id)

    def inventory(self, ticket_type_id: str) -> dict:
        ticket_type = self.ticket_type_repository.get_by_id(ticket_type_id)
        if not ticket_type:
            raise NotFoundError("Ticket type not found")

        committed = self.ticket_type_repository.committed_units(ticket_type_id)
        if committed != ticket_type.sold:
            logger.error(
                "Ledger drift detected. ticket_type_id=%s sold=%s committed=%s",
                ticket_type_id,
                ticket_type.sold,
                committed,
            )

        return {
            "ticket_type_id": ticket_type.id,
            "event_id": ticket_type.event_id,
            "quantity": ticket_type.quantity,
            "sold": ticket_type.sold,
            "available": ticket_type.quantity - ticket_type.sold,
            "committed": committed,
            "consistent": committed == ticket_type.sold,
        }

    def create_promotion(
        self,
        organizer_id: str,
        event_id: str,
        code: str,
        discount_type: DiscountType,
        discount_value: Decimal,
        max_uses: int | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Promotion:
        self._owned_event(organizer_id, event_id)

        if discount_value < 0:
            raise ValidationError("Discount value cannot be negative")
        if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
            raise ValidationError("Percentage discount cannot exceed 100")
        if max_uses is not None and max_uses < 1:
            raise ValidationError("max_uses must be at least 1")

        if self.order_repository.get_promotion(event_id, code):
            raise DuplicateError(f"Promotion code {code!r} already exists for this event")

        try:
            with self.db.begin_nested():
                promotion = self.order_repository.create_promotion(
                    event_id=event_id,
                    code=code,
                    discount_type=discount_type,
                    discount_value=discount_value,
                    max_uses=max_uses,
                    used=0,
                    start_date=start_date,
                    end_date=end_date,
                )
        except IntegrityError as exc:
            raise DuplicateError(
                f"Promotion code {code!r} already exists for this event"
            ) from exc

        logger.info("Promotion created. event_id=%s code=%s", event_id, code)
        return promotion

    def _owned_event(self, organizer_id: str, event_id: str) -> Event:
        event = self.event_repository.get_owned(event_id, organizer_id)
        if not event:
            raise NotFoundError(
                "Event not found or you do not have permission to manage this event"
            )
        return event


def _validate_ticket_fields(quantity: int, price: Decimal, max_per_user: int | None) -> None:
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative")
    if price < 0:
        raise ValidationError("Price cannot be negative")
    if max_per_user is not None and max_per_user < 1:
        raise ValidationError("max_per_user must be at least 1")

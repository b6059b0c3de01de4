import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from eventease.domain.exceptions import (
    InvalidQuantityError,
    NotFoundError,
    ValidationError,
)
from eventease.domain.pricing import compute_discount, line_total, to_money
from eventease.domain.references import generate_ticket_code
from eventease.domain.state_machine import (
    OrderStateMachine,
    OrderStatus,
    order_holds_inventory,
)
from eventease.infrastructure.db.models import Order
from eventease.infrastructure.repositories.event_repository import EventRepository
from eventease.infrastructure.repositories.order_repository import OrderRepository
from eventease.infrastructure.repositories.outbox_repository import OutboxRepository
from eventease.infrastructure.repositories.ticket_type_repository import TicketTypeRepository

logger = logging.getLogger(__name__)


class OrderService:
    """
    Multi-ticket checkout. Shares the ticket-type ledger with bookings and
    holds inventory while the order is pending or completed.
    """

    def __init__(self, db: Session):
        self.db = db
        self.order_repository = OrderRepository(db)
        self.event_repository = EventRepository(db)
        self.ticket_type_repository = TicketTypeRepository(db)
        self.outbox_repository = OutboxRepository(db)

    def create_order(
        self,
        user_id: str,
        event_id: str,
        tickets: list[dict],
        billing_name: str,
        billing_email: str,
        billing_address: str | None = None,
        promotion_code: str | None = None,
    ) -> Order:
        event = self.event_repository.get_approved(event_id)
        if not event:
            raise NotFoundError("Event not found")

        if not tickets:
            raise InvalidQuantityError(0, "An order needs at least one ticket")

        requested = _merge_ticket_lines(tickets)

        ticket_types = {}
        for ticket_type_id in requested:
            ticket_type = self.ticket_type_repository.get_for_event(ticket_type_id, event_id)
            if not ticket_type:
                raise NotFoundError("One or more ticket types are invalid")
            ticket_types[ticket_type_id] = ticket_type

        currencies = {ticket_type.currency for ticket_type in ticket_types.values()}
        if len(currencies) > 1:
            raise ValidationError("All tickets in an order must share one currency")

        # Locks are taken in id order so two orders over the same tiers
        # cannot deadlock.
        items = []
        subtotal = to_money(0)
        for ticket_type_id in sorted(requested):
            line = requested[ticket_type_id]
            ticket_type = self.ticket_type_repository.lock(ticket_type_id)
            self.ticket_type_repository.reserve(ticket_type_id, event_id, line["quantity"])

            unit_price = to_money(0) if ticket_type.is_free else to_money(ticket_type.price)
            item_total = line_total(ticket_type.price, line["quantity"], ticket_type.is_free)
            subtotal += item_total
            items.append(
                {
                    "ticket_type_id": ticket_type_id,
                    "quantity": line["quantity"],
                    "unit_price": unit_price,
                    "total_price": item_total,
                    "attendee_name": line.get("attendee_name"),
                    "attendee_email": line.get("attendee_email"),
                    "ticket_code": generate_ticket_code(),
                }
            )

        discount = to_money(0)
        promotion_id = None
        if promotion_code:
            promotion = self.order_repository.redeem_promotion(event_id, promotion_code)
            discount = compute_discount(subtotal, promotion.discount_type, promotion.discount_value)
            promotion_id = promotion.id

        order = self.order_repository.create_order(
            user_id=user_id,
            event_id=event_id,
            total_amount=max(subtotal - discount, Decimal(0)),
            discount_amount=discount,
            currency=currencies.pop(),
            billing_name=billing_name,
            billing_email=billing_email,
            billing_address=billing_address,
            promotion_id=promotion_id,
            items=items,
        )

        self.outbox_repository.add_event(
            aggregate_type="order",
            aggregate_id=order.id,
            event_type="ORDER_CREATED",
            payload={
                "order_id": order.id,
                "event_id": event_id,
                "total_amount": str(order.total_amount),
                "items": [
                    {"ticket_type_id": item["ticket_type_id"], "quantity": item["quantity"]}
                    for item in items
                ],
            },
            dedupe_key=f"order:{order.id}:created",
        )

        logger.info(
            "Order created. order_id=%s event_id=%s items=%s total=%s",
            order.id,
            event_id,
            len(items),
            order.total_amount,
        )
        return order

    def get_order(self, user_id: str, order_id: str) -> Order:
        order = self.order_repository.get_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")

        if order.user_id != user_id and not self.event_repository.get_owned(order.event_id, user_id):
            raise NotFoundError("Order not found")
        return order

    def list_event_orders(
        self,
        organizer_id: str,
        event_id: str,
        status: OrderStatus | None = None,
    ) -> list[Order]:
        if not self.event_repository.get_owned(event_id, organizer_id):
            raise NotFoundError(
                "Event not found or you do not have permission to view its orders"
            )
        return self.order_repository.list_for_event(event_id, status=status)

    def update_order_status(
        self,
        organizer_id: str,
        order_id: str,
        new_status: OrderStatus,
    ) -> Order:
        order = self.order_repository.get_by_id(order_id, for_update=True)
        if not order or not self.event_repository.get_owned(order.event_id, organizer_id):
            raise NotFoundError("Order not found or you don't have permission to update it")

        previous = order.status
        OrderStateMachine.validate_transition(previous, new_status)
        self.order_repository.update_status(order, new_status)

        if order_holds_inventory(previous) and not order_holds_inventory(new_status):
            for item in order.items:
                self.ticket_type_repository.release(item.ticket_type_id, item.quantity)

        self.outbox_repository.add_event(
            aggregate_type="order",
            aggregate_id=order.id,
            event_type=f"ORDER_{new_status.value.upper()}",
            payload={
                "order_id": order.id,
                "from_status": previous.value,
                "to_status": new_status.value,
            },
            dedupe_key=f"order:{order.id}:{new_status.value}",
        )

        logger.info(
            "Order status updated. order_id=%s %s -> %s",
            order.id,
            previous.value,
            new_status.value,
        )
        return order


def _merge_ticket_lines(tickets: list[dict]) -> dict[str, dict]:
    merged: dict[str, dict] = {}
    for ticket in tickets:
        ticket_type_id = ticket.get("ticket_type_id")
        quantity = ticket.get("quantity")
        if not ticket_type_id:
            raise ValidationError("Each ticket needs a ticket_type_id")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise InvalidQuantityError(quantity)

        line = merged.setdefault(
            ticket_type_id,
            {
                "quantity": 0,
                "attendee_name": ticket.get("attendee_name"),
                "attendee_email": ticket.get("attendee_email"),
            },
        )
        line["quantity"] += quantity
    return merged

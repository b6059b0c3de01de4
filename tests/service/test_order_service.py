from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from eventease.application.catalog_service import CatalogService
from eventease.application.order_service import OrderService
from eventease.domain.exceptions import (
    InsufficientInventoryError,
    InvalidPromotionError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    NotFoundError,
    TicketTypeInUseError,
)
from eventease.domain.pricing import DiscountType
from eventease.domain.state_machine import OrderStatus
from eventease.infrastructure.db.session import get_db_session

ORGANIZER_ID = "organizer-1"


def _order(event_id, tickets, user_id="buyer-1", promotion_code=None):
    with get_db_session() as db:
        order = OrderService(db).create_order(
            user_id=user_id,
            event_id=event_id,
            tickets=tickets,
            billing_name="Abebe Kebede",
            billing_email="abebe@example.com",
            promotion_code=promotion_code,
        )
        return order.id, order.total_amount, order.discount_amount, len(order.items)


def _set_status(order_id, new_status, organizer_id=ORGANIZER_ID):
    with get_db_session() as db:
        return OrderService(db).update_order_status(
            organizer_id=organizer_id,
            order_id=order_id,
            new_status=new_status,
        ).status


def _promotion(event_id, code="EARLY", discount_type=DiscountType.PERCENTAGE, value="10", **kwargs):
    with get_db_session() as db:
        CatalogService(db).create_promotion(
            organizer_id=ORGANIZER_ID,
            event_id=event_id,
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(value),
            **kwargs,
        )


def test_order_reserves_every_line(make_event, make_ticket_type, ticket_state):
    event_id = make_event()
    general = make_ticket_type(event_id, quantity=10, price="100.00", name="General")
    vip = make_ticket_type(event_id, quantity=5, price="400.00", name="VIP")

    _, total, discount, item_count = _order(
        event_id,
        [
            {"ticket_type_id": general, "quantity": 2},
            {"ticket_type_id": vip, "quantity": 1},
        ],
    )

    assert total == Decimal("600.00")
    assert discount == Decimal("0.00")
    assert item_count == 2
    assert ticket_state(general) == (2, 2)
    assert ticket_state(vip) == (1, 1)


def test_duplicate_lines_are_merged(make_event, make_ticket_type, ticket_state):
    event_id = make_event()
    general = make_ticket_type(event_id, quantity=10)

    _, _, _, item_count = _order(
        event_id,
        [
            {"ticket_type_id": general, "quantity": 1},
            {"ticket_type_id": general, "quantity": 2},
        ],
    )

    assert item_count == 1
    assert ticket_state(general) == (3, 3)


def test_order_is_all_or_nothing(make_event, make_ticket_type, ticket_state):
    event_id = make_event()
    general = make_ticket_type(event_id, quantity=10, name="General")
    vip = make_ticket_type(event_id, quantity=1, name="VIP")

    with pytest.raises(InsufficientInventoryError):
        _order(
            event_id,
            [
                {"ticket_type_id": general, "quantity": 2},
                {"ticket_type_id": vip, "quantity": 2},
            ],
        )

    assert ticket_state(general) == (0, 0)
    assert ticket_state(vip) == (0, 0)


def test_order_rejects_bad_quantity(make_event, make_ticket_type):
    event_id = make_event()
    general = make_ticket_type(event_id)

    with pytest.raises(InvalidQuantityError):
        _order(event_id, [{"ticket_type_id": general, "quantity": 0}])


def test_order_rejects_foreign_ticket_type(make_event, make_ticket_type):
    event_id = make_event()
    foreign = make_ticket_type(make_event())

    with pytest.raises(NotFoundError):
        _order(event_id, [{"ticket_type_id": foreign, "quantity": 1}])


def test_percentage_promotion(make_event, make_ticket_type):
    event_id = make_event()
    general = make_ticket_type(event_id, price="100.00")
    _promotion(event_id, value="25")

    _, total, discount, _ = _order(
        event_id,
        [{"ticket_type_id": general, "quantity": 2}],
        promotion_code="EARLY",
    )

    assert discount == Decimal("50.00")
    assert total == Decimal("150.00")


def test_promotion_usage_cap(make_event, make_ticket_type, ticket_state):
    event_id = make_event()
    general = make_ticket_type(event_id, price="100.00")
    _promotion(event_id, discount_type=DiscountType.FIXED, value="30", max_uses=1)
    line = [{"ticket_type_id": general, "quantity": 1}]

    _order(event_id, line, promotion_code="EARLY")
    with pytest.raises(InvalidPromotionError):
        _order(event_id, line, promotion_code="EARLY")

    assert ticket_state(general) == (1, 1)


def test_expired_promotion_is_rejected(make_event, make_ticket_type):
    event_id = make_event()
    general = make_ticket_type(event_id)
    yesterday = datetime.now(timezone.utc) - timedelta(days=1)
    _promotion(event_id, end_date=yesterday)

    with pytest.raises(InvalidPromotionError):
        _order(event_id, [{"ticket_type_id": general, "quantity": 1}], promotion_code="EARLY")


def test_cancelling_order_releases_inventory(make_event, make_ticket_type, ticket_state):
    event_id = make_event()
    general = make_ticket_type(event_id, quantity=10)
    order_id, _, _, _ = _order(event_id, [{"ticket_type_id": general, "quantity": 4}])

    assert _set_status(order_id, OrderStatus.COMPLETED) == OrderStatus.COMPLETED
    assert ticket_state(general) == (4, 4)

    assert _set_status(order_id, OrderStatus.REFUNDED) == OrderStatus.REFUNDED
    assert ticket_state(general) == (0, 0)

    with pytest.raises(InvalidStateTransitionError):
        _set_status(order_id, OrderStatus.CANCELLED)

    assert ticket_state(general) == (0, 0)


def test_order_status_requires_organizer(make_event, make_ticket_type):
    event_id = make_event()
    general = make_ticket_type(event_id)
    order_id, _, _, _ = _order(event_id, [{"ticket_type_id": general, "quantity": 1}])

    with pytest.raises(NotFoundError):
        _set_status(order_id, OrderStatus.CANCELLED, organizer_id="buyer-1")


def test_ticket_type_with_orders_cannot_be_deleted(make_event, make_ticket_type):
    event_id = make_event()
    general = make_ticket_type(event_id)
    _order(event_id, [{"ticket_type_id": general, "quantity": 1}])

    with pytest.raises(TicketTypeInUseError):
        with get_db_session() as db:
            CatalogService(db).delete_ticket_type(organizer_id=ORGANIZER_ID, ticket_type_id=general)


def test_unused_ticket_type_can_be_deleted(make_event, make_ticket_type):
    event_id = make_event()
    general = make_ticket_type(event_id)

    with get_db_session() as db:
        CatalogService(db).delete_ticket_type(organizer_id=ORGANIZER_ID, ticket_type_id=general)

    with get_db_session() as db:
        assert CatalogService(db).list_ticket_types(event_id) == []


def test_empty_order_is_an_invalid_quantity(make_event):
    event_id = make_event()

    with pytest.raises(InvalidQuantityError):
        _order(event_id, [])


def test_organizer_lists_event_orders_by_status(make_event, make_ticket_type):
    event_id = make_event()
    general = make_ticket_type(event_id, quantity=10)
    kept, _, _, _ = _order(event_id, [{"ticket_type_id": general, "quantity": 1}])
    dropped, _, _, _ = _order(event_id, [{"ticket_type_id": general, "quantity": 1}], user_id="buyer-2")
    _set_status(dropped, OrderStatus.CANCELLED)

    with get_db_session() as db:
        service = OrderService(db)
        everything = {order.id for order in service.list_event_orders(ORGANIZER_ID, event_id)}
        pending = [
            order.id
            for order in service.list_event_orders(ORGANIZER_ID, event_id, status=OrderStatus.PENDING)
        ]

    assert everything == {kept, dropped}
    assert pending == [kept]


def test_event_orders_are_hidden_from_other_users(make_event):
    event_id = make_event()

    with pytest.raises(NotFoundError):
        with get_db_session() as db:
            OrderService(db).list_event_orders("buyer-1", event_id)

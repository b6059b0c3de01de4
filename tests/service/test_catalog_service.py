from decimal import Decimal

import pytest

from eventease.application.booking_service import BookingService
from eventease.application.catalog_service import CatalogService
from eventease.domain.exceptions import (
    CapacityBelowSoldError,
    DuplicateError,
    NotFoundError,
    TicketTypeInUseError,
    ValidationError,
)
from eventease.domain.pricing import DiscountType
from eventease.infrastructure.db.session import get_db_session

ORGANIZER_ID = "organizer-1"


def _update(ticket_type_id, organizer_id=ORGANIZER_ID, **changes):
    with get_db_session() as db:
        ticket_type = CatalogService(db).update_ticket_type(
            organizer_id=organizer_id,
            ticket_type_id=ticket_type_id,
            **changes,
        )
        return ticket_type.name, ticket_type.quantity, ticket_type.sold, ticket_type.price


def _book(event_id, ticket_type_id, quantity):
    with get_db_session() as db:
        return BookingService(db).book_event(
            user_id="user-1",
            event_id=event_id,
            ticket_type_id=ticket_type_id,
            quantity=quantity,
        ).id


# ---------------------
# TICKET TYPES
# ---------------------

def test_duplicate_ticket_type_name_is_rejected(make_event, make_ticket_type):
    event_id = make_event()
    make_ticket_type(event_id, name="General")

    with pytest.raises(DuplicateError):
        with get_db_session() as db:
            CatalogService(db).create_ticket_type(
                organizer_id=ORGANIZER_ID,
                event_id=event_id,
                name="General",
                price=Decimal("100.00"),
                quantity=5,
            )


def test_same_tier_name_is_allowed_on_another_event(make_event, make_ticket_type):
    make_ticket_type(make_event(), name="General")
    other_event = make_event()

    with get_db_session() as db:
        ticket_type = CatalogService(db).create_ticket_type(
            organizer_id=ORGANIZER_ID,
            event_id=other_event,
            name="General",
            price=Decimal("100.00"),
            quantity=5,
        )
        assert ticket_type.event_id == other_event


def test_capacity_can_grow_and_shrink_down_to_sold(make_event, make_ticket_type, ticket_state):
    event_id = make_event()
    ticket_type_id = make_ticket_type(event_id, quantity=5)
    _book(event_id, ticket_type_id, quantity=3)

    assert _update(ticket_type_id, quantity=8)[1:3] == (8, 3)
    assert _update(ticket_type_id, quantity=3)[1:3] == (3, 3)

    with pytest.raises(CapacityBelowSoldError):
        _update(ticket_type_id, quantity=2)

    assert ticket_state(ticket_type_id) == (3, 3)


def test_update_renames_and_reprices(make_event, make_ticket_type):
    event_id = make_event()
    ticket_type_id = make_ticket_type(event_id, name="General", price="100.00")

    name, _, _, price = _update(ticket_type_id, name="Early Bird", price=Decimal("80.00"))

    assert name == "Early Bird"
    assert price == Decimal("80.00")


def test_update_to_existing_name_is_rejected(make_event, make_ticket_type):
    event_id = make_event()
    make_ticket_type(event_id, name="General")
    vip = make_ticket_type(event_id, name="VIP")

    with pytest.raises(DuplicateError):
        _update(vip, name="General")


def test_free_tier_update_zeroes_price(make_event, make_ticket_type):
    event_id = make_event()
    ticket_type_id = make_ticket_type(event_id, price="100.00")

    _, _, _, price = _update(ticket_type_id, is_free=True)

    assert price == Decimal("0")


def test_update_rejects_sold_and_empty_fields(make_event, make_ticket_type):
    event_id = make_event()
    ticket_type_id = make_ticket_type(event_id)

    with pytest.raises(ValidationError):
        _update(ticket_type_id, sold=0)
    with pytest.raises(ValidationError):
        _update(ticket_type_id, quantity=None)


def test_update_requires_event_organizer(make_event, make_ticket_type):
    event_id = make_event()
    ticket_type_id = make_ticket_type(event_id)

    with pytest.raises(NotFoundError):
        _update(ticket_type_id, organizer_id="someone-else", quantity=20)


def test_ticket_type_with_bookings_cannot_be_deleted(make_event, make_ticket_type):
    event_id = make_event()
    ticket_type_id = make_ticket_type(event_id)
    _book(event_id, ticket_type_id, quantity=1)

    with pytest.raises(TicketTypeInUseError):
        with get_db_session() as db:
            CatalogService(db).delete_ticket_type(
                organizer_id=ORGANIZER_ID,
                ticket_type_id=ticket_type_id,
            )


# ---------------------
# PROMOTIONS
# ---------------------

def test_duplicate_promotion_code_is_rejected(make_event):
    event_id = make_event()

    def create():
        with get_db_session() as db:
            CatalogService(db).create_promotion(
                organizer_id=ORGANIZER_ID,
                event_id=event_id,
                code="EARLY",
                discount_type=DiscountType.FIXED,
                discount_value=Decimal("20"),
            )

    create()
    with pytest.raises(DuplicateError):
        create()

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from eventease.infrastructure.db.session import SessionLocal
from eventease.application.booking_service import BookingService
from eventease.application.catalog_service import CatalogService
from eventease.application.order_service import OrderService
from eventease.api.schemas.schemas import (
    BookingRequest,
    BookingResponse,
    EventApprovalRequest,
    EventCreate,
    EventResponse,
    InventoryResponse,
    OrderCreate,
    OrderItemResponse,
    OrderResponse,
    OrderStatusUpdate,
    OutboxEventResponse,
    PromotionCreate,
    PromotionResponse,
    TicketTypeCreate,
    TicketTypeResponse,
    TicketTypeUpdate,
)
from eventease.domain.exceptions import ErrorKind, EventEaseError
from eventease.domain.state_machine import OrderStatus
from eventease.infrastructure.db.models import Booking, Order, OutboxEvent
from eventease.infrastructure.repositories.outbox_repository import OutboxRepository


router = APIRouter()
logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_QUANTITY: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_PROMOTION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INSUFFICIENT_INVENTORY: status.HTTP_409_CONFLICT,
    ErrorKind.USER_LIMIT_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_CANCELLED: status.HTTP_409_CONFLICT,
    ErrorKind.CANNOT_CANCEL_CHECKED_IN: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_CHECKED_IN: status.HTTP_409_CONFLICT,
    ErrorKind.CANNOT_CHECK_IN_CANCELLED: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.TICKET_TYPE_IN_USE: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE: status.HTTP_409_CONFLICT,
    ErrorKind.CAPACITY_BELOW_SOLD: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.REFERENCE_GENERATION_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.NEGATIVE_INVENTORY: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "kind": ErrorKind.UNAUTHENTICATED.value,
                "message": "X-User-Id header is required",
            },
        )
    return x_user_id


def _http_error(exc: EventEaseError) -> HTTPException:
    status_code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)

    if exc.kind == ErrorKind.NEGATIVE_INVENTORY:
        logger.error("Inventory invariant violated: %s", exc.message, exc_info=exc)
        message = "Internal inventory error"
    else:
        logger.warning("Request rejected. kind=%s message=%s", exc.kind.value, exc.message)
        message = exc.message

    return HTTPException(
        status_code=status_code,
        detail={"kind": exc.kind.value, "message": message},
    )


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        reference=booking.reference,
        user_id=booking.user_id,
        event_id=booking.event_id,
        ticket_type_id=booking.ticket_type_id,
        quantity=booking.quantity,
        total_price=booking.total_price,
        status=booking.status.value,
        checked_in_at=booking.checked_in_at,
        cancelled_at=booking.cancelled_at,
    )


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        user_id=order.user_id,
        event_id=order.event_id,
        status=order.status.value,
        total_amount=order.total_amount,
        discount_amount=order.discount_amount,
        currency=order.currency,
        promotion_id=order.promotion_id,
        items=[OrderItemResponse.model_validate(item) for item in order.items],
    )


def _outbox_response(item: OutboxEvent) -> OutboxEventResponse:
    return OutboxEventResponse(
        id=item.id,
        aggregate_type=item.aggregate_type,
        aggregate_id=item.aggregate_id,
        event_type=item.event_type,
        status=item.status,
        attempts=item.attempts,
        created_at=item.created_at.isoformat(),
    )


@router.get("/health")
def health():
    return {"status": "ok"}


# -----------------------------
# Events & ticket types
# -----------------------------
@router.post("/events", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
def create_event(
    request: EventCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    event = CatalogService(db).create_event(
        organizer_id=user_id,
        title=request.title,
        location=request.location,
        start_date=request.start_date,
    )
    return EventResponse.model_validate(event)


@router.get("/events/{event_id}", response_model=EventResponse)
def get_event(event_id: str, db: Session = Depends(get_db)):
    try:
        event = CatalogService(db).get_event(event_id)
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return EventResponse.model_validate(event)


@router.post("/events/{event_id}/approve", response_model=EventResponse)
def approve_event(
    event_id: str,
    request: EventApprovalRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    approval_status = request.approval_status if request else "approved"
    try:
        event = CatalogService(db).set_approval_status(
            organizer_id=user_id,
            event_id=event_id,
            approval_status=approval_status,
        )
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return EventResponse.model_validate(event)


@router.post(
    "/events/{event_id}/ticket-types",
    response_model=TicketTypeResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_ticket_type(
    event_id: str,
    request: TicketTypeCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        ticket_type = CatalogService(db).create_ticket_type(
            organizer_id=user_id,
            event_id=event_id,
            **request.model_dump(),
        )
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return TicketTypeResponse.model_validate(ticket_type)


@router.get("/events/{event_id}/ticket-types", response_model=list[TicketTypeResponse])
def list_ticket_types(event_id: str, db: Session = Depends(get_db)):
    try:
        ticket_types = CatalogService(db).list_ticket_types(event_id)
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return [TicketTypeResponse.model_validate(item) for item in ticket_types]


@router.patch("/ticket-types/{ticket_type_id}", response_model=TicketTypeResponse)
def update_ticket_type(
    ticket_type_id: str,
    request: TicketTypeUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        ticket_type = CatalogService(db).update_ticket_type(
            organizer_id=user_id,
            ticket_type_id=ticket_type_id,
            **request.model_dump(exclude_unset=True),
        )
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return TicketTypeResponse.model_validate(ticket_type)


@router.delete("/ticket-types/{ticket_type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ticket_type(
    ticket_type_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        CatalogService(db).delete_ticket_type(organizer_id=user_id, ticket_type_id=ticket_type_id)
    except EventEaseError as exc:
        raise _http_error(exc) from exc


@router.get("/ticket-types/{ticket_type_id}/inventory", response_model=InventoryResponse)
def get_inventory(ticket_type_id: str, db: Session = Depends(get_db)):
    try:
        return InventoryResponse(**CatalogService(db).inventory(ticket_type_id))
    except EventEaseError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/events/{event_id}/promotions",
    response_model=PromotionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_promotion(
    event_id: str,
    request: PromotionCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        promotion = CatalogService(db).create_promotion(
            organizer_id=user_id,
            event_id=event_id,
            **request.model_dump(),
        )
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return PromotionResponse.model_validate(promotion)


# -----------------------------
# Bookings
# -----------------------------
@router.post(
    "/events/{event_id}/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def book_event(
    event_id: str,
    request: BookingRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).book_event(
            user_id=user_id,
            event_id=event_id,
            ticket_type_id=request.ticket_type_id,
            quantity=request.quantity,
        )
    except EventEaseError as exc:
        raise _http_error(exc) from exc

    return _booking_response(booking)


@router.get("/bookings", response_model=list[BookingResponse])
def list_my_bookings(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    bookings = BookingService(db).list_user_bookings(user_id)
    return [_booking_response(booking) for booking in bookings]


@router.get("/bookings/reference/{reference}", response_model=BookingResponse)
def get_booking_by_reference(reference: str, db: Session = Depends(get_db)):
    try:
        booking = BookingService(db).get_booking_by_reference(reference)
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return _booking_response(booking)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).get_booking(user_id=user_id, booking_id=booking_id)
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return _booking_response(booking)


@router.delete("/bookings/{booking_id}", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).cancel_booking(user_id=user_id, booking_id=booking_id)
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return _booking_response(booking)


@router.get("/events/{event_id}/bookings", response_model=list[BookingResponse])
def list_event_bookings(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        bookings = BookingService(db).list_event_bookings(organizer_id=user_id, event_id=event_id)
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return [_booking_response(booking) for booking in bookings]


@router.post(
    "/events/{event_id}/bookings/{booking_id}/check-in",
    response_model=BookingResponse,
)
def check_in_booking(
    event_id: str,
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).check_in_booking(
            organizer_id=user_id,
            event_id=event_id,
            booking_id=booking_id,
        )
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return _booking_response(booking)


# -----------------------------
# Orders
# -----------------------------
@router.post(
    "/events/{event_id}/orders",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    event_id: str,
    request: OrderCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        order = OrderService(db).create_order(
            user_id=user_id,
            event_id=event_id,
            tickets=[line.model_dump() for line in request.tickets],
            billing_name=request.billing_name,
            billing_email=request.billing_email,
            billing_address=request.billing_address,
            promotion_code=request.promotion_code,
        )
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return _order_response(order)


@router.get("/events/{event_id}/orders", response_model=list[OrderResponse])
def list_event_orders(
    event_id: str,
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        orders = OrderService(db).list_event_orders(
            organizer_id=user_id,
            event_id=event_id,
            status=status_filter,
        )
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return [_order_response(order) for order in orders]


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        order = OrderService(db).get_order(user_id=user_id, order_id=order_id)
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return _order_response(order)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        order = OrderService(db).update_order_status(
            organizer_id=user_id,
            order_id=order_id,
            new_status=request.status,
        )
    except EventEaseError as exc:
        raise _http_error(exc) from exc
    return _order_response(order)


# -----------------------------
# Outbox
# -----------------------------
@router.get("/outbox/events", response_model=list[OutboxEventResponse])
def list_outbox_events(
    status_filter: str = "PENDING",
    limit: int = 50,
    db: Session = Depends(get_db),
):
    safe_limit = max(1, min(limit, 200))
    events = OutboxRepository(db).list_events(status=status_filter, limit=safe_limit)
    return [_outbox_response(item) for item in events]


@router.post("/outbox/events/{event_id}/mark-published", response_model=OutboxEventResponse)
def mark_outbox_event_published(
    event_id: str,
    db: Session = Depends(get_db),
):
    repository = OutboxRepository(db)
    item = repository.get_by_id(event_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"kind": ErrorKind.NOT_FOUND.value, "message": "Outbox event not found"},
        )

    return _outbox_response(repository.mark_published(item))

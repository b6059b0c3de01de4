from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from eventease.domain.pricing import DiscountType
from eventease.domain.state_machine import OrderStatus


class BookingRequest(BaseModel):
    ticket_type_id: str
    # Validated by the booking service so a bad value maps to INVALID_QUANTITY.
    quantity: int | None = None


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference: str
    user_id: str
    event_id: str
    ticket_type_id: str
    quantity: int
    total_price: Decimal
    status: str
    checked_in_at: datetime | None = None
    cancelled_at: datetime | None = None


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=128)
    location: str | None = None
    start_date: datetime | None = None


class EventApprovalRequest(BaseModel):
    approval_status: Literal["draft", "pending", "approved", "rejected", "cancelled"] = "approved"


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organizer_id: str
    title: str
    location: str | None = None
    start_date: datetime | None = None
    approval_status: str


class TicketTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    description: str | None = None
    price: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = "ETB"
    quantity: int = Field(ge=0)
    max_per_user: int | None = Field(default=None, ge=1)
    is_free: bool = False


class TicketTypeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    currency: str | None = None
    quantity: int | None = Field(default=None, ge=0)
    max_per_user: int | None = Field(default=None, ge=1)
    is_free: bool | None = None


class TicketTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    name: str
    description: str | None = None
    price: Decimal
    currency: str
    quantity: int
    sold: int
    max_per_user: int | None = None
    is_free: bool


class InventoryResponse(BaseModel):
    ticket_type_id: str
    event_id: str
    quantity: int
    sold: int
    available: int
    committed: int
    consistent: bool


class PromotionCreate(BaseModel):
    code: str = Field(min_length=1, max_length=32)
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0)
    max_uses: int | None = Field(default=None, ge=1)
    start_date: datetime | None = None
    end_date: datetime | None = None


class PromotionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    max_uses: int | None = None
    used: int


class OrderTicketLine(BaseModel):
    ticket_type_id: str
    quantity: int | None = None
    attendee_name: str | None = None
    attendee_email: str | None = None


class OrderCreate(BaseModel):
    tickets: list[OrderTicketLine]
    promotion_code: str | None = None
    billing_name: str
    billing_email: str
    billing_address: str | None = None


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_type_id: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    ticket_code: str
    attendee_name: str | None = None
    attendee_email: str | None = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    event_id: str
    status: str
    total_amount: Decimal
    discount_amount: Decimal
    currency: str
    promotion_id: str | None = None
    items: list[OrderItemResponse]


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OutboxEventResponse(BaseModel):
    id: str
    aggregate_type: str
    aggregate_id: str
    event_type: str
    status: str
    attempts: int
    created_at: str

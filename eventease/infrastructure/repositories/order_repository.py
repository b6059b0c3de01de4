# eventease/infrastructure/repositories/order_repository.py

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, select, update

from eventease.infrastructure.db.models import Order, OrderItem, Promotion
from eventease.domain.exceptions import InvalidPromotionError
from eventease.domain.state_machine import OrderStatus


class OrderRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        order_id: str,
        for_update: bool = False,
    ) -> Order | None:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items))
        )
        if for_update:
            stmt = stmt.with_for_update(of=Order).execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_event(
        self,
        event_id: str,
        status: OrderStatus | None = None,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.event_id == event_id)
            .options(selectinload(Order.items))
            .order_by(Order.created_at.desc())
        )
        if status is not None:
            stmt = stmt.where(Order.status == status)
        return list(self.db.execute(stmt).scalars().all())

    def create_order(
        self,
        user_id: str,
        event_id: str,
        total_amount: Decimal,
        discount_amount: Decimal,
        currency: str,
        billing_name: str,
        billing_email: str,
        billing_address: str | None,
        promotion_id: str | None,
        items: list[dict],
    ) -> Order:
        order = Order(
            user_id=user_id,
            event_id=event_id,
            total_amount=total_amount,
            discount_amount=discount_amount,
            currency=currency,
            status=OrderStatus.PENDING,
            promotion_id=promotion_id,
            billing_name=billing_name,
            billing_email=billing_email,
            billing_address=billing_address,
        )
        order.items = [OrderItem(**item) for item in items]

        self.db.add(order)
        self.db.flush()
        return order

    def update_status(self, order: Order, new_status: OrderStatus) -> None:
        order.status = new_status
        self.db.flush()

    # -----------------------------
    # Promotions
    # -----------------------------
    def get_promotion(self, event_id: str, code: str) -> Promotion | None:
        stmt = (
            select(Promotion)
            .where(Promotion.event_id == event_id)
            .where(Promotion.code == code)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create_promotion(self, **fields) -> Promotion:
        promotion = Promotion(**fields)
        self.db.add(promotion)
        self.db.flush()
        return promotion

    def redeem_promotion(
        self,
        event_id: str,
        code: str,
        now: datetime | None = None,
    ) -> Promotion:
        """
        Counts one use of an active promotion. The usage cap is checked by
        the UPDATE so concurrent orders cannot overrun it.
        """
        now = now or datetime.now(timezone.utc)

        stmt = (
            update(Promotion)
            .where(Promotion.event_id == event_id)
            .where(Promotion.code == code)
            .where(or_(Promotion.start_date.is_(None), Promotion.start_date <= now))
            .where(or_(Promotion.end_date.is_(None), Promotion.end_date >= now))
            .where(or_(Promotion.max_uses.is_(None), Promotion.used < Promotion.max_uses))
            .values(used=Promotion.used + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount != 1:
            raise InvalidPromotionError(code)

        promotion = self.get_promotion(event_id, code)
        self.db.refresh(promotion)
        return promotion

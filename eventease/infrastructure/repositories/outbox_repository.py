# eventease/infrastructure/repositories/outbox_repository.py

from datetime import datetime, timezone
import json

from sqlalchemy.orm import Session
from sqlalchemy import select

from eventease.infrastructure.db.models import OutboxEvent


class OutboxRepository:
    """Domain events written in the same transaction as the state change."""

    def __init__(self, db: Session):
        self.db = db

    def add_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
        dedupe_key: str,
    ) -> None:
        existing = self.db.execute(
            select(OutboxEvent).where(OutboxEvent.dedupe_key == dedupe_key)
        ).scalar_one_or_none()
        if existing:
            return

        self.db.add(
            OutboxEvent(
                aggregate_type=aggregate_type,
                aggregate_id=aggregate_id,
                event_type=event_type,
                payload=json.dumps(payload, sort_keys=True, default=str),
                dedupe_key=dedupe_key,
                status="PENDING",
                attempts=0,
            )
        )
        self.db.flush()

    def list_events(
        self,
        status: str | None = None,
        limit: int = 100,
    ) -> list[OutboxEvent]:
        stmt = select(OutboxEvent).order_by(OutboxEvent.created_at).limit(limit)
        if status:
            stmt = stmt.where(OutboxEvent.status == status.upper())
        return list(self.db.execute(stmt).scalars().all())

    def get_by_id(self, event_id: str) -> OutboxEvent | None:
        stmt = select(OutboxEvent).where(OutboxEvent.id == event_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def mark_published(self, outbox_event: OutboxEvent) -> OutboxEvent:
        outbox_event.status = "PUBLISHED"
        outbox_event.attempts += 1
        outbox_event.last_error = None
        outbox_event.published_at = datetime.now(timezone.utc)
        self.db.flush()
        return outbox_event

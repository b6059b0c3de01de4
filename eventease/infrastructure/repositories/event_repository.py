# eventease/infrastructure/repositories/event_repository.py

from datetime import datetime

from sqlalchemy.orm import Session
from sqlalchemy import select

from eventease.infrastructure.db.models import Event

APPROVED = "approved"


class EventRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, event_id: str) -> Event | None:
        stmt = select(Event).where(Event.id == event_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_approved(self, event_id: str) -> Event | None:
        stmt = (
            select(Event)
            .where(Event.id == event_id)
            .where(Event.approval_status == APPROVED)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_owned(self, event_id: str, organizer_id: str) -> Event | None:
        stmt = (
            select(Event)
            .where(Event.id == event_id)
            .where(Event.organizer_id == organizer_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create(
        self,
        organizer_id: str,
        title: str,
        location: str | None = None,
        start_date: datetime | None = None,
        approval_status: str = "draft",
    ) -> Event:
        event = Event(
            organizer_id=organizer_id,
            title=title,
            location=location,
            start_date=start_date,
            approval_status=approval_status,
        )
        self.db.add(event)
        self.db.flush()
        return event

import os
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest

# Must be set before anything imports the session module.
_DB_DIR = tempfile.mkdtemp(prefix="eventease-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'eventease.db'}"

from fastapi.testclient import TestClient  # noqa: E402

from eventease.infrastructure.db.models import Base, Event, TicketType  # noqa: E402
from eventease.infrastructure.db.session import engine, get_db_session  # noqa: E402

ORGANIZER_ID = "organizer-1"


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    from eventease.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_event():
    def _make_event(approval_status: str = "approved", organizer_id: str = ORGANIZER_ID) -> str:
        with get_db_session() as db:
            event = Event(
                organizer_id=organizer_id,
                title="Addis Jazz Night",
                location="Millennium Hall",
                approval_status=approval_status,
            )
            db.add(event)
            db.flush()
            return event.id

    return _make_event


@pytest.fixture
def make_ticket_type():
    def _make_ticket_type(
        event_id: str,
        quantity: int = 10,
        price: str = "250.00",
        max_per_user: int | None = None,
        is_free: bool = False,
        name: str = "General",
    ) -> str:
        with get_db_session() as db:
            ticket_type = TicketType(
                event_id=event_id,
                name=name,
                price=Decimal(price),
                quantity=quantity,
                sold=0,
                max_per_user=max_per_user,
                is_free=is_free,
            )
            db.add(ticket_type)
            db.flush()
            return ticket_type.id

    return _make_ticket_type


@pytest.fixture
def ticket_state():
    """Returns (sold, committed units) for a ticket type from a fresh session."""
    from eventease.infrastructure.repositories.ticket_type_repository import TicketTypeRepository

    def _ticket_state(ticket_type_id: str) -> tuple[int, int]:
        with get_db_session() as db:
            repository = TicketTypeRepository(db)
            ticket_type = repository.get_by_id(ticket_type_id)
            return ticket_type.sold, repository.committed_units(ticket_type_id)

    return _ticket_state

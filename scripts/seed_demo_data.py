from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select

from eventease.infrastructure.db.models import Base, Event, TicketType
from eventease.infrastructure.db.session import SessionLocal, engine

DEMO_ORGANIZER_ID = "demo-organizer"


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    eat = timezone(timedelta(hours=3))
    now_eat = datetime.now(eat)
    target = now_eat + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


def seed_events(db) -> None:
    event_defs = [
        {
            "title": "Addis Jazz Night",
            "location": "Millennium Hall, Addis Ababa",
            "start_date": _dt(days_from_now=10, hour=19, minute=30),
            "ticket_types": [
                {"name": "General", "price": "500", "quantity": 400, "max_per_user": 4},
                {"name": "VIP", "price": "1500", "quantity": 60, "max_per_user": 2},
            ],
        },
        {
            "title": "Startup Founders Meetup",
            "location": "Hub Addis, Bole",
            "start_date": _dt(days_from_now=15, hour=17, minute=0),
            "ticket_types": [
                {"name": "Community", "price": "0", "quantity": 120, "is_free": True, "max_per_user": 1},
            ],
        },
    ]

    for item in event_defs:
        existing = db.execute(
            select(Event).where(Event.title == item["title"])
        ).scalar_one_or_none()
        if existing:
            # Tiers with bookings are left alone; the ledger owns ``sold``.
            continue

        event = Event(
            organizer_id=DEMO_ORGANIZER_ID,
            title=item["title"],
            location=item["location"],
            start_date=item["start_date"],
            approval_status="approved",
        )
        db.add(event)
        db.flush()

        for tier in item["ticket_types"]:
            db.add(
                TicketType(
                    event_id=event.id,
                    name=tier["name"],
                    price=Decimal(tier["price"]),
                    quantity=tier["quantity"],
                    sold=0,
                    max_per_user=tier.get("max_per_user"),
                    is_free=tier.get("is_free", False),
                )
            )


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_events(db)
        db.commit()
        print("Seed complete: Addis Jazz Night and Startup Founders Meetup added.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()

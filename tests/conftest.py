import json
import os

# Settings are read at import time; tests never touch a real database or Redis
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from booking_backend.models.generated import Base, Locations, Members, Providers, Services
from booking_backend.services.slots.repository import SqlScheduleRepository

MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
# Sunday evening before MONDAY: the whole test week is bookable
NOW = datetime(2026, 10, 18, 20, 0)

MON_MORNING = {"mon": [["09:00", "12:00"]]}
TUE_NINE_TO_TEN = {"tue": [["09:00", "10:00"]]}


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'booking.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def repo(session_factory) -> SqlScheduleRepository:
    return SqlScheduleRepository(session_factory)


@pytest.fixture
def seeded(session_factory) -> dict:
    """One provider, one location, two members, a 30 and a 60 minute service."""
    db = session_factory()
    try:
        provider = Providers(business_name="Studio", slug="studio", timezone="Europe/Paris")
        db.add(provider)
        db.flush()

        location = Locations(provider_id=provider.id, name="Main", city="Paris")
        closed_location = Locations(provider_id=provider.id, name="Old", city="Lyon", is_active=0)
        db.add_all([location, closed_location])
        db.flush()

        schedule = {**MON_MORNING, **TUE_NINE_TO_TEN}
        alice = Members(
            provider_id=provider.id,
            location_id=location.id,
            name="Alice",
            work_schedule=json.dumps(schedule),
            sort_order=0,
        )
        bob = Members(
            provider_id=provider.id,
            location_id=location.id,
            name="Bob",
            work_schedule=json.dumps(schedule),
            sort_order=1,
        )
        db.add_all([alice, bob])

        short = Services(provider_id=provider.id, name="Haircut", duration_min=30)
        long = Services(provider_id=provider.id, name="Colour", duration_min=60)
        db.add_all([short, long])
        db.commit()

        return {
            "provider_id": provider.id,
            "location_id": location.id,
            "closed_location_id": closed_location.id,
            "alice_id": alice.id,
            "bob_id": bob.id,
            "short_service_id": short.id,
            "long_service_id": long.id,
        }
    finally:
        db.close()

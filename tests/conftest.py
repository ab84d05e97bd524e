from datetime import datetime, timezone
from typing import Any, Callable

import pytest
from mongomock_motor import AsyncMongoMockClient

from db.mongo import create_indexes
from models.events import Event
from models.invites import EventInvite
from services.event_db import EventDBService
from services.event_service import EventService
from services.user_db import UserService


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Build an in-memory Event; keyword arguments override the defaults.

    Defaults to a one hour, non-recurring event on 2024-01-01 10:00 UTC
    owned by "owner-1".
    """
    def _make(**overrides: Any) -> Event:
        fields = {
            "id": "event-1",
            "title": "Standup",
            "startDate": utc(2024, 1, 1, 10, 0),
            "endDate": utc(2024, 1, 1, 11, 0),
            "userId": "owner-1",
        }
        fields.update(overrides)
        return Event(**fields)

    return _make


@pytest.fixture
def make_invite() -> Callable[..., EventInvite]:
    def _make(user_id: str, **overrides: Any) -> EventInvite:
        return EventInvite(**{"eventId": "event-1", "userId": user_id, **overrides})

    return _make


@pytest.fixture
async def database():
    """Fresh in-memory Motor database with the production indexes"""
    client = AsyncMongoMockClient()
    database = client["shared-calendar-test"]
    await create_indexes(database)
    return database


@pytest.fixture
def event_db(database) -> EventDBService:
    return EventDBService(database)


@pytest.fixture
def user_db(database) -> UserService:
    return UserService(database)


@pytest.fixture
def event_service(event_db: EventDBService, user_db: UserService) -> EventService:
    return EventService(event_db, user_db)


@pytest.fixture
def make_user(user_db: UserService):
    async def _make(email: str, name: str = None) -> dict:
        return await user_db.create_or_update_google_user(
            email=email,
            google_id=f"google-{email}",
            name=name or email.split("@")[0],
        )

    return _make

"""
Service-level tests for services.event_service.EventService backed by an
in-memory Motor database.
"""
from datetime import datetime, timedelta, timezone

import pytest

from models.events import CreateEventRequest, EventFilter, EventOccurrence, UpdateEventRequest
from models.invites import InviteStatus, InviteUsersRequest
from services.errors import BadRequestError, ForbiddenError, NotFoundError

WEEKLY_RULE = "DTSTART:20240101T100000Z\nRRULE:FREQ=WEEKLY;UNTIL=20240122T100000Z"


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def event_request(**overrides) -> CreateEventRequest:
    fields = {
        "title": "Planning",
        "startDate": utc(2024, 1, 1, 10, 0),
        "endDate": utc(2024, 1, 1, 11, 0),
    }
    fields.update(overrides)
    return CreateEventRequest(**fields)


@pytest.fixture
async def users(make_user):
    return {
        "owner": await make_user("owner@x.com", "Owner"),
        "guest": await make_user("guest@x.com", "Guest"),
        "a": await make_user("a@x.com"),
        "stranger": await make_user("stranger@x.com"),
    }


async def test_create_event_applies_defaults(event_service, users) -> None:
    owner = users["owner"]

    event = await event_service.create_event(owner["id"], event_request())

    assert event.id
    assert event.color == "#3788d8"
    assert event.reminders == []
    assert event.isRecurring is False
    assert event.userId == owner["id"]
    assert event.user.email == "owner@x.com"
    assert event.invites == []
    assert event.startDate == utc(2024, 1, 1, 10, 0)


async def test_create_event_rejects_end_before_start(event_service, users) -> None:
    with pytest.raises(BadRequestError):
        await event_service.create_event(
            users["owner"]["id"],
            event_request(endDate=utc(2024, 1, 1, 10, 0)),
        )


@pytest.mark.parametrize("rule", [None, "", "garbage", "DTSTART:20240101T100000Z\nRRULE:FREQ=WEEKLY;BYDAY=MO"])
async def test_create_recurring_event_requires_valid_rule(event_service, users, rule) -> None:
    with pytest.raises(BadRequestError):
        await event_service.create_event(
            users["owner"]["id"],
            event_request(isRecurring=True, recurrenceRule=rule),
        )


async def test_list_returns_owned_and_invited_events_only(event_service, users) -> None:
    owner, guest, stranger = users["owner"], users["guest"], users["stranger"]
    shared = await event_service.create_event(owner["id"], event_request(title="Shared"))
    await event_service.create_event(owner["id"], event_request(title="Private"))
    own = await event_service.create_event(
        guest["id"],
        event_request(title="Guest's own", startDate=utc(2023, 12, 31, 9), endDate=utc(2023, 12, 31, 10)),
    )
    await event_service.invite_users(shared.id, owner["id"], InviteUsersRequest(userIds=[guest["id"]]))

    events = await event_service.list_events(guest["id"])

    assert [e.id for e in events] == [own.id, shared.id]
    assert await event_service.list_events(stranger["id"]) == []


async def test_list_with_window_expands_recurring_events(event_service, users) -> None:
    owner = users["owner"]
    weekly = await event_service.create_event(
        owner["id"],
        event_request(title="Weekly", isRecurring=True, recurrenceRule=WEEKLY_RULE),
    )
    single = await event_service.create_event(
        owner["id"],
        event_request(title="Single", startDate=utc(2024, 1, 10, 14), endDate=utc(2024, 1, 10, 15)),
    )
    await event_service.create_event(
        owner["id"],
        event_request(title="Outside", startDate=utc(2024, 3, 1, 9), endDate=utc(2024, 3, 1, 10)),
    )

    events = await event_service.list_events(
        owner["id"],
        EventFilter(startDate=utc(2024, 1, 1), endDate=utc(2024, 1, 31)),
    )

    assert [e.title for e in events] == ["Weekly", "Weekly", "Single", "Weekly", "Weekly"]
    occurrences = [e for e in events if isinstance(e, EventOccurrence)]
    assert [o.startDate for o in occurrences] == [
        utc(2024, 1, 1, 10), utc(2024, 1, 8, 10), utc(2024, 1, 15, 10), utc(2024, 1, 22, 10)
    ]
    assert all(o.originalEventId == weekly.id for o in occurrences)
    assert all(o.endDate - o.startDate == timedelta(hours=1) for o in occurrences)
    assert events[2].id == single.id


async def test_recurring_template_before_window_still_expands(event_service, users) -> None:
    owner = users["owner"]
    await event_service.create_event(
        owner["id"],
        event_request(isRecurring=True, recurrenceRule="DTSTART:20240101T100000Z\nRRULE:FREQ=DAILY"),
    )

    events = await event_service.list_events(
        owner["id"],
        EventFilter(startDate=utc(2024, 6, 1), endDate=utc(2024, 6, 3, 23, 59)),
    )

    assert [e.startDate for e in events] == [utc(2024, 6, 1, 10), utc(2024, 6, 2, 10), utc(2024, 6, 3, 10)]


async def test_stored_garbage_rule_is_listed_once(event_service, event_db, users) -> None:
    owner = users["owner"]
    # Bypass create-time validation the way legacy data would
    await event_db.create_event({
        "title": "Broken",
        "startDate": utc(2024, 1, 5, 9),
        "endDate": utc(2024, 1, 5, 10),
        "color": "#3788d8",
        "isRecurring": True,
        "recurrenceRule": "garbage",
        "reminders": [],
        "userId": owner["id"],
    })

    events = await event_service.list_events(
        owner["id"],
        EventFilter(startDate=utc(2024, 1, 1), endDate=utc(2024, 1, 31)),
    )

    assert len(events) == 1
    assert events[0].title == "Broken"
    assert not isinstance(events[0], EventOccurrence)


async def test_list_filters_by_owner(event_service, users) -> None:
    owner, guest = users["owner"], users["guest"]
    shared = await event_service.create_event(owner["id"], event_request(title="Shared"))
    await event_service.create_event(guest["id"], event_request(title="Mine"))
    await event_service.invite_users(shared.id, owner["id"], InviteUsersRequest(userIds=[guest["id"]]))

    events = await event_service.list_events(guest["id"], EventFilter(userId=owner["id"]))

    assert [e.title for e in events] == ["Shared"]


async def test_get_event_checks_access(event_service, users) -> None:
    owner, guest, stranger = users["owner"], users["guest"], users["stranger"]
    event = await event_service.create_event(owner["id"], event_request())
    await event_service.invite_users(event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"]))

    fetched = await event_service.get_event(event.id, guest["id"])
    assert fetched.invites[0].user.email == "guest@x.com"

    with pytest.raises(ForbiddenError):
        await event_service.get_event(event.id, stranger["id"])


@pytest.mark.parametrize("event_id", ["65a000000000000000000000", "not-an-object-id"])
async def test_get_missing_event_is_not_found(event_service, users, event_id) -> None:
    with pytest.raises(NotFoundError):
        await event_service.get_event(event_id, users["owner"]["id"])


async def test_declined_editor_can_update(event_service, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request(description="Agenda"))
    await event_service.invite_users(
        event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"], canEdit=True)
    )
    await event_service.respond_to_invite(event.id, guest["id"], InviteStatus.DECLINED)

    updated = await event_service.update_event(
        event.id,
        guest["id"],
        UpdateEventRequest(title="Renamed", description=None),
    )

    assert updated.title == "Renamed"
    assert updated.description is None
    assert updated.startDate == event.startDate


async def test_viewer_cannot_update(event_service, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request())
    await event_service.invite_users(event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"]))

    with pytest.raises(ForbiddenError):
        await event_service.update_event(event.id, guest["id"], UpdateEventRequest(title="Nope"))


async def test_update_checks_merged_dates_and_rule(event_service, users) -> None:
    owner = users["owner"]
    event = await event_service.create_event(owner["id"], event_request())

    with pytest.raises(BadRequestError):
        await event_service.update_event(event.id, owner["id"], UpdateEventRequest(startDate=utc(2024, 1, 1, 12)))

    with pytest.raises(BadRequestError):
        await event_service.update_event(event.id, owner["id"], UpdateEventRequest(isRecurring=True))

    updated = await event_service.update_event(
        event.id,
        owner["id"],
        UpdateEventRequest(isRecurring=True, recurrenceRule=WEEKLY_RULE),
    )
    assert updated.isRecurring is True
    assert updated.recurrenceRule == WEEKLY_RULE


async def test_delete_is_owner_only_and_cascades(event_service, event_db, database, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request())
    await event_service.invite_users(
        event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"], canEdit=True)
    )

    with pytest.raises(ForbiddenError):
        await event_service.delete_event(event.id, guest["id"])

    await event_service.delete_event(event.id, owner["id"])

    assert await event_db.get_event(event.id) is None
    assert await database["event_invites"].count_documents({"eventId": event.id}) == 0
    with pytest.raises(NotFoundError):
        await event_service.delete_event(event.id, owner["id"])


async def test_reinvite_resets_to_pending_with_latest_can_edit(event_service, database, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request())

    await event_service.invite_users(event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"], canEdit=False))
    await event_service.respond_to_invite(event.id, guest["id"], InviteStatus.ACCEPTED)
    invites = await event_service.invite_users(
        event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"], canEdit=True)
    )

    assert len(invites) == 1
    assert invites[0].status == InviteStatus.PENDING
    assert invites[0].canEdit is True
    rows = await database["event_invites"].find({"eventId": event.id}).to_list(length=None)
    assert len(rows) == 1
    assert rows[0]["status"] == "PENDING"
    assert rows[0]["canEdit"] is True


async def test_batch_invite_with_unknown_email_creates_nothing(event_service, database, users) -> None:
    owner = users["owner"]
    event = await event_service.create_event(owner["id"], event_request())

    with pytest.raises(BadRequestError) as exc:
        await event_service.invite_users(
            event.id, owner["id"], InviteUsersRequest(emails=["a@x.com", "doesnotexist@x.com"])
        )

    assert "doesnotexist@x.com" in exc.value.detail
    assert "a@x.com" not in exc.value.detail
    assert await database["event_invites"].count_documents({}) == 0


async def test_batch_invite_with_unknown_user_id_creates_nothing(event_service, database, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request())

    with pytest.raises(BadRequestError):
        await event_service.invite_users(
            event.id, owner["id"], InviteUsersRequest(userIds=[guest["id"], "65a000000000000000000000"])
        )

    assert await database["event_invites"].count_documents({}) == 0


async def test_invite_by_emails_returns_invites_with_users(event_service, users) -> None:
    owner = users["owner"]
    event = await event_service.create_event(owner["id"], event_request())

    invites = await event_service.invite_users(
        event.id, owner["id"], InviteUsersRequest(emails=["Guest@X.com", "a@x.com"], canEdit=True)
    )

    assert [i.user.email for i in invites] == ["guest@x.com", "a@x.com"]
    assert all(i.status == InviteStatus.PENDING and i.canEdit for i in invites)
    assert all(i.eventId == event.id for i in invites)


async def test_only_owner_can_invite(event_service, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request())
    await event_service.invite_users(
        event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"], canEdit=True)
    )

    with pytest.raises(ForbiddenError):
        await event_service.invite_users(event.id, guest["id"], InviteUsersRequest(emails=["a@x.com"]))


async def test_respond_updates_status(event_service, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request())
    await event_service.invite_users(event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"]))

    invite = await event_service.respond_to_invite(event.id, guest["id"], InviteStatus.ACCEPTED)

    assert invite.status == InviteStatus.ACCEPTED
    assert invite.user.email == "guest@x.com"
    assert (await event_service.list_event_invites(event.id, owner["id"]))[0].status == InviteStatus.ACCEPTED


async def test_respond_without_invite_is_not_found(event_service, users) -> None:
    owner, stranger = users["owner"], users["stranger"]
    event = await event_service.create_event(owner["id"], event_request())

    with pytest.raises(NotFoundError):
        await event_service.respond_to_invite(event.id, stranger["id"], InviteStatus.ACCEPTED)
    with pytest.raises(NotFoundError):
        await event_service.respond_to_invite("65a000000000000000000000", stranger["id"], InviteStatus.ACCEPTED)


async def test_respond_with_pending_is_bad_request(event_service, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request())
    await event_service.invite_users(event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"]))

    with pytest.raises(BadRequestError):
        await event_service.respond_to_invite(event.id, guest["id"], InviteStatus.PENDING)


async def test_pending_invites_include_event(event_service, users) -> None:
    owner, guest = users["owner"], users["guest"]
    first = await event_service.create_event(owner["id"], event_request(title="First"))
    second = await event_service.create_event(owner["id"], event_request(title="Second"))
    for event in (first, second):
        await event_service.invite_users(event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"]))
    await event_service.respond_to_invite(second.id, guest["id"], InviteStatus.DECLINED)

    pending = await event_service.list_pending_invites(guest["id"])

    assert len(pending) == 1
    assert pending[0].event.title == "First"
    assert pending[0].user.email == "guest@x.com"
    assert await event_service.list_pending_invites(owner["id"]) == []


async def test_remove_invite(event_service, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request())
    await event_service.invite_users(event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"]))

    with pytest.raises(ForbiddenError):
        await event_service.remove_invite(event.id, guest["id"], guest["id"])

    await event_service.remove_invite(event.id, owner["id"], guest["id"])

    assert await event_service.list_event_invites(event.id, owner["id"]) == []
    with pytest.raises(ForbiddenError):
        await event_service.get_event(event.id, guest["id"])
    with pytest.raises(NotFoundError):
        await event_service.remove_invite(event.id, owner["id"], guest["id"])


async def test_list_event_invites_requires_access(event_service, users) -> None:
    owner, stranger = users["owner"], users["stranger"]
    event = await event_service.create_event(owner["id"], event_request())

    with pytest.raises(ForbiddenError):
        await event_service.list_event_invites(event.id, stranger["id"])


class FailingDeleteCollection:
    """Wraps a collection whose delete_one always fails"""

    def __init__(self, collection):
        self._collection = collection

    def __getattr__(self, name):
        return getattr(self._collection, name)

    async def delete_one(self, *args, **kwargs):
        raise RuntimeError("connection reset")


async def test_failed_event_delete_keeps_invites(event_service, event_db, database, users) -> None:
    owner, guest = users["owner"], users["guest"]
    event = await event_service.create_event(owner["id"], event_request())
    await event_service.invite_users(event.id, owner["id"], InviteUsersRequest(emails=["guest@x.com"]))

    event_db.events = FailingDeleteCollection(event_db.events)
    with pytest.raises(RuntimeError):
        await event_service.delete_event(event.id, owner["id"])

    assert await database["events"].count_documents({}) == 1
    assert await database["event_invites"].count_documents({"eventId": event.id}) == 1
    shared = await event_service.get_event(event.id, guest["id"])
    assert shared.id == event.id


async def test_delete_of_missing_event_leaves_invites_alone(event_db, database) -> None:
    await database["event_invites"].insert_one({"eventId": "65a000000000000000000000", "userId": "u1"})

    assert await event_db.delete_event("65a000000000000000000000") is False
    assert await database["event_invites"].count_documents({}) == 1


async def test_listing_window_is_capped(event_service, users) -> None:
    owner = users["owner"]
    await event_service.create_event(
        owner["id"],
        event_request(isRecurring=True, recurrenceRule="DTSTART:20240101T100000Z\nRRULE:FREQ=DAILY"),
    )

    with pytest.raises(BadRequestError):
        await event_service.list_events(
            owner["id"],
            EventFilter(startDate=utc(1, 1, 1), endDate=utc(9999, 12, 31)),
        )

    whole_year = await event_service.list_events(
        owner["id"],
        EventFilter(startDate=utc(2024, 1, 1), endDate=utc(2024, 12, 31, 23, 59)),
    )
    assert len(whole_year) == 366

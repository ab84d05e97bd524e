from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union
from models.events import (
    DEFAULT_COLOR,
    CreateEventRequest,
    Event,
    EventFilter,
    EventOccurrence,
    PendingInvite,
    UpdateEventRequest,
)
from models.invites import EventInvite, InviteStatus, InviteUsersRequest
from models.timeutils import to_utc
from models.users import UserSummary
from services import invite_state
from services.errors import BadRequestError, NotFoundError
from services.event_db import EventDBService
from services.expansion import expand_events
from services.permissions import require_access, require_edit, require_owner
from services.recurrence import RuleParseError, parse_rule
from services.user_db import UserService
import logging

logger = logging.getLogger(__name__)

# Longest listing window that recurring events are expanded over
MAX_EXPANSION_WINDOW = timedelta(days=366)


def validate_schedule(start: datetime, end: datetime):
    if to_utc(start) >= to_utc(end):
        raise BadRequestError("startDate must be before endDate")


def validate_recurrence(is_recurring: bool, recurrence_rule: Optional[str]):
    """Recurring events need a rule that parses"""
    if not is_recurring:
        return
    if not recurrence_rule or not recurrence_rule.strip():
        raise BadRequestError("recurrenceRule is required when isRecurring is true")
    try:
        parse_rule(recurrence_rule)
    except RuleParseError as e:
        raise BadRequestError(f"Invalid recurrenceRule: {str(e)}") from e


def validate_window(start: Optional[datetime], end: Optional[datetime]):
    if start is None or end is None:
        return
    if to_utc(end) - to_utc(start) > MAX_EXPANSION_WINDOW:
        raise BadRequestError(f"Listing window cannot exceed {MAX_EXPANSION_WINDOW.days} days")


class EventService:
    """Event CRUD, invitations and windowed listing with recurrence expansion"""

    def __init__(self, event_db: Optional[EventDBService] = None, user_db: Optional[UserService] = None):
        self.event_db = event_db or EventDBService()
        self.user_db = user_db or UserService()

    async def create_event(self, user_id: str, data: CreateEventRequest) -> Event:
        validate_schedule(data.startDate, data.endDate)
        validate_recurrence(data.isRecurring, data.recurrenceRule)

        created = await self.event_db.create_event({
            "title": data.title,
            "description": data.description,
            "startDate": data.startDate,
            "endDate": data.endDate,
            "location": data.location,
            "color": data.color or DEFAULT_COLOR,
            "isRecurring": data.isRecurring,
            "recurrenceRule": data.recurrenceRule,
            "recurrenceEndDate": data.recurrenceEndDate,
            "reminders": data.reminders,
            "userId": user_id,
        })
        return (await self._hydrate([created]))[0]

    async def list_events(
        self,
        user_id: str,
        filters: Optional[EventFilter] = None
    ) -> List[Union[Event, EventOccurrence]]:
        """Events owned by or shared with the user.

        With both startDate and endDate set, recurring events are expanded
        into their occurrences inside that window.
        """
        filters = filters or EventFilter()
        validate_window(filters.startDate, filters.endDate)
        documents = await self.event_db.find_candidate_events(
            user_id,
            start_date=filters.startDate,
            end_date=filters.endDate,
            owner_id=filters.userId,
        )
        events = await self._hydrate(documents)
        return expand_events(events, filters.startDate, filters.endDate)

    async def get_event(self, event_id: str, user_id: str) -> Event:
        event = await self._load(event_id)
        require_access(event, user_id)
        return event

    async def update_event(self, event_id: str, user_id: str, update: UpdateEventRequest) -> Event:
        event = await self._load(event_id)
        require_edit(event, user_id)

        changes = update.changes()
        if not changes:
            return event

        if "startDate" in changes or "endDate" in changes:
            validate_schedule(changes.get("startDate", event.startDate), changes.get("endDate", event.endDate))
        if "isRecurring" in changes or "recurrenceRule" in changes:
            validate_recurrence(
                changes.get("isRecurring", event.isRecurring),
                changes.get("recurrenceRule", event.recurrenceRule),
            )

        updated = await self.event_db.update_event(event_id, changes)
        if updated is None:
            raise NotFoundError("Event not found")
        return (await self._hydrate([updated]))[0]

    async def delete_event(self, event_id: str, user_id: str):
        event = await self._load(event_id)
        require_owner(event, user_id, "delete this event")
        await self.event_db.delete_event(event_id)

    async def invite_users(self, event_id: str, user_id: str, request: InviteUsersRequest) -> List[EventInvite]:
        """Invite every target or none of them.

        Re-inviting someone resets their invite to PENDING with the new
        canEdit value.
        """
        event = await self._load(event_id)
        require_owner(event, user_id, "invite users")

        if request.emails:
            targets = await self._resolve_emails(request.emails)
        else:
            targets = await self._resolve_user_ids(request.userIds)

        fields = invite_state.on_invite(request.canEdit)
        invites = []
        for target in targets:
            document = await self.event_db.upsert_invite(event.id, target["id"], fields)
            invites.append(self._invite_model(document, {target["id"]: target}))

        logger.info(f"User {user_id} invited {len(invites)} users to event {event_id}")
        return invites

    async def remove_invite(self, event_id: str, user_id: str, invited_user_id: str):
        event = await self._load(event_id)
        require_owner(event, user_id, "remove invites")
        if not await self.event_db.delete_invite(event.id, invited_user_id):
            raise NotFoundError("Invite not found")

    async def respond_to_invite(self, event_id: str, user_id: str, status: InviteStatus) -> EventInvite:
        if await self.event_db.get_event(event_id) is None:
            raise NotFoundError("Event not found")

        document = await self.event_db.get_invite(event_id, user_id)
        if document is None:
            raise NotFoundError("Invite not found")

        target = invite_state.respond(EventInvite(**document), user_id, status)
        updated = await self.event_db.update_invite_status(event_id, user_id, target)
        if updated is None:
            raise NotFoundError("Invite not found")

        user = await self.user_db.get_user_by_id(user_id)
        return self._invite_model(updated, {user_id: user} if user else {})

    async def list_pending_invites(self, user_id: str) -> List[PendingInvite]:
        invites = await self.event_db.get_pending_invites(user_id)
        if not invites:
            return []

        events = await self._hydrate(await self.event_db.get_events([i["eventId"] for i in invites]))
        events_by_id = {event.id: event for event in events}
        user = await self.user_db.get_user_by_id(user_id)

        return [
            PendingInvite(
                **invite,
                user=UserSummary(**user) if user else None,
                event=events_by_id[invite["eventId"]],
            )
            for invite in invites
            if invite["eventId"] in events_by_id
        ]

    async def list_event_invites(self, event_id: str, user_id: str) -> List[EventInvite]:
        event = await self._load(event_id)
        require_access(event, user_id)
        return event.invites

    async def _load(self, event_id: str) -> Event:
        document = await self.event_db.get_event(event_id)
        if document is None:
            raise NotFoundError("Event not found")
        return (await self._hydrate([document]))[0]

    async def _resolve_emails(self, emails: List[str]) -> List[Dict[str, Any]]:
        users = await self.user_db.get_users_by_emails(emails)
        by_email = {user["email"]: user for user in users}
        missing = [email for email in emails if email not in by_email]
        if missing:
            raise BadRequestError(f"No account found for: {', '.join(missing)}")
        return [by_email[email] for email in emails]

    async def _resolve_user_ids(self, user_ids: List[str]) -> List[Dict[str, Any]]:
        users = await self.user_db.get_users_by_ids(user_ids)
        by_id = {user["id"]: user for user in users}
        missing = [user_id for user_id in user_ids if user_id not in by_id]
        if missing:
            raise BadRequestError(f"No account found for user ids: {', '.join(missing)}")
        return [by_id[user_id] for user_id in user_ids]

    def _invite_model(self, document: Dict[str, Any], users: Dict[str, Dict[str, Any]]) -> EventInvite:
        user = users.get(document["userId"])
        return EventInvite(**{**document, "user": UserSummary(**user) if user else None})

    async def _hydrate(self, documents: List[Dict[str, Any]]) -> List[Event]:
        """Build Event models with the owner summary and invites attached"""
        if not documents:
            return []

        invites = await self.event_db.get_invites_for_events([d["id"] for d in documents])
        user_ids = {d["userId"] for d in documents} | {i["userId"] for i in invites}
        users = {user["id"]: user for user in await self.user_db.get_users_by_ids(list(user_ids))}

        invites_by_event = defaultdict(list)
        for invite in invites:
            invites_by_event[invite["eventId"]].append(self._invite_model(invite, users))

        events = []
        for document in documents:
            owner = users.get(document["userId"])
            events.append(Event(**{
                **document,
                "user": UserSummary(**owner) if owner else None,
                "invites": invites_by_event[document["id"]],
            }))
        return events

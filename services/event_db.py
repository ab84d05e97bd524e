from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
from bson import ObjectId
from db.mongo import get_db
from models.invites import InviteStatus
from models.timeutils import to_utc
import logging

logger = logging.getLogger(__name__)

DATE_FIELDS = ("startDate", "endDate", "recurrenceEndDate")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in MongoDB"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return to_utc(value).replace(tzinfo=None)


def _object_id(value: str) -> Optional[ObjectId]:
    return ObjectId(value) if ObjectId.is_valid(value) else None


def _serialize(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is not None:
        document["id"] = str(document.pop("_id"))
    return document


class EventDBService:
    """Persistence for events and their invites"""

    def __init__(self, database=None):
        self.db = database if database is not None else get_db()
        # None until a database is configured
        self.events = self.db["events"] if self.db is not None else None
        self.invites = self.db["event_invites"] if self.db is not None else None

    async def create_event(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a new event"""
        try:
            now = utcnow()
            document = dict(event_data)
            for field in DATE_FIELDS:
                if field in document:
                    document[field] = to_db_datetime(document[field])
            document["createdAt"] = now
            document["updatedAt"] = now
            result = await self.events.insert_one(document)
            document["_id"] = result.inserted_id
            logger.info(f"Created event {result.inserted_id} for user {document['userId']}")
            return _serialize(document)
        except Exception as e:
            logger.error(f"Error creating event: {str(e)}")
            raise

    async def get_event(self, event_id: str) -> Optional[Dict[str, Any]]:
        """Get an event by ID"""
        object_id = _object_id(event_id)
        if object_id is None:
            return None
        try:
            event = await self.events.find_one({"_id": object_id})
            return _serialize(event)
        except Exception as e:
            logger.error(f"Error getting event {event_id}: {str(e)}")
            raise

    async def get_events(self, event_ids: List[str]) -> List[Dict[str, Any]]:
        """Get several events by ID, ordered by start date"""
        object_ids = [oid for oid in map(_object_id, event_ids) if oid is not None]
        if not object_ids:
            return []
        try:
            cursor = self.events.find({"_id": {"$in": object_ids}}).sort("startDate", 1)
            events = await cursor.to_list(length=None)
            return [_serialize(event) for event in events]
        except Exception as e:
            logger.error(f"Error getting events: {str(e)}")
            raise

    async def find_candidate_events(
        self,
        user_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        owner_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Events the user owns or is invited to.

        Date bounds filter non-recurring events by overlap; recurring events
        are always returned since their occurrences are computed later.
        """
        try:
            invites = await self.invites.find(
                {"userId": user_id},
                {"eventId": 1}
            ).to_list(length=None)
            invited_ids = [oid for oid in (_object_id(i["eventId"]) for i in invites) if oid is not None]

            clauses: List[Dict[str, Any]] = [
                {"$or": [{"userId": user_id}, {"_id": {"$in": invited_ids}}]}
            ]
            if owner_id:
                clauses.append({"userId": owner_id})

            overlap: Dict[str, Any] = {}
            if start_date is not None:
                overlap["endDate"] = {"$gte": to_db_datetime(start_date)}
            if end_date is not None:
                overlap["startDate"] = {"$lte": to_db_datetime(end_date)}
            if overlap:
                clauses.append({"$or": [{"isRecurring": True}, overlap]})

            cursor = self.events.find({"$and": clauses}).sort("startDate", 1)
            events = await cursor.to_list(length=None)
            return [_serialize(event) for event in events]
        except Exception as e:
            logger.error(f"Error finding events for user {user_id}: {str(e)}")
            raise

    async def update_event(self, event_id: str, update_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update an event"""
        object_id = _object_id(event_id)
        if object_id is None:
            return None
        try:
            changes = dict(update_data)
            for field in DATE_FIELDS:
                if field in changes:
                    changes[field] = to_db_datetime(changes[field])
            changes["updatedAt"] = utcnow()
            result = await self.events.update_one(
                {"_id": object_id},
                {"$set": changes}
            )
            if result.matched_count == 0:
                return None
            logger.info(f"Updated event {event_id}: {sorted(update_data)}")
            return _serialize(await self.events.find_one({"_id": object_id}))
        except Exception as e:
            logger.error(f"Error updating event {event_id}: {str(e)}")
            raise

    async def delete_event(self, event_id: str) -> bool:
        """Delete an event and every invite attached to it"""
        object_id = _object_id(event_id)
        if object_id is None:
            return False
        try:
            result = await self.events.delete_one({"_id": object_id})
            if result.deleted_count == 0:
                return False
            # Invites only once the event is gone
            removed = await self.invites.delete_many({"eventId": event_id})
            logger.info(f"Deleted event {event_id} and {removed.deleted_count} invites")
            return True
        except Exception as e:
            logger.error(f"Error deleting event {event_id}: {str(e)}")
            raise

    async def get_invites_for_events(self, event_ids: List[str]) -> List[Dict[str, Any]]:
        """Get all invites for the given events"""
        if not event_ids:
            return []
        try:
            cursor = self.invites.find({"eventId": {"$in": list(event_ids)}}).sort("createdAt", 1)
            invites = await cursor.to_list(length=None)
            return [_serialize(invite) for invite in invites]
        except Exception as e:
            logger.error(f"Error getting invites: {str(e)}")
            raise

    async def get_invite(self, event_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            invite = await self.invites.find_one({"eventId": event_id, "userId": user_id})
            return _serialize(invite)
        except Exception as e:
            logger.error(f"Error getting invite for event {event_id}, user {user_id}: {str(e)}")
            raise

    async def upsert_invite(self, event_id: str, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Insert the invite or overwrite the existing one for (event, user)"""
        try:
            now = utcnow()
            result = await self.invites.update_one(
                {"eventId": event_id, "userId": user_id},
                {
                    "$set": {**fields, "updatedAt": now},
                    "$setOnInsert": {"createdAt": now}
                },
                upsert=True
            )

            if result.upserted_id:
                logger.info(f"Invited user {user_id} to event {event_id}")
            else:
                logger.info(f"Refreshed invite of user {user_id} to event {event_id}")

            return await self.get_invite(event_id, user_id)
        except Exception as e:
            logger.error(f"Error upserting invite: {str(e)}")
            raise

    async def update_invite_status(self, event_id: str, user_id: str, status: InviteStatus) -> Optional[Dict[str, Any]]:
        try:
            result = await self.invites.update_one(
                {"eventId": event_id, "userId": user_id},
                {"$set": {"status": InviteStatus(status).value, "updatedAt": utcnow()}}
            )
            if result.matched_count == 0:
                return None
            logger.info(f"User {user_id} responded {InviteStatus(status).value} to event {event_id}")
            return await self.get_invite(event_id, user_id)
        except Exception as e:
            logger.error(f"Error updating invite status: {str(e)}")
            raise

    async def delete_invite(self, event_id: str, user_id: str) -> bool:
        try:
            result = await self.invites.delete_one({"eventId": event_id, "userId": user_id})
            if result.deleted_count > 0:
                logger.info(f"Removed invite of user {user_id} from event {event_id}")
            return result.deleted_count > 0
        except Exception as e:
            logger.error(f"Error deleting invite: {str(e)}")
            raise

    async def get_pending_invites(self, user_id: str) -> List[Dict[str, Any]]:
        """Get the user's invites still awaiting a response"""
        try:
            cursor = self.invites.find(
                {"userId": user_id, "status": InviteStatus.PENDING.value}
            ).sort("createdAt", 1)
            invites = await cursor.to_list(length=None)
            return [_serialize(invite) for invite in invites]
        except Exception as e:
            logger.error(f"Error getting pending invites for user {user_id}: {str(e)}")
            raise

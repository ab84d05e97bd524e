from fastapi import APIRouter, Depends, HTTPException, Query
from datetime import datetime
from typing import Optional
from models.events import CreateEventRequest, EventFilter, UpdateEventRequest
from models.invites import InviteUsersRequest, RespondInviteRequest
from routes.deps import get_current_user
from services.event_service import EventService
import logging

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_events_routes(event_service: Optional[EventService] = None):
    """
    Initialize event and invite routes.
    Returns the router with all event endpoints configured.
    """
    router = APIRouter(prefix="/events", tags=["events"])
    event_service = event_service or EventService()

    @router.post("", status_code=201)
    async def create_event(payload: CreateEventRequest, user: dict = Depends(get_current_user)):
        """Create an event owned by the current user"""
        try:
            logger.info(f"Creating event '{payload.title}' for user {user['email']}")
            return await event_service.create_event(user["id"], payload)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating event: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to create event")

    @router.get("")
    async def list_events(
        startDate: Optional[datetime] = Query(None),
        endDate: Optional[datetime] = Query(None),
        userId: Optional[str] = Query(None),
        user: dict = Depends(get_current_user)
    ):
        """List events owned by or shared with the current user, expanding recurrences inside the window"""
        try:
            filters = EventFilter(startDate=startDate, endDate=endDate, userId=userId)
            events = await event_service.list_events(user["id"], filters)
            logger.info(f"Returning {len(events)} events for user {user['email']}")
            return events
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error listing events: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to fetch events")

    # Registered before /{event_id} so "invites" is not read as an event id
    @router.get("/invites/pending")
    async def list_pending_invites(user: dict = Depends(get_current_user)):
        """Invites awaiting the current user's response"""
        try:
            return await event_service.list_pending_invites(user["id"])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error fetching pending invites: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to fetch pending invites")

    @router.get("/{event_id}")
    async def get_event(event_id: str, user: dict = Depends(get_current_user)):
        try:
            return await event_service.get_event(event_id, user["id"])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error fetching event {event_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to fetch event")

    @router.patch("/{event_id}")
    async def update_event(event_id: str, payload: UpdateEventRequest, user: dict = Depends(get_current_user)):
        try:
            logger.info(f"Updating event {event_id} for user {user['email']}")
            return await event_service.update_event(event_id, user["id"], payload)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error updating event {event_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to update event")

    @router.delete("/{event_id}")
    async def delete_event(event_id: str, user: dict = Depends(get_current_user)):
        try:
            logger.info(f"Deleting event {event_id} for user {user['email']}")
            await event_service.delete_event(event_id, user["id"])
            return {"status": "ok", "message": "Event deleted successfully"}
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error deleting event {event_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to delete event")

    @router.post("/{event_id}/invite")
    async def invite_users(event_id: str, payload: InviteUsersRequest, user: dict = Depends(get_current_user)):
        """Invite users by id or email; fails without changes if any target has no account"""
        try:
            return await event_service.invite_users(event_id, user["id"], payload)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error inviting users to event {event_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to invite users")

    @router.delete("/{event_id}/invite/{invited_user_id}")
    async def remove_invite(event_id: str, invited_user_id: str, user: dict = Depends(get_current_user)):
        try:
            await event_service.remove_invite(event_id, user["id"], invited_user_id)
            return {"status": "ok", "message": "Invite removed successfully"}
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error removing invite from event {event_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to remove invite")

    @router.patch("/{event_id}/invite/respond")
    async def respond_to_invite(event_id: str, payload: RespondInviteRequest, user: dict = Depends(get_current_user)):
        try:
            logger.info(f"User {user['email']} responding {payload.status.value} to event {event_id}")
            return await event_service.respond_to_invite(event_id, user["id"], payload.status)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error responding to invite for event {event_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to respond to invite")

    @router.get("/{event_id}/invites")
    async def list_event_invites(event_id: str, user: dict = Depends(get_current_user)):
        try:
            return await event_service.list_event_invites(event_id, user["id"])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error fetching invites for event {event_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to fetch invites")

    return router

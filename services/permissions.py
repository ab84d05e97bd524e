"""Ownership and permission checks for events.

The predicates are pure functions of an event (with its invites loaded) and
the acting user's id. Invite status never matters: a pending or declined
invitee still has access, and still edits if the invite grants canEdit.
"""
from models.events import Event
from services.errors import ForbiddenError


def is_owner(event: Event, user_id: str) -> bool:
    return event.userId == user_id


def has_access(event: Event, user_id: str) -> bool:
    return is_owner(event, user_id) or any(invite.userId == user_id for invite in event.invites)


def can_edit(event: Event, user_id: str) -> bool:
    return is_owner(event, user_id) or any(
        invite.userId == user_id and invite.canEdit for invite in event.invites
    )


def require_owner(event: Event, user_id: str, action: str = "perform this action"):
    if not is_owner(event, user_id):
        raise ForbiddenError(f"Only the event owner can {action}")


def require_access(event: Event, user_id: str):
    if not has_access(event, user_id):
        raise ForbiddenError("You do not have access to this event")


def require_edit(event: Event, user_id: str):
    if not can_edit(event, user_id):
        raise ForbiddenError("You do not have permission to edit this event")

"""Invite lifecycle: PENDING on creation or re-invite, then ACCEPTED or DECLINED
by the invitee. Re-inviting overwrites canEdit and resets the status, whatever
it was before."""
from typing import Any, Dict
from models.invites import EventInvite, InviteStatus
from services.errors import BadRequestError, ForbiddenError

RESPONSE_STATUSES = (InviteStatus.ACCEPTED, InviteStatus.DECLINED)


def on_invite(can_edit: bool) -> Dict[str, Any]:
    """Fields written when an invite is created or refreshed"""
    return {"status": InviteStatus.PENDING.value, "canEdit": can_edit}


def respond(invite: EventInvite, acting_user_id: str, status: InviteStatus) -> InviteStatus:
    """Validate an invitee's response and return the status to store"""
    if invite.userId != acting_user_id:
        raise ForbiddenError("Only the invited user can respond to this invite")
    if status not in RESPONSE_STATUSES:
        raise BadRequestError("Status must be ACCEPTED or DECLINED")
    return status

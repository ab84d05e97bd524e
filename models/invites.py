from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum
from models.users import UserSummary
from models.timeutils import to_utc


class InviteStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class EventInvite(BaseModel):
    id: Optional[str] = None
    eventId: str = Field(..., description="ID of the event the invite belongs to")
    userId: str = Field(..., description="ID of the invited user")
    status: InviteStatus = InviteStatus.PENDING
    canEdit: bool = Field(False, description="Whether the invitee may edit the event")
    user: Optional[UserSummary] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @field_validator("createdAt", "updatedAt")
    @classmethod
    def normalize_utc(cls, v):
        return to_utc(v) if v is not None else v


class InviteUsersRequest(BaseModel):
    """Invite targets by user id or by email, never both"""
    userIds: Optional[List[str]] = None
    emails: Optional[List[str]] = None
    canEdit: bool = False

    @field_validator("emails")
    @classmethod
    def normalize_emails(cls, v):
        if v is None:
            return v
        emails = []
        for email in v:
            email = email.strip().lower()
            if "@" not in email or email.startswith("@") or email.endswith("@"):
                raise ValueError(f"Invalid email address: {email!r}")
            if email not in emails:
                emails.append(email)
        return emails

    @field_validator("userIds")
    @classmethod
    def dedupe_user_ids(cls, v):
        if v is None:
            return v
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def check_targets(self):
        if bool(self.userIds) == bool(self.emails):
            raise ValueError("Provide a non-empty list of either userIds or emails")
        return self


class RespondInviteRequest(BaseModel):
    status: InviteStatus

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime
from models.users import UserSummary
from models.invites import EventInvite
from models.timeutils import to_utc

DEFAULT_COLOR = "#3788d8"
HEX_COLOR_PATTERN = r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$"


class Event(BaseModel):
    id: str = Field(..., description="Event ID")
    title: str = Field(..., description="Event title")
    description: Optional[str] = None
    startDate: datetime = Field(..., description="Event start (UTC)")
    endDate: datetime = Field(..., description="Event end (UTC)")
    location: Optional[str] = None
    color: str = DEFAULT_COLOR
    isRecurring: bool = False
    recurrenceRule: Optional[str] = Field(None, description="DTSTART/RRULE text")
    recurrenceEndDate: Optional[datetime] = None
    reminders: List[int] = Field(default_factory=list, description="Reminder offsets in minutes")
    userId: str = Field(..., description="ID of the owning user")
    user: Optional[UserSummary] = None
    invites: List[EventInvite] = Field(default_factory=list)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @field_validator("startDate", "endDate", "recurrenceEndDate", "createdAt", "updatedAt")
    @classmethod
    def normalize_utc(cls, v):
        return to_utc(v) if v is not None else v


class EventOccurrence(Event):
    """One dated instance of a recurring event, produced at read time only.

    Updates must target originalEventId, not this record.
    """
    isRecurringInstance: bool = True
    originalEventId: str


class PendingInvite(EventInvite):
    event: Optional[Event] = None


class CreateEventRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    startDate: datetime
    endDate: datetime
    location: Optional[str] = None
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    isRecurring: bool = False
    recurrenceRule: Optional[str] = None
    recurrenceEndDate: Optional[datetime] = None
    reminders: List[int] = Field(default_factory=list)


# Fields a PATCH may not set to null
_NON_NULLABLE = ("title", "startDate", "endDate", "color", "isRecurring", "reminders")


class UpdateEventRequest(BaseModel):
    """Partial update: only fields present in the body are changed.

    description, location, recurrenceRule and recurrenceEndDate may be sent
    as null to clear them.
    """
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    location: Optional[str] = None
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    isRecurring: Optional[bool] = None
    recurrenceRule: Optional[str] = None
    recurrenceEndDate: Optional[datetime] = None
    reminders: Optional[List[int]] = None

    @model_validator(mode="after")
    def check_nulls(self):
        for field in _NON_NULLABLE:
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class EventFilter(BaseModel):
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    userId: Optional[str] = None

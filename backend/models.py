from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from constants import (
    COURT_TYPE_IDS, STATUS_ACTIVE,
    MEETUP_TITLE_MIN_LENGTH, MEETUP_TITLE_MAX_LENGTH, DESCRIPTION_MAX_LENGTH,
    ADDRESS_MAX_LENGTH, CANCELLATION_REASON_MAX_LENGTH, PLAYER_NAME_MAX_LENGTH,
    USER_ID_MAX_LENGTH, MAX_PLAYERS_MIN, MAX_PLAYERS_MAX, MAX_PLAYERS_DEFAULT
)

MeetupStatus = Literal["active", "cancelled"]


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Location(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class MeetupCreate(BaseModel):
    title: str = Field(..., max_length=MEETUP_TITLE_MAX_LENGTH)
    description: str = Field(default="", max_length=DESCRIPTION_MAX_LENGTH)
    max_players: int = Field(default=MAX_PLAYERS_DEFAULT, ge=MAX_PLAYERS_MIN, le=MAX_PLAYERS_MAX)
    court_type: str
    location: Location
    address: str = Field(..., min_length=1, max_length=ADDRESS_MAX_LENGTH)
    starts_at: datetime
    ends_at: datetime
    host_name: Optional[str] = Field(default=None, max_length=PLAYER_NAME_MAX_LENGTH)

    @field_validator('title')
    @classmethod
    def title_long_enough(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        if len(v) < MEETUP_TITLE_MIN_LENGTH:
            raise ValueError(f"Title must be at least {MEETUP_TITLE_MIN_LENGTH} characters")
        return v

    @field_validator('description')
    @classmethod
    def description_cleaned(cls, v):
        return v.strip()

    @field_validator('address')
    @classmethod
    def address_not_empty(cls, v):
        if not v.strip():
            raise ValueError("Address is required")
        return v.strip()

    @field_validator('court_type')
    @classmethod
    def validate_court_type(cls, v):
        if v.lower() not in COURT_TYPE_IDS:
            raise ValueError(f"Invalid court type '{v}'. Must be one of: {', '.join(COURT_TYPE_IDS)}")
        return v.lower()

    @field_validator('starts_at', 'ends_at')
    @classmethod
    def normalize_timezone(cls, v):
        return as_utc(v)

    @model_validator(mode='after')
    def validate_schedule(self):
        if self.ends_at <= self.starts_at:
            raise ValueError("End time must be after start time")
        if self.starts_at.date() < datetime.now(timezone.utc).date():
            raise ValueError("Date cannot be in the past")
        return self


class Meetup(BaseModel):
    """A meetup record together with its roster.

    Construction validates the roster invariants, so building the next state
    through ``Meetup.model_validate`` refuses any state where the player count,
    the capacity, the waitlist or the host's slot disagree.
    """

    id: str
    host_id: str
    host_name: Optional[str] = None
    title: str
    description: str = ""
    court_type: str
    location: Location
    address: str
    starts_at: datetime
    ends_at: datetime
    max_players: int = Field(..., ge=1)
    current_players: int
    approved_players: list[str]
    waitlist: list[str] = Field(default_factory=list)
    status: MeetupStatus = STATUS_ACTIVE
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    version: int = 0

    @model_validator(mode='after')
    def check_roster(self):
        if len(set(self.approved_players)) != len(self.approved_players):
            raise ValueError("approved_players contains duplicates")
        if len(set(self.waitlist)) != len(self.waitlist):
            raise ValueError("waitlist contains duplicates")
        if self.current_players != len(self.approved_players):
            raise ValueError("current_players must equal the number of approved players")
        if self.current_players > self.max_players:
            raise ValueError("current_players exceeds max_players")
        if set(self.approved_players) & set(self.waitlist):
            raise ValueError("a player cannot be both approved and waitlisted")
        if self.host_id not in self.approved_players:
            raise ValueError("host must be an approved player")
        return self

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def spots_left(self) -> int:
        return self.max_players - self.current_players


class PlayerApproval(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=USER_ID_MAX_LENGTH)

    @field_validator('user_id')
    @classmethod
    def user_id_cleaned(cls, v):
        if not v.strip():
            raise ValueError("user_id is required")
        return v.strip()


class MeetupCancel(BaseModel):
    reason: str = Field(default="", max_length=CANCELLATION_REASON_MAX_LENGTH)

    @field_validator('reason')
    @classmethod
    def reason_cleaned(cls, v):
        return v.strip()


class UserMeetupsResponse(BaseModel):
    hosted: list[Meetup]
    joined: list[Meetup]

"""Pydantic models for the CourtBooka availability core."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# At most this many participants besides the person booking.
MAX_PARTICIPANTS = 3

SLOT_MINUTES = 30


def _assume_utc(value: Optional[datetime]) -> Optional[datetime]:
    # The backend sends naive timestamps that are UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_slot_aligned(moment: datetime) -> bool:
    return moment.minute % SLOT_MINUTES == 0 and not moment.second and not moment.microsecond


def _check_aligned(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return value
    if not is_slot_aligned(value):
        raise ValueError("start_time must fall on a 30-minute boundary")
    return value


def _check_duration(value: Optional[int]) -> Optional[int]:
    if value is not None and (value <= 0 or value % SLOT_MINUTES != 0):
        raise ValueError("duration_minutes must be a positive multiple of 30")
    return value


# ── Clubs & courts ────────────────────────────────────────────────────────


class Club(BaseModel):
    """Club the user is a member of."""
    id: int = Field(..., description="Unique club identifier")
    name: str = Field(..., description="Club name")
    city: Optional[str] = Field(None, description="City")
    country: Optional[str] = Field(None, description="Country")


class Court(BaseModel):
    """Bookable court of a club."""
    id: int = Field(..., description="Unique court identifier")
    name: str = Field(..., description="Court name")
    club_id: Optional[int] = Field(None, description="Owning club")
    surface_type: Optional[str] = Field(None, description="Court surface type")
    has_floodlights: bool = Field(default=False, description="Whether the court is lit")


# ── Bookings ──────────────────────────────────────────────────────────────


class BookingType(str, Enum):
    REGULAR = "regular"
    EVENT = "event"


class Booking(BaseModel):
    """Confirmed reservation as returned by the backend (read-only copy)."""
    id: int = Field(..., description="Unique booking identifier")
    court_id: int = Field(..., description="Booked court")
    start_time: datetime = Field(..., description="Booking start (UTC)")
    end_time: datetime = Field(..., description="Booking end (UTC)")
    type: BookingType = Field(default=BookingType.REGULAR, description="Regular match or event")
    booked_by: Optional[str] = Field(None, description="Display name of the booker")
    participants: List[str] = Field(default_factory=list, description="Participant display names")
    participant_ids: List[int] = Field(default_factory=list, description="Participant user ids")
    description: Optional[str] = Field(None, description="Event description")
    user_id: Optional[int] = Field(None, description="Owner user id")
    club_id: Optional[int] = Field(None, description="Club of the booked court")

    @field_validator("start_time", "end_time")
    @classmethod
    def _times_are_utc(cls, value: datetime) -> datetime:
        return _assume_utc(value)

    @field_validator("participants", "participant_ids", mode="before")
    @classmethod
    def _null_means_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


class BookingCreate(BaseModel):
    """Request to create a booking."""
    court_id: int = Field(..., description="Court to book")
    start_time: datetime = Field(..., description="Slot-aligned start time")
    duration_minutes: int = Field(default=60, description="Length in minutes (multiple of 30)")
    participant_ids: List[int] = Field(
        default_factory=list, max_length=MAX_PARTICIPANTS, description="Participant user ids"
    )
    description: Optional[str] = Field(None, description="Event description")

    @field_validator("start_time")
    @classmethod
    def _start_is_aligned(cls, value: datetime) -> datetime:
        return _check_aligned(_assume_utc(value))

    @field_validator("duration_minutes")
    @classmethod
    def _duration_is_slots(cls, value: int) -> int:
        return _check_duration(value)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class BookingUpdate(BaseModel):
    """Partial update of a booking; omitted fields keep their current value."""
    court_id: Optional[int] = Field(None, description="Move to another court")
    start_time: Optional[datetime] = Field(None, description="New slot-aligned start time")
    duration_minutes: Optional[int] = Field(None, description="New length in minutes")
    participant_ids: Optional[List[int]] = Field(
        None, max_length=MAX_PARTICIPANTS, description="Replacement participant ids"
    )
    description: Optional[str] = Field(None, description="Event description")

    @field_validator("start_time")
    @classmethod
    def _start_is_aligned(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _check_aligned(_assume_utc(value))

    @field_validator("duration_minutes")
    @classmethod
    def _duration_is_slots(cls, value: Optional[int]) -> Optional[int]:
        return _check_duration(value)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


# ── Slots & availability ──────────────────────────────────────────────────


class Slot(BaseModel):
    """Fixed 30-minute bookable window on one court/date."""
    model_config = ConfigDict(frozen=True)

    start: datetime = Field(..., description="Slot start (timezone-aware)")
    end: datetime = Field(..., description="Slot end (timezone-aware)")


class SlotStatus(str, Enum):
    PAST = "past"
    AVAILABLE = "available"
    BOOKED = "booked"


class ClassifiedSlot(BaseModel):
    """A slot together with its resolved status and display data."""
    slot: Slot = Field(..., description="The classified slot")
    status: SlotStatus = Field(..., description="past, available or booked")
    booking: Optional[Booking] = Field(None, description="Booking occupying the slot")
    roster: List[str] = Field(default_factory=list, description="Players of a regular booking")
    label: str = Field(default="", description="Short text shown on the slot row")


class Availability(BaseModel):
    """Snapshot handed to the UI for one court and date."""
    slots: List[ClassifiedSlot] = Field(default_factory=list, description="Classified grid")
    is_loading: bool = Field(default=False, description="A fetch for the key is in flight")
    load_failed: bool = Field(default=False, description="The last fetch for the key failed")

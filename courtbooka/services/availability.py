"""
Slot availability resolution.

Maps a slot grid onto one court's booking list.  A slot is *past* once it
has started, *booked* when any booking overlaps it (half-open intervals, so
back-to-back bookings never collide), and *available* otherwise.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from courtbooka.models import Booking, BookingType, ClassifiedSlot, Slot, SlotStatus

BOOKED_LABEL = "Booked"
EVENT_LABEL = "Event"
PAST_LABEL = "Past"
AVAILABLE_LABEL = "Available"


def overlaps(start: datetime, end: datetime, booking: Booking) -> bool:
    """Half-open overlap test between ``[start, end)`` and a booking."""
    return start < booking.end_time and end > booking.start_time


def find_occupying_booking(
    start: datetime,
    end: datetime,
    bookings: Iterable[Booking],
    exclude_booking_id: int | None = None,
) -> Booking | None:
    for booking in bookings:
        if booking.id == exclude_booking_id:
            continue
        if overlaps(start, end, booking):
            return booking
    return None


# ── Display helpers ───────────────────────────────────────────────────────


def display_roster(booking: Booking) -> list[str]:
    """Booker followed by participants, deduplicated in first-seen order."""
    names = [booking.booked_by] if booking.booked_by else []
    names.extend(booking.participants)
    return list(dict.fromkeys(name for name in names if name))


def roster_label(roster: Sequence[str], fallback: str = BOOKED_LABEL) -> str:
    if not roster:
        return fallback
    if len(roster) == 1:
        return roster[0]
    if len(roster) == 2:
        return " & ".join(roster)
    first_name = roster[0].split(" ")[0]
    return f"{first_name} +{len(roster) - 1}"


def event_label(booking: Booking, fallback: str = EVENT_LABEL) -> str:
    return booking.description or booking.booked_by or fallback


# ── Classification ────────────────────────────────────────────────────────


def classify(
    slot: Slot,
    bookings: Sequence[Booking],
    now: datetime,
    exclude_booking_id: int | None = None,
) -> ClassifiedSlot:
    """
    Resolve the status of one slot.

    *exclude_booking_id* lets a booking that is being edited not block its
    own original slot.
    """
    if slot.start <= now:
        return ClassifiedSlot(slot=slot, status=SlotStatus.PAST, label=PAST_LABEL)

    booking = find_occupying_booking(slot.start, slot.end, bookings, exclude_booking_id)
    if booking is None:
        return ClassifiedSlot(slot=slot, status=SlotStatus.AVAILABLE, label=AVAILABLE_LABEL)

    if booking.type == BookingType.EVENT:
        return ClassifiedSlot(
            slot=slot,
            status=SlotStatus.BOOKED,
            booking=booking,
            label=event_label(booking),
        )

    roster = display_roster(booking)
    return ClassifiedSlot(
        slot=slot,
        status=SlotStatus.BOOKED,
        booking=booking,
        roster=roster,
        label=roster_label(roster),
    )


def classify_day(
    slots: Sequence[Slot],
    bookings: Sequence[Booking],
    now: datetime,
    exclude_booking_id: int | None = None,
) -> list[ClassifiedSlot]:
    return [classify(slot, bookings, now, exclude_booking_id) for slot in slots]


def is_range_free(
    start: datetime,
    duration_minutes: int,
    bookings: Iterable[Booking],
    exclude_booking_id: int | None = None,
) -> bool:
    """True when no booking overlaps ``[start, start + duration)``."""
    end = start + timedelta(minutes=duration_minutes)
    return find_occupying_booking(start, end, bookings, exclude_booking_id) is None


def is_editable(
    booking: Booking | None,
    *,
    user_id: int | None,
    is_super_admin: bool = False,
    admin_club_ids: Iterable[int] = (),
    club_id: int | None = None,
) -> bool:
    """The owner, a super admin, or an admin of the booking's club may edit."""
    if booking is None:
        return False
    if user_id is not None and booking.user_id == user_id:
        return True
    if is_super_admin:
        return True
    target_club = booking.club_id if booking.club_id is not None else club_id
    return target_club is not None and target_club in set(admin_club_ids)

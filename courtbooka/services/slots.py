"""
Slot grid generation.

Every court offers the same fixed grid each day: half-hour slots starting
at 08:00 with the last one running 21:00 to 21:30.  The grid is computed in
the display timezone from the calendar day, so it never depends on the
booking data.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo

from courtbooka.config import DISPLAY_TIMEZONE
from courtbooka.errors import InvalidDate
from courtbooka.models import SLOT_MINUTES, Slot

FIRST_HOUR = 8
LAST_HOUR = 21

SLOT_DURATION = timedelta(minutes=SLOT_MINUTES)

# 08:00 .. 21:00 inclusive, half-hourly
SLOTS_PER_DAY = (LAST_HOUR - FIRST_HOUR) * 2 + 1

_DATE_KEY_FORMAT = "%Y-%m-%d"


def _calendar_day(day: object, tz: tzinfo) -> date:
    if isinstance(day, datetime):
        if day.tzinfo is not None:
            day = day.astimezone(tz)
        return day.date()
    if isinstance(day, date):
        return day
    raise InvalidDate(f"Expected a date, got {day!r}")


def generate_slots(day: date, tz: tzinfo = DISPLAY_TIMEZONE) -> list[Slot]:
    """Return the 27 bookable slots of *day*, in chronological order."""
    calendar_day = _calendar_day(day, tz)
    midnight = datetime.combine(calendar_day, time(0, 0), tzinfo=tz)

    slots: list[Slot] = []
    for hour in range(FIRST_HOUR, LAST_HOUR + 1):
        for minute in (0, 30):
            if hour == LAST_HOUR and minute == 30:
                continue
            start = midnight + timedelta(hours=hour, minutes=minute)
            slots.append(Slot(start=start, end=start + SLOT_DURATION))
    return slots


def date_key(day: date, tz: tzinfo = DISPLAY_TIMEZONE) -> str:
    """Cache partition key for a calendar day (``yyyy-MM-dd``)."""
    return _calendar_day(day, tz).strftime(_DATE_KEY_FORMAT)


def parse_date_key(value: str) -> date:
    try:
        return datetime.strptime(value, _DATE_KEY_FORMAT).date()
    except (TypeError, ValueError) as exc:
        raise InvalidDate(f"Not a yyyy-MM-dd date: {value!r}") from exc


def initial_scroll_index(
    slots: list[Slot],
    now: datetime,
    tz: tzinfo = DISPLAY_TIMEZONE,
) -> int:
    """
    Row the slot lists should open at.

    For today this is the first slot that has not started yet (the last row
    when the whole day is over); any other day opens at the top.
    """
    if not slots:
        return 0
    if date_key(slots[0].start, tz) != date_key(now, tz):
        return 0
    for index, slot in enumerate(slots):
        if slot.start > now:
            return index
    return len(slots) - 1

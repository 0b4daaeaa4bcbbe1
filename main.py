#!/usr/bin/env python3
"""
Entry point for the CourtBooka availability CLI.

Prints the classified slot grid of every court of a club for one day:

    python main.py --club 3 --date 2024-06-10
"""

import argparse
import asyncio
import logging

from courtbooka.config import LOG_LEVEL
from courtbooka.models import SlotStatus
from courtbooka.services.booking_api.client import BookingApiClient
from courtbooka.services.session import BookingSession
from courtbooka.services.slots import parse_date_key

_MARKS = {SlotStatus.PAST: "·", SlotStatus.AVAILABLE: "+", SlotStatus.BOOKED: "x"}


async def run(club_id: int, day_key: str | None) -> None:
    session = BookingSession(BookingApiClient(), owns_backend=True)
    try:
        await session.select_club(club_id)
        if day_key:
            await session.select_date(parse_date_key(day_key))
        task = session.preloader.preload_all(
            session.courts,
            session.selected_date,
            active_court_id=session.active_court.id if session.active_court else None,
        )
        if task is not None:
            await task

        for court in session.courts:
            view = session.use_availability(court.id)
            print(f"{court.name}{' (failed to load)' if view.load_failed else ''}")
            for item in view.slots:
                start = item.slot.start.strftime("%H:%M")
                print(f"  {_MARKS[item.status]} {start}  {item.label}")
    finally:
        await session.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Show court availability for a club.")
    parser.add_argument("--club", type=int, required=True, help="Club id")
    parser.add_argument("--date", help="Day as yyyy-MM-dd (default: today)")
    args = parser.parse_args()

    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run(args.club, args.date))

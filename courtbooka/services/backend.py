"""
Abstract interface for the booking backend.

The availability core only ever talks to the backend through this protocol,
so the HTTP client can be swapped for an in-memory fake in tests or for a
different transport in the app.
"""

from __future__ import annotations

from typing import Protocol

from courtbooka.models import Booking, BookingCreate, BookingUpdate, Court


class BookingBackend(Protocol):
    """Protocol that every booking backend must satisfy."""

    # ── Courts ────────────────────────────────────────────────────────
    async def list_club_courts(self, club_id: int) -> list[Court]:
        """Return the courts of a club."""
        ...

    # ── Bookings ──────────────────────────────────────────────────────
    async def fetch_bookings_for_court(self, court_id: int, date_key: str) -> list[Booking]:
        """Return every booking on *court_id* for the ``yyyy-MM-dd`` day."""
        ...

    async def create_booking(self, data: BookingCreate) -> Booking:
        ...

    async def update_booking(self, booking_id: int, data: BookingUpdate) -> Booking:
        ...

    async def cancel_booking(self, booking_id: int) -> None:
        ...

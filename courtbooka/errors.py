"""
Booking-related exceptions.
"""

from __future__ import annotations


class BookingError(Exception):
    """Base exception for the availability and booking core."""


class FetchFailure(BookingError):
    """Loading the booking list of one (court, date) key failed."""

    def __init__(self, court_id: int, date_key: str, reason: str = "") -> None:
        self.court_id = court_id
        self.date_key = date_key
        self.reason = reason
        message = f"Failed to load bookings for court {court_id} on {date_key}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MutationFailure(BookingError):
    """Create, update or cancel was rejected. ``message`` is user-facing."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidBooking(MutationFailure):
    """The booking request failed local validation before reaching the backend."""


class InvalidDate(BookingError, ValueError):
    """A value that is not a calendar date was passed where one is required."""


class ScrollTargetNotReady(BookingError, IndexError):
    """A slot list could not scroll because the target row is not laid out yet."""

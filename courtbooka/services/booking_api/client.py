"""
Low-level HTTP client for the CourtBooka booking API.

Handles request construction and JSON ↔ Pydantic parsing.  Implements the
BookingBackend protocol; retries and backoff are left to the transport.
"""

from __future__ import annotations

import logging

import httpx

from courtbooka.config import API_BASE_URL, API_TIMEOUT, API_TOKEN
from courtbooka.models import Booking, BookingCreate, BookingUpdate, Court
from courtbooka.services.booking_api.config import (
    BOOKING_PATH,
    CLUB_COURTS_PATH,
    COURT_BOOKINGS_PATH,
    CREATE_BOOKING_PATH,
    DEFAULT_HEADERS,
)

logger = logging.getLogger(__name__)


class BookingApiClient:
    """Async HTTP client for the booking backend."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        token: str = API_TOKEN,
        timeout: float = API_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = dict(DEFAULT_HEADERS)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ── Courts ────────────────────────────────────────────────────────

    async def list_club_courts(self, club_id: int) -> list[Court]:
        resp = await self._client.get(CLUB_COURTS_PATH.format(club_id=club_id))
        resp.raise_for_status()
        courts = [Court.model_validate(item) for item in resp.json()]
        logger.debug("Club %s has %d courts", club_id, len(courts))
        return courts

    # ── Bookings ──────────────────────────────────────────────────────

    async def fetch_bookings_for_court(self, court_id: int, date_key: str) -> list[Booking]:
        """Fetch every booking on a court for one ``yyyy-MM-dd`` day."""
        logger.debug("Fetching bookings: court=%s date=%s", court_id, date_key)
        resp = await self._client.get(
            COURT_BOOKINGS_PATH.format(court_id=court_id),
            params={"date": date_key},
        )
        resp.raise_for_status()
        return [Booking.model_validate(item) for item in resp.json()]

    async def create_booking(self, data: BookingCreate) -> Booking:
        resp = await self._client.post(CREATE_BOOKING_PATH, json=data.to_payload())
        resp.raise_for_status()
        booking = Booking.model_validate(resp.json())
        logger.info("Booking %s created on court %s", booking.id, booking.court_id)
        return booking

    async def update_booking(self, booking_id: int, data: BookingUpdate) -> Booking:
        resp = await self._client.put(
            BOOKING_PATH.format(booking_id=booking_id),
            json=data.to_payload(),
        )
        resp.raise_for_status()
        booking = Booking.model_validate(resp.json())
        logger.info("Booking %s updated", booking_id)
        return booking

    async def cancel_booking(self, booking_id: int) -> None:
        resp = await self._client.delete(BOOKING_PATH.format(booking_id=booking_id))
        resp.raise_for_status()
        logger.info("Booking %s cancelled", booking_id)

"""
Create / update / cancel orchestration.

Every mutation follows the same sequence:

1.  Validate what can be checked locally (no past slots, participants).
2.  Call the backend.  On failure the cache is untouched and the error is
    re-raised as MutationFailure carrying a user-facing message.
3.  Invalidate every (court, date) key the mutation touched.  For an update
    that is both the old and the new key, so moving a booking to another
    court or across midnight refreshes both lists.
4.  Refetch those keys right away so the UI shows the new state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

import httpx

from courtbooka.errors import FetchFailure, InvalidBooking, MutationFailure
from courtbooka.models import Booking, BookingCreate, BookingUpdate
from courtbooka.services.backend import BookingBackend
from courtbooka.services.cache import BookingCache, CacheKey

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def failure_message(exc: BaseException, default: str) -> str:
    """Best user-facing text for a backend error."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for field in ("error", "detail"):
                if isinstance(body.get(field), str):
                    return body[field]
    if isinstance(exc, MutationFailure):
        return exc.message
    return default


class BookingMutationCoordinator:
    """Runs booking mutations and keeps the cache consistent with them."""

    def __init__(
        self,
        backend: BookingBackend,
        cache: BookingCache,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._backend = backend
        self._cache = cache
        self._clock = clock

    # ── Operations ─────────────────────────────────────────────────────

    async def create(self, data: BookingCreate) -> Booking:
        if data.start_time <= self._clock():
            raise InvalidBooking("Cannot book a slot in the past")
        if not data.participant_ids:
            raise InvalidBooking("Select at least one participant")

        try:
            booking = await self._backend.create_booking(data)
        except Exception as exc:
            logger.warning("Create booking on court %s failed: %s", data.court_id, exc)
            raise MutationFailure(failure_message(exc, "Booking failed")) from exc

        logger.info("Booked court %s at %s", data.court_id, data.start_time.isoformat())
        await self._settle(
            [
                self._cache.key(data.court_id, data.start_time),
                self._cache.key(booking.court_id, booking.start_time),
            ]
        )
        return booking

    async def update(
        self,
        booking_id: int,
        data: BookingUpdate,
        *,
        original: Booking | None = None,
    ) -> Booking:
        """
        Update a booking, possibly moving it to another start, length or court.

        *original* is the booking as displayed; when omitted it is looked up
        in the cache so its old (court, date) key can be invalidated.
        """
        if data.start_time is not None and data.start_time <= self._clock():
            raise InvalidBooking("Cannot move a booking into the past")

        keys: list[CacheKey] = []
        if original is None:
            located = self._cache.locate(booking_id)
            if located is not None:
                keys.append(located[0])
                original = located[1]
        else:
            keys.append(self._cache.key(original.court_id, original.start_time))

        try:
            updated = await self._backend.update_booking(booking_id, data)
        except Exception as exc:
            logger.warning("Update of booking %s failed: %s", booking_id, exc)
            raise MutationFailure(failure_message(exc, "Booking update failed")) from exc

        if original is not None:
            new_court = data.court_id if data.court_id is not None else original.court_id
            new_start = data.start_time if data.start_time is not None else original.start_time
            keys.append(self._cache.key(new_court, new_start))
        keys.append(self._cache.key(updated.court_id, updated.start_time))

        logger.info("Booking %s updated", booking_id)
        await self._settle(keys)
        return updated

    async def cancel(self, booking_id: int, *, booking: Booking | None = None) -> None:
        keys: list[CacheKey] = []
        if booking is not None:
            keys.append(self._cache.key(booking.court_id, booking.start_time))
        else:
            located = self._cache.locate(booking_id)
            if located is not None:
                keys.append(located[0])
            else:
                logger.warning("Booking %s is not cached; nothing to invalidate", booking_id)

        try:
            await self._backend.cancel_booking(booking_id)
        except Exception as exc:
            logger.warning("Cancel of booking %s failed: %s", booking_id, exc)
            raise MutationFailure(failure_message(exc, "Cancellation failed")) from exc

        logger.info("Booking %s cancelled", booking_id)
        await self._settle(keys)

    # ── Cache upkeep ───────────────────────────────────────────────────

    async def _settle(self, keys: Iterable[CacheKey]) -> None:
        """Invalidate every key first, then refetch each one."""
        unique = list(dict.fromkeys(keys))
        for court_id, day_key in unique:
            self._cache.invalidate(court_id, day_key)
        for court_id, day_key in unique:
            try:
                await self._cache.get(court_id, day_key)
            except FetchFailure as exc:
                # The mutation itself succeeded; the entry stays failed for the UI.
                logger.warning("Refetch after mutation failed: %s", exc)

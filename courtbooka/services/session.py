"""
Booking screen session.

Owns the cache, preloader, scroll synchronizer and mutation coordinator for
one booking screen and exposes the small surface the UI layer binds to.
Create one per screen and ``close()`` it when the screen goes away.

Usage::

    session = BookingSession(BookingApiClient())
    await session.select_club(3)
    await session.select_date(date(2024, 6, 10))
    view = session.use_availability(session.courts[0].id)
    ...
    await session.close()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, tzinfo

from courtbooka.config import DISPLAY_TIMEZONE
from courtbooka.errors import FetchFailure, InvalidBooking
from courtbooka.models import Availability, Booking, BookingCreate, BookingUpdate, Court
from courtbooka.services.availability import classify_day, is_editable, is_range_free
from courtbooka.services.backend import BookingBackend
from courtbooka.services.cache import BookingCache, EntryState
from courtbooka.services.mutations import BookingMutationCoordinator, Clock, utc_now
from courtbooka.services.preload import PreloadScheduler
from courtbooka.services.scroll_sync import ScrollSynchronizer
from courtbooka.services.slots import date_key, generate_slots, initial_scroll_index

logger = logging.getLogger(__name__)


class BookingSession:
    """State behind one booking screen: selected club, date and court."""

    def __init__(
        self,
        backend: BookingBackend,
        *,
        clock: Clock = utc_now,
        tz: tzinfo = DISPLAY_TIMEZONE,
        cache: BookingCache | None = None,
        preloader: PreloadScheduler | None = None,
        scroll: ScrollSynchronizer | None = None,
        owns_backend: bool = False,
        user_id: int | None = None,
        is_super_admin: bool = False,
        admin_club_ids: Iterable[int] = (),
    ) -> None:
        self._backend = backend
        self._clock = clock
        self._tz = tz
        self._owns_backend = owns_backend
        self.user_id = user_id
        self.is_super_admin = is_super_admin
        self.admin_club_ids = frozenset(admin_club_ids)

        self.cache = cache or BookingCache(backend.fetch_bookings_for_court, tz=tz)
        self.preloader = preloader or PreloadScheduler(self.cache)
        self.scroll = scroll or ScrollSynchronizer()
        self.mutations = BookingMutationCoordinator(backend, self.cache, clock=clock)

        self.club_id: int | None = None
        self.courts: list[Court] = []
        self.selected_court_index = 0
        self.selected_date: date = self._today()

    # ── Selection ──────────────────────────────────────────────────────

    @property
    def active_court(self) -> Court | None:
        if not self.courts:
            return None
        return self.courts[self.selected_court_index]

    async def select_club(self, club_id: int) -> list[Court]:
        """Switch club: reload courts, drop everything cached, load court 0."""
        courts = await self._backend.list_club_courts(club_id)
        logger.info("Club %s selected (%d courts)", club_id, len(courts))

        self.club_id = club_id
        self.courts = list(courts)
        self.selected_court_index = 0
        await self._restart_day()
        return self.courts

    async def select_date(self, day: date) -> None:
        if date_key(day, self._tz) == date_key(self.selected_date, self._tz):
            self.selected_date = day
            return
        logger.info("Date changed to %s", date_key(day, self._tz))
        self.selected_date = day
        await self._restart_day()

    async def select_court(self, index: int) -> None:
        if not 0 <= index < len(self.courts):
            raise IndexError(f"No court at index {index}")
        self.selected_court_index = index
        await self._load_active()

    async def refresh(self) -> None:
        """Pull-to-refresh: drop the cache, reload the active court, preload the rest."""
        self.cache.clear()
        self.preloader.supersede()
        await self._load_active()
        self._start_preload()

    async def _restart_day(self) -> None:
        self.cache.clear()
        self.preloader.supersede()
        slots = generate_slots(self.selected_date, self._tz)
        self.scroll.reset(initial_scroll_index(slots, self._clock(), self._tz))
        await self._load_active()
        self._start_preload()

    async def _load_active(self) -> None:
        court = self.active_court
        if court is None:
            return
        try:
            await self.cache.get(court.id, self.selected_date)
        except FetchFailure as exc:
            # Surfaced through use_availability(load_failed=True).
            logger.warning("Active court failed to load: %s", exc)

    def _start_preload(self) -> None:
        court = self.active_court
        self.preloader.preload_all(
            self.courts,
            self.selected_date,
            active_court_id=court.id if court else None,
        )

    # ── UI surface ─────────────────────────────────────────────────────

    def use_availability(
        self,
        court_id: int,
        day: date | None = None,
        *,
        exclude_booking_id: int | None = None,
    ) -> Availability:
        """
        Classified grid for one court and date, from whatever is cached now.

        An absent key starts a background fetch; a failed one is reported
        and left alone until the next explicit load.
        """
        day = day or self.selected_date
        entry = self.cache.peek(court_id, day)
        if entry.state is EntryState.ABSENT:
            self.cache.schedule(court_id, day)
            entry = self.cache.peek(court_id, day)

        slots = generate_slots(day, self._tz)
        classified = classify_day(slots, entry.bookings, self._clock(), exclude_booking_id)
        return Availability(
            slots=classified,
            is_loading=entry.state is EntryState.LOADING,
            load_failed=entry.state is EntryState.FAILED,
        )

    @property
    def preload_progress(self) -> float:
        return self.preloader.progress

    @property
    def shared_scroll_index(self) -> int:
        return self.scroll.shared_index

    def on_user_scroll(self, court_index: int, index: int) -> bool:
        return self.scroll.on_user_scroll(court_index, index)

    async def find_alternative_court(
        self,
        start: datetime,
        duration_minutes: int,
    ) -> Court | None:
        """First other court that is free for ``[start, start + duration)``."""
        active = self.active_court
        for court in self.courts:
            if active is not None and court.id == active.id:
                continue
            try:
                bookings = await self.cache.get(court.id, start)
            except FetchFailure as exc:
                logger.warning("Skipping court %s in alternative search: %s", court.id, exc)
                continue
            if is_range_free(start, duration_minutes, bookings):
                return court
        return None

    # ── Mutations ──────────────────────────────────────────────────────

    async def create_booking(self, data: BookingCreate) -> Booking:
        return await self.mutations.create(data)

    async def update_booking(
        self,
        booking_id: int,
        data: BookingUpdate,
        *,
        original: Booking | None = None,
    ) -> Booking:
        original = self._editable(booking_id, original)
        return await self.mutations.update(booking_id, data, original=original)

    async def cancel_booking(self, booking_id: int, *, booking: Booking | None = None) -> None:
        booking = self._editable(booking_id, booking)
        await self.mutations.cancel(booking_id, booking=booking)

    def can_edit(self, booking: Booking | None) -> bool:
        """Whether the signed-in user may change or cancel *booking*."""
        return is_editable(
            booking,
            user_id=self.user_id,
            is_super_admin=self.is_super_admin,
            admin_club_ids=self.admin_club_ids,
            club_id=self.club_id,
        )

    def _editable(self, booking_id: int, booking: Booking | None) -> Booking | None:
        if booking is None:
            located = self.cache.locate(booking_id)
            booking = located[1] if located else None
        # Anonymous sessions and unknown bookings are left to the backend.
        if self.user_id is not None and booking is not None and not self.can_edit(booking):
            raise InvalidBooking("You can only change your own bookings")
        return booking

    # ── Lifecycle ──────────────────────────────────────────────────────

    async def close(self) -> None:
        await self.preloader.stop()
        self.scroll.close()
        self.cache.clear()
        if self._owns_backend:
            close = getattr(self._backend, "close", None)
            if close is not None:
                await close()
        logger.info("Booking session closed")

    def _today(self) -> date:
        return self._clock().astimezone(self._tz).date()

"""
Booking cache keyed by (court, date).

Holds one booking list per ``(court_id, "yyyy-MM-dd")`` key.  Each key runs
through a small state machine::

    absent ──get()──▶ loading ──ok──▶ ready
                         │
                         └──error──▶ failed ──get()──▶ loading

``invalidate`` / ``clear`` take any key back to *absent*.  No other code
writes to the cache.

The in-flight fetch for a key is an asyncio task registered in a map before
the first ``await``, so two ``get()`` calls for the same key always share
one network request.  Invalidation detaches the in-flight task: its result
is still returned to whoever awaited it, but it is never written back.

Usage::

    cache = BookingCache(backend.fetch_bookings_for_court)
    bookings = await cache.get(court.id, date(2024, 6, 10))
    cache.invalidate(court.id, date(2024, 6, 10))   # after a mutation
    cache.clear()                                   # club / date change
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from enum import Enum

from courtbooka.config import DISPLAY_TIMEZONE
from courtbooka.errors import FetchFailure
from courtbooka.models import Booking
from courtbooka.services.slots import date_key, parse_date_key

logger = logging.getLogger(__name__)

CacheKey = tuple[int, str]
Fetcher = Callable[[int, str], Awaitable[list[Booking]]]
Listener = Callable[[CacheKey, "EntryState"], None]


class EntryState(str, Enum):
    ABSENT = "absent"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class CacheEntry:
    state: EntryState
    bookings: tuple[Booking, ...] = ()
    error: FetchFailure | None = None
    fetched_at: datetime | None = None


_ABSENT = CacheEntry(EntryState.ABSENT)
_LOADING = CacheEntry(EntryState.LOADING)


class BookingCache:
    """
    In-memory store of booking lists per (court, date).

    Owned by one booking session; create a new one per screen instead of
    sharing it between sessions.
    """

    def __init__(self, fetch: Fetcher, *, tz: tzinfo = DISPLAY_TIMEZONE) -> None:
        self._fetch = fetch
        self._tz = tz
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._inflight: dict[CacheKey, asyncio.Task[list[Booking]]] = {}
        self._listeners: list[Listener] = []

    # ── Keys ───────────────────────────────────────────────────────────

    def day_key(self, day: date | str) -> str:
        if isinstance(day, str):
            day = parse_date_key(day)
        return date_key(day, self._tz)

    def key(self, court_id: int, day: date | str) -> CacheKey:
        return (court_id, self.day_key(day))

    # ── Read ───────────────────────────────────────────────────────────

    def peek(self, court_id: int, day: date | str) -> CacheEntry:
        """Current entry for a key, without triggering a fetch."""
        key = self.key(court_id, day)
        if key in self._inflight:
            return _LOADING
        return self._entries.get(key, _ABSENT)

    def state(self, court_id: int, day: date | str) -> EntryState:
        return self.peek(court_id, day).state

    def is_cached(self, court_id: int, day: date | str) -> bool:
        return self.state(court_id, day) is EntryState.READY

    def is_loading(self, court_id: int, day: date | str) -> bool:
        return self.key(court_id, day) in self._inflight

    def __len__(self) -> int:
        return len(self._entries)

    def locate(self, booking_id: int) -> tuple[CacheKey, Booking] | None:
        """Find a cached booking by id, with the key it is cached under."""
        for key, entry in self._entries.items():
            for booking in entry.bookings:
                if booking.id == booking_id:
                    return key, booking
        return None

    async def get(self, court_id: int, day: date | str) -> list[Booking]:
        """
        Return the bookings for a key, fetching them if needed.

        Joins the in-flight request when one exists.  Raises FetchFailure
        when the fetch fails; the key is then left *failed* until the next
        call retries it.
        """
        key = self.key(court_id, day)
        entry = self._entries.get(key)
        if entry is not None and entry.state is EntryState.READY:
            logger.debug("Cache hit for court %s on %s", *key)
            return list(entry.bookings)

        task = self._inflight.get(key) or self._claim(key)
        # Shield so a cancelled caller does not cancel the shared fetch.
        return list(await asyncio.shield(task))

    def schedule(self, court_id: int, day: date | str) -> asyncio.Task[list[Booking]] | None:
        """
        Start a background fetch for an *absent* key.

        Returns the in-flight task (new or existing), or None when the key is
        ready or failed.  Failed keys are only retried through ``get()``.
        """
        key = self.key(court_id, day)
        if key in self._inflight:
            return self._inflight[key]
        if key in self._entries:
            return None
        return self._claim(key)

    # ── Write ──────────────────────────────────────────────────────────

    def invalidate(self, court_id: int, day: date | str) -> None:
        """Drop one key so the next read refetches it."""
        key = self.key(court_id, day)
        detached = self._inflight.pop(key, None)
        removed = self._entries.pop(key, None)
        if detached is not None or removed is not None:
            logger.debug("Invalidated court %s on %s", *key)
            self._notify(key, EntryState.ABSENT)

    def clear(self) -> None:
        """Drop every key and detach every in-flight fetch."""
        keys = set(self._entries) | set(self._inflight)
        self._entries.clear()
        self._inflight.clear()
        if keys:
            logger.info("Booking cache cleared (%d keys)", len(keys))
        for key in keys:
            self._notify(key, EntryState.ABSENT)

    # ── Listeners ──────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener(key, state)* on every transition; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: CacheKey, state: EntryState) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, state)
            except Exception:
                logger.exception("Cache listener failed for %s", key)

    # ── Fetching ───────────────────────────────────────────────────────

    def _claim(self, key: CacheKey) -> asyncio.Task[list[Booking]]:
        task = asyncio.get_running_loop().create_task(
            self._load(key), name=f"bookings-{key[0]}-{key[1]}"
        )
        task.add_done_callback(_retrieve_exception)
        self._inflight[key] = task
        self._notify(key, EntryState.LOADING)
        return task

    def _owns(self, key: CacheKey) -> bool:
        return self._inflight.get(key) is asyncio.current_task()

    async def _load(self, key: CacheKey) -> list[Booking]:
        court_id, day_key = key
        try:
            bookings = await self._fetch(court_id, day_key)
        except asyncio.CancelledError:
            if self._owns(key):
                del self._inflight[key]
                self._notify(key, EntryState.ABSENT)
            raise
        except Exception as exc:
            failure = FetchFailure(court_id, day_key, str(exc))
            if self._owns(key):
                del self._inflight[key]
                self._entries[key] = CacheEntry(EntryState.FAILED, error=failure)
                self._notify(key, EntryState.FAILED)
            logger.warning("Fetching bookings for court %s on %s failed: %s", court_id, day_key, exc)
            raise failure from exc

        if self._owns(key):
            del self._inflight[key]
            self._entries[key] = CacheEntry(
                EntryState.READY,
                bookings=tuple(bookings),
                fetched_at=datetime.now(timezone.utc),
            )
            logger.info("Cached %d bookings for court %s on %s", len(bookings), court_id, day_key)
            self._notify(key, EntryState.READY)
        else:
            logger.debug("Discarding detached fetch for court %s on %s", court_id, day_key)
        return list(bookings)


def _retrieve_exception(task: asyncio.Task) -> None:
    # Failures are recorded on the entry and raised to awaiting callers;
    # a background fetch nobody awaits must not warn on garbage collection.
    if not task.cancelled():
        task.exception()

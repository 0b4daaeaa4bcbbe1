"""
Shared test fixtures.

Provides a booking cache and session wired to:
  • an in-memory mock backend (no external HTTP)
  • a fixed clock (2024-06-10 12:00 Europe/Berlin)
  • zero preload / scroll delays so background work finishes promptly
"""

from __future__ import annotations

import pytest

from courtbooka.services.cache import BookingCache
from courtbooka.services.preload import PreloadScheduler
from courtbooka.services.scroll_sync import ScrollSynchronizer
from courtbooka.services.session import BookingSession
from tests.mocks.models import fixed_clock
from tests.mocks.services import MockBookingBackend


@pytest.fixture()
def backend() -> MockBookingBackend:
    return MockBookingBackend()


@pytest.fixture()
def cache(backend: MockBookingBackend) -> BookingCache:
    return BookingCache(backend.fetch_bookings_for_court)


@pytest.fixture()
def session(backend: MockBookingBackend, cache: BookingCache) -> BookingSession:
    """
    Session with instant preloading.

    Timers are only armed inside a running loop, so building it here in a
    sync fixture is safe; the async tests drive it.
    """
    return BookingSession(
        backend,
        clock=fixed_clock,
        cache=cache,
        preloader=PreloadScheduler(cache, debounce_seconds=0, step_delay_seconds=0),
        scroll=ScrollSynchronizer(release_seconds=0.01, retry_seconds=0.01),
    )

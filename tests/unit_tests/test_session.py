"""Tests for the booking screen session."""

import asyncio

import pytest

from courtbooka.errors import InvalidBooking
from courtbooka.models import BookingCreate, BookingUpdate, SlotStatus
from courtbooka.services.cache import EntryState
from courtbooka.services.session import BookingSession
from tests.mocks.models import (
    MOCK_BOOKING_AFTERNOON,
    MOCK_CLUB,
    MOCK_COURT_2,
    MOCK_COURT_3,
    MOCK_DAY,
    MOCK_DAY_KEY,
    MOCK_NEXT_DAY,
    MOCK_NEXT_DAY_KEY,
    at,
    fixed_clock,
)
from tests.mocks.services import MockBookingBackend

# 12:30 is the first slot still ahead of the fixed clock.
_NEXT_SLOT_INDEX = 9


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


async def _preloaded(session: BookingSession) -> None:
    task = session.preloader._task
    if task is not None:
        await task


class TestSelection:
    @pytest.mark.asyncio
    async def test_select_club_loads_active_court_then_preloads(self, session, backend):
        courts = await session.select_club(MOCK_CLUB.id)

        assert [c.id for c in courts] == [1, 2, 3]
        assert session.active_court.id == 1
        assert session.selected_date == MOCK_DAY
        assert session.cache.is_cached(1, MOCK_DAY)
        assert backend.fetch_calls[0] == (1, MOCK_DAY_KEY)

        await _preloaded(session)
        assert sorted(backend.fetch_calls) == [(1, MOCK_DAY_KEY), (2, MOCK_DAY_KEY), (3, MOCK_DAY_KEY)]
        assert session.preload_progress == 100

    @pytest.mark.asyncio
    async def test_lists_open_at_next_slot_today(self, session):
        await session.select_club(MOCK_CLUB.id)
        assert session.shared_scroll_index == _NEXT_SLOT_INDEX

    @pytest.mark.asyncio
    async def test_other_days_open_at_top(self, session):
        await session.select_club(MOCK_CLUB.id)
        await session.select_date(MOCK_NEXT_DAY)
        assert session.shared_scroll_index == 0

    @pytest.mark.asyncio
    async def test_date_change_supersedes_running_preload(self, session, backend):
        gate = asyncio.Event()
        backend.gates[(2, MOCK_DAY_KEY)] = gate

        await session.select_club(MOCK_CLUB.id)
        await _wait_for(lambda: (2, MOCK_DAY_KEY) in backend.fetch_calls)
        first_run = session.preloader._task
        epoch = session.preloader.epoch

        await session.select_date(MOCK_NEXT_DAY)
        assert session.preloader.epoch > epoch

        gate.set()
        await first_run
        await _preloaded(session)

        assert (3, MOCK_DAY_KEY) not in backend.fetch_calls
        assert session.cache.state(2, MOCK_DAY) is EntryState.ABSENT
        assert all(session.cache.is_cached(c, MOCK_NEXT_DAY) for c in (1, 2, 3))
        assert session.preload_progress == 100

    @pytest.mark.asyncio
    async def test_same_date_is_a_no_op(self, session, backend):
        await session.select_club(MOCK_CLUB.id)
        await _preloaded(session)
        calls = len(backend.fetch_calls)
        epoch = session.preloader.epoch

        await session.select_date(MOCK_DAY)

        assert len(backend.fetch_calls) == calls
        assert session.preloader.epoch == epoch

    @pytest.mark.asyncio
    async def test_select_court(self, session, backend):
        await session.select_club(MOCK_CLUB.id)
        await _preloaded(session)
        calls = len(backend.fetch_calls)

        await session.select_court(2)

        assert session.active_court.id == MOCK_COURT_3.id
        assert len(backend.fetch_calls) == calls

    @pytest.mark.asyncio
    async def test_select_court_out_of_range(self, session):
        await session.select_club(MOCK_CLUB.id)
        with pytest.raises(IndexError):
            await session.select_court(5)

    @pytest.mark.asyncio
    async def test_refresh_refetches_everything(self, session, backend):
        await session.select_club(MOCK_CLUB.id)
        await _preloaded(session)

        await session.refresh()
        await _preloaded(session)

        assert len(backend.fetch_calls) == 6
        assert backend.fetch_calls[3] == (1, MOCK_DAY_KEY)

    @pytest.mark.asyncio
    async def test_active_court_failure_is_not_raised(self, session, backend):
        backend.failing_courts.add(1)
        await session.select_club(MOCK_CLUB.id)
        await _preloaded(session)

        assert session.cache.state(1, MOCK_DAY) is EntryState.FAILED
        assert session.cache.is_cached(2, MOCK_DAY)


class TestUseAvailability:
    @pytest.mark.asyncio
    async def test_absent_key_starts_fetch(self, session, backend):
        view = session.use_availability(1)

        assert view.is_loading
        assert len(view.slots) == 27
        assert all(item.status != SlotStatus.BOOKED for item in view.slots)

        await _wait_for(lambda: session.cache.is_cached(1, MOCK_DAY))
        view = session.use_availability(1)

        assert not view.is_loading
        assert view.slots[12].status == SlotStatus.BOOKED  # 14:00
        assert view.slots[12].label == "Alice & Bob"
        assert view.slots[0].status == SlotStatus.PAST
        assert backend.fetch_calls == [(1, MOCK_DAY_KEY)]

    @pytest.mark.asyncio
    async def test_failed_key_is_flagged_and_not_retried(self, session, backend):
        backend.failing_courts.add(1)
        session.use_availability(1)
        await _wait_for(lambda: session.cache.state(1, MOCK_DAY) is EntryState.FAILED)

        view = session.use_availability(1)

        assert view.load_failed
        assert not view.is_loading
        assert backend.fetch_calls == [(1, MOCK_DAY_KEY)]

    @pytest.mark.asyncio
    async def test_editing_hides_own_booking(self, session):
        await session.cache.get(1, MOCK_DAY)
        view = session.use_availability(1, exclude_booking_id=100)
        assert view.slots[12].status == SlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_explicit_day(self, session, backend):
        session.use_availability(1, MOCK_NEXT_DAY)
        await _wait_for(lambda: session.cache.is_cached(1, MOCK_NEXT_DAY))

        view = session.use_availability(1, MOCK_NEXT_DAY)

        assert view.slots[2].status == SlotStatus.BOOKED  # 09:00
        assert view.slots[0].status == SlotStatus.AVAILABLE
        assert backend.fetch_calls == [(1, MOCK_NEXT_DAY_KEY)]


class TestAlternativeCourt:
    @pytest.mark.asyncio
    async def test_first_free_court_is_suggested(self, session):
        await session.select_club(MOCK_CLUB.id)
        court = await session.find_alternative_court(at(14), 60)
        assert court.id == MOCK_COURT_2.id

    @pytest.mark.asyncio
    async def test_busy_courts_are_skipped(self, session):
        await session.select_club(MOCK_CLUB.id)
        court = await session.find_alternative_court(at(18, 30), 60)
        assert court.id == MOCK_COURT_3.id

    @pytest.mark.asyncio
    async def test_failed_courts_are_skipped(self, session, backend):
        backend.failing_courts.update({2, 3})
        await session.select_club(MOCK_CLUB.id)
        assert await session.find_alternative_court(at(16), 60) is None


class TestMutations:
    @pytest.mark.asyncio
    async def test_created_booking_shows_up(self, session):
        await session.select_club(MOCK_CLUB.id)

        await session.create_booking(
            BookingCreate(court_id=1, start_time=at(16), duration_minutes=60, participant_ids=[12])
        )
        view = session.use_availability(1)

        assert not view.is_loading
        assert view.slots[16].status == SlotStatus.BOOKED
        assert view.slots[17].status == SlotStatus.BOOKED
        assert view.slots[16].label == "Alice Smith & Carol White"

    @pytest.mark.asyncio
    async def test_cancelled_booking_frees_slots(self, session):
        await session.select_club(MOCK_CLUB.id)

        await session.cancel_booking(100)

        assert session.use_availability(1).slots[12].status == SlotStatus.AVAILABLE


class TestPermissions:
    def _session(self, backend, **user) -> BookingSession:
        session = BookingSession(backend, clock=fixed_clock, **user)
        session.club_id = MOCK_CLUB.id
        return session

    @pytest.mark.asyncio
    async def test_stranger_cannot_cancel(self, backend):
        session = self._session(backend, user_id=99)
        await session.cache.get(1, MOCK_DAY)

        with pytest.raises(InvalidBooking):
            await session.cancel_booking(100)

        assert backend.mutation_calls == []
        assert session.cache.is_cached(1, MOCK_DAY)

    @pytest.mark.asyncio
    async def test_stranger_cannot_move_explicit_booking(self, backend):
        session = self._session(backend, user_id=99)
        with pytest.raises(InvalidBooking):
            await session.update_booking(
                100, BookingUpdate(start_time=at(19)), original=MOCK_BOOKING_AFTERNOON
            )
        assert backend.mutation_calls == []

    @pytest.mark.asyncio
    async def test_owner_can_cancel(self, backend):
        session = self._session(backend, user_id=10)
        await session.cache.get(1, MOCK_DAY)

        await session.cancel_booking(100)

        assert backend.mutation_calls == [("cancel", 100)]
        assert await session.cache.get(1, MOCK_DAY) == []

    @pytest.mark.asyncio
    async def test_club_admin_can_update(self, backend):
        session = self._session(backend, user_id=99, admin_club_ids=[MOCK_CLUB.id])
        await session.cache.get(1, MOCK_DAY)

        updated = await session.update_booking(100, BookingUpdate(start_time=at(19)))

        assert updated.start_time == at(19)
        assert session.can_edit(updated)

    def test_can_edit(self, backend):
        assert self._session(backend, user_id=10).can_edit(MOCK_BOOKING_AFTERNOON)
        assert not self._session(backend, user_id=99).can_edit(MOCK_BOOKING_AFTERNOON)
        assert self._session(backend, user_id=99, is_super_admin=True).can_edit(MOCK_BOOKING_AFTERNOON)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close_stops_background_work(self, session):
        await session.select_club(MOCK_CLUB.id)
        await session.close()

        assert not session.preloader.is_running
        assert len(session.cache) == 0

    @pytest.mark.asyncio
    async def test_close_releases_owned_backend(self):
        closed = []

        class ClosingBackend(MockBookingBackend):
            async def close(self):
                closed.append(True)

        session = BookingSession(ClosingBackend(), clock=fixed_clock, owns_backend=True)
        await session.close()
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_borrowed_backend_is_left_open(self):
        closed = []

        class ClosingBackend(MockBookingBackend):
            async def close(self):
                closed.append(True)

        session = BookingSession(ClosingBackend(), clock=fixed_clock)
        await session.close()
        assert closed == []

"""
Background preloading of every court for the selected date.

Once the active court has loaded, the scheduler waits a short debounce
window and then fills the cache for the remaining courts one by one, with a
small gap between requests.  A run is tied to an *epoch*: changing club or
date supersedes it, and the old run notices the new epoch before its next
step and stops.  In-flight requests are never cancelled; the cache decides
whether their results still land.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Sequence
from datetime import date

from courtbooka.config import PRELOAD_DEBOUNCE_SECONDS, PRELOAD_STEP_DELAY_SECONDS
from courtbooka.errors import FetchFailure
from courtbooka.models import Court
from courtbooka.services.cache import BookingCache, EntryState

logger = logging.getLogger(__name__)


class PreloadScheduler:
    """Fills the booking cache for all courts of one date in the background."""

    def __init__(
        self,
        cache: BookingCache,
        *,
        debounce_seconds: float = PRELOAD_DEBOUNCE_SECONDS,
        step_delay_seconds: float = PRELOAD_STEP_DELAY_SECONDS,
    ) -> None:
        self._cache = cache
        self._debounce = debounce_seconds
        self._step_delay = step_delay_seconds
        self._epoch = 0
        self._progress = 0.0
        self._run_signature: tuple[str, tuple[int, ...]] | None = None
        self._task: asyncio.Task[None] | None = None

    # ── Introspection ──────────────────────────────────────────────────

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def progress(self) -> float:
        """Share of courts loaded by the current run, 0 to 100."""
        return self._progress

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Control ────────────────────────────────────────────────────────

    def preload_all(
        self,
        courts: Sequence[Court],
        day: date,
        *,
        active_court_id: int | None = None,
    ) -> asyncio.Task[None] | None:
        """
        Start (or keep) the preload run for *courts* on *day*.

        Calling again with the same day and courts while a run is in progress
        returns that run.  Anything else supersedes it.
        """
        signature = (self._cache.day_key(day), tuple(c.id for c in courts))
        if self.is_running and signature == self._run_signature:
            return self._task

        self.supersede()
        self._run_signature = signature
        if len(courts) <= 1:
            self._progress = 100.0
            return None

        epoch = self._epoch
        self._task = asyncio.create_task(
            self._run(epoch, list(courts), day, active_court_id),
            name=f"preload-{signature[0]}",
        )
        return self._task

    def supersede(self) -> None:
        """Invalidate the current run (club or date changed)."""
        self._epoch += 1
        self._progress = 0.0
        self._run_signature = None

    async def stop(self) -> None:
        """Supersede and cancel the current run (session shutdown)."""
        self.supersede()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("Preload stopped")

    # ── Run ────────────────────────────────────────────────────────────

    def _is_stale(self, epoch: int) -> bool:
        return epoch != self._epoch

    async def _run(
        self,
        epoch: int,
        courts: list[Court],
        day: date,
        active_court_id: int | None,
    ) -> None:
        await asyncio.sleep(self._debounce)

        total = len(courts)
        loaded = 0
        logger.info("Preloading %d courts for %s", total, day)

        for court in courts:
            if self._is_stale(epoch):
                logger.debug("Preload epoch %d superseded, stopping", epoch)
                return

            state = self._cache.state(court.id, day)
            if court.id != active_court_id and state is not EntryState.READY:
                # In-flight keys are joined without a step delay.
                if state is not EntryState.LOADING:
                    await asyncio.sleep(self._step_delay)
                    if self._is_stale(epoch):
                        logger.debug("Preload epoch %d superseded, stopping", epoch)
                        return
                try:
                    await self._cache.get(court.id, day)
                except FetchFailure as exc:
                    logger.warning("Preload of court %s failed: %s", court.id, exc)

            if self._is_stale(epoch):
                return
            loaded += 1
            self._progress = loaded / total * 100

        logger.info("Preload of %d courts finished", total)

"""
Shared scroll position across the per-court slot lists.

All court lists of one date show the same rows, so switching courts keeps
the user's time-of-day focus.  One list at a time holds the *driver token*:
while it does, its scroll events set the shared index and every other list
jumps there without animation.  Scroll events from lists that do not hold
the token are ignored; they are the echoes of programmatic jumps.

The synchronizer itself holds the token while it performs a mount or
date-change jump, so none of the lists can hijack that jump.

Timers run on the asyncio event loop; call from inside a running loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from courtbooka.config import SCROLL_RELEASE_SECONDS, SCROLL_RETRY_SECONDS, SLOT_ROW_HEIGHT
from courtbooka.services.slots import SLOTS_PER_DAY

logger = logging.getLogger(__name__)

# Driver token value while the synchronizer performs its own jumps.
SYNCHRONIZER = -1

IndexListener = Callable[[int], None]


class ScrollTarget(Protocol):
    """A slot list that can be scrolled programmatically."""

    def scroll_to_index(self, index: int, *, animated: bool) -> None:
        """Scroll so that row *index* is topmost.

        Raises IndexError (e.g. ScrollTargetNotReady) when the row is not
        laid out yet.
        """
        ...


class ScrollSynchronizer:
    """Keeps N slot lists scrolled to one shared row index."""

    def __init__(
        self,
        slot_count: int = SLOTS_PER_DAY,
        *,
        row_height: float = SLOT_ROW_HEIGHT,
        release_seconds: float = SCROLL_RELEASE_SECONDS,
        retry_seconds: float = SCROLL_RETRY_SECONDS,
    ) -> None:
        self._slot_count = slot_count
        self._row_height = row_height
        self._release_seconds = release_seconds
        self._retry_seconds = retry_seconds

        self._targets: dict[int, ScrollTarget] = {}
        self._listeners: list[IndexListener] = []
        self._shared_index = 0
        self._driver: int | None = None
        self._dragging = False
        self._release_handle: asyncio.TimerHandle | None = None

    # ── State ──────────────────────────────────────────────────────────

    @property
    def shared_index(self) -> int:
        return self._shared_index

    @property
    def driver(self) -> int | None:
        """Court index holding the token, SYNCHRONIZER, or None."""
        return self._driver

    def clamp(self, index: int) -> int:
        return max(0, min(index, self._slot_count - 1))

    def index_for_offset(self, offset: float) -> int:
        return self.clamp(round(offset / self._row_height))

    # ── Lists ──────────────────────────────────────────────────────────

    def register(self, court_index: int, target: ScrollTarget) -> None:
        """Attach a freshly mounted list and jump it to the shared row."""
        self._targets[court_index] = target
        if self._driver is None:
            self._take(SYNCHRONIZER)
        self._scroll(court_index, self._shared_index)
        if self._driver == SYNCHRONIZER:
            self._schedule_release()

    def unregister(self, court_index: int) -> None:
        self._targets.pop(court_index, None)
        if self._driver == court_index:
            self._release()

    def subscribe(self, listener: IndexListener) -> Callable[[], None]:
        """Call *listener(index)* whenever the shared index changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── User input ─────────────────────────────────────────────────────

    def begin_drag(self, court_index: int) -> None:
        """The user put a finger on *court_index*; it becomes the driver."""
        self._take(court_index)
        self._dragging = True

    def end_drag(self, court_index: int) -> None:
        if self._driver != court_index:
            return
        self._dragging = False
        self._schedule_release()

    def on_scroll_offset(self, court_index: int, offset: float) -> bool:
        return self.on_user_scroll(court_index, self.index_for_offset(offset))

    def on_user_scroll(self, court_index: int, index: int) -> bool:
        """
        Handle a scroll event from one list.

        Returns False when the event was ignored because another holder owns
        the token.
        """
        if self._driver is not None and self._driver != court_index:
            return False

        if self._driver is None:
            self._take(court_index)
        if not self._dragging:
            # Momentum / wheel scrolling: keep the token only briefly.
            self._schedule_release()

        index = self.clamp(index)
        if index == self._shared_index:
            return True

        self._shared_index = index
        for other in list(self._targets):
            if other != court_index:
                self._scroll(other, index)
        self._publish()
        return True

    # ── Programmatic ───────────────────────────────────────────────────

    def reset(self, initial_index: int) -> None:
        """Jump every list to *initial_index* without animation (mount / date change)."""
        self._take(SYNCHRONIZER)
        self._dragging = False
        self._shared_index = self.clamp(initial_index)
        for court_index in list(self._targets):
            self._scroll(court_index, self._shared_index)
        self._publish()
        self._schedule_release()

    def close(self) -> None:
        self._cancel_release()
        self._targets.clear()
        self._listeners.clear()
        self._driver = None

    # ── Internals ──────────────────────────────────────────────────────

    def _take(self, holder: int) -> None:
        self._cancel_release()
        self._driver = holder

    def _schedule_release(self) -> None:
        self._cancel_release()
        loop = asyncio.get_running_loop()
        self._release_handle = loop.call_later(self._release_seconds, self._release)

    def _cancel_release(self) -> None:
        if self._release_handle is not None:
            self._release_handle.cancel()
            self._release_handle = None

    def _release(self) -> None:
        self._release_handle = None
        self._driver = None
        self._dragging = False

    def _publish(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._shared_index)
            except Exception:
                logger.exception("Scroll listener failed")

    def _scroll(self, court_index: int, index: int) -> None:
        target = self._targets.get(court_index)
        if target is None:
            return
        try:
            target.scroll_to_index(index, animated=False)
        except IndexError:
            logger.debug("List %d not ready for row %d, retrying", court_index, index)
            loop = asyncio.get_running_loop()
            loop.call_later(self._retry_seconds, self._retry, court_index)

    def _retry(self, court_index: int) -> None:
        # The shared row may have moved since the failed attempt.
        target = self._targets.get(court_index)
        if target is None:
            return
        index = self.clamp(self._shared_index)
        try:
            target.scroll_to_index(index, animated=False)
        except IndexError:
            logger.debug("List %d still not ready for row %d, giving up", court_index, index)

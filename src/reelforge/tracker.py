"""Playback position tracker — which timeline item is active while paused.

A player only exposes its current frame through a getter, and play/pause
notifications can be missed, so while paused the tracker polls the frame
on a short asyncio timer and maps it to a segment index with
frame_to_active_segment_index. While the player is advancing, polling
stops and the published index is None (the player drives its own UI).

Lifecycle:
  tracker = PositionTracker(player, schedule, on_change)
  tracker.start()          # inside a running event loop
  tracker.notify_pause()   # -> polls every `interval` seconds
  tracker.notify_play()    # -> stops polling
  tracker.set_schedule(s)  # -> recomputes immediately
  await tracker.close()    # -> cancels the timer task
"""

import asyncio
import logging
from typing import Callable, Protocol

from .compositor import frame_to_active_segment_index
from .models import Schedule

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.12


class Player(Protocol):
    def current_frame(self) -> int | None: ...

    def is_playing(self) -> bool: ...


class PositionTracker:
    """Publishes the active segment index of a paused player."""

    def __init__(
        self,
        player: Player,
        schedule: Schedule,
        on_change: Callable[[int | None], None],
        interval: float = DEFAULT_POLL_INTERVAL,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval!r}")
        self._player = player
        self._schedule = schedule
        self._on_change = on_change
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._active_index: int | None = None
        self._closed = False

    @property
    def active_index(self) -> int | None:
        return self._active_index

    @property
    def polling(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def schedule(self) -> Schedule:
        return self._schedule

    def start(self) -> None:
        """Begin tracking according to the player's current state."""
        self._sync_to_playback()

    def set_schedule(self, schedule: Schedule) -> None:
        """Swap in a new schedule and recompute without waiting a tick."""
        self._schedule = schedule
        if self._player.is_playing():
            return
        self.update()

    def notify_play(self) -> None:
        self._sync_to_playback()

    def notify_pause(self) -> None:
        self._sync_to_playback()

    def notify_time_update(self) -> None:
        if not self._player.is_playing():
            self.update()

    def update(self) -> None:
        """Read the player's frame and publish the matching index."""
        frame = self._player.current_frame()
        if frame is None:
            return
        self._publish(frame_to_active_segment_index(self._schedule, frame))

    async def close(self) -> None:
        """Stop polling for good. Safe to call more than once."""
        self._closed = True
        await self._stop_polling()

    # ── Internals ──────────────────────────────────────────────────

    def _sync_to_playback(self) -> None:
        if self._closed:
            return
        if self._player.is_playing():
            self._cancel_task()
            self._publish(None)
        else:
            self._start_polling()

    def _start_polling(self) -> None:
        if self.polling:
            return
        self.update()
        self._task = asyncio.get_running_loop().create_task(self._poll())
        logger.debug("position polling started (every %.3fs)", self._interval)

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.update()
            except Exception:
                logger.exception("position update failed; still polling")

    def _cancel_task(self) -> asyncio.Task | None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("position polling stopped")
        return task

    async def _stop_polling(self) -> None:
        task = self._cancel_task()
        if task is None:
            return
        await asyncio.wait([task])
        if not task.cancelled() and task.exception() is not None:
            logger.warning("position polling had ended with %r", task.exception())

    def _publish(self, index: int | None) -> None:
        if index == self._active_index:
            return
        self._active_index = index
        self._on_change(index)

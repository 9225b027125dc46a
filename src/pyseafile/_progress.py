"""Transfer statistics and the non-blocking progress feed.

:class:`TransferMeter` turns chunk boundaries into
:class:`~pyseafile.models.progress.TransferProgress` snapshots.
:class:`ProgressFeed` delivers them to an observer without ever blocking
the uploader: when the observer falls behind, new samples are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta

from pyseafile._constants import DEFAULT_PROGRESS_HISTORY, DEFAULT_PROGRESS_QUEUE_SIZE
from pyseafile.models.progress import TransferProgress

_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[TransferProgress], None]


def percent_of(transferred: int, total: int) -> float:
    """Percentage with two decimals; ``0.0`` when the total is unknown."""
    if total <= 0:
        return 0.0
    return round((transferred / total) * 10000) / 100


class TransferMeter:
    """Rolling-window throughput statistics for one transfer.

    Parameters
    ----------
    total_size : int
        Expected number of bytes (``0`` when unknown).
    history : int
        Chunk boundaries kept for the recent-speed window.
    clock : callable, optional
        Monotonic seconds, ``time.monotonic`` by default.
    """

    def __init__(
        self,
        total_size: int,
        *,
        history: int = DEFAULT_PROGRESS_HISTORY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total_size = max(total_size, 0)
        self._clock = clock
        self._started = clock()
        self.start_time = datetime.now(UTC)
        self.transferred = 0
        # (timestamp, bytes written so far) of the most recent chunk boundaries
        self._history: deque[tuple[float, int]] = deque([(self._started, 0)], maxlen=history + 1)

    def record(self, nbytes: int) -> None:
        """Account for a chunk of *nbytes* that was just written."""
        self.transferred += nbytes
        self._history.append((self._clock(), self.transferred))

    def snapshot(self, *, final: bool = False) -> TransferProgress:
        """Current statistics.

        With *final*, the transfer is known to have ended: a transfer of
        unknown or zero size then reports 100% and no time remaining.
        """
        now = self._clock()
        elapsed = now - self._started
        speed_avg = self.transferred / elapsed if elapsed > 0 else 0.0

        oldest_ts, oldest_bytes = self._history[0]
        window = now - oldest_ts
        speed = (self.transferred - oldest_bytes) / window if window > 0 else speed_avg

        done = self.transferred >= self.total_size and (self.total_size > 0 or final)
        percent = percent_of(self.transferred, self.total_size)
        if done and self.total_size == 0:
            percent = 100.0

        remaining: timedelta | None = None
        if done:
            remaining = timedelta(0)
        elif speed_avg > 0 and self.total_size > 0:
            remaining = timedelta(seconds=(self.total_size - self.transferred) / speed_avg)

        return TransferProgress(
            transferred=self.transferred,
            total_size=self.total_size,
            percent=percent,
            speed=speed,
            speed_avg=speed_avg,
            remaining=remaining,
            start_time=self.start_time,
        )


class ProgressFeed:
    """Bounded, drop-on-full channel of progress snapshots.

    Producers call :meth:`publish` (never blocks) and finally :meth:`close`.
    A consumer iterates with ``async for``; iteration ends after the final
    snapshot once the feed is closed.
    """

    def __init__(self, maxsize: int = DEFAULT_PROGRESS_QUEUE_SIZE) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._maxsize = maxsize
        self._items: deque[TransferProgress] = deque()
        self._closed = False
        self._wakeup = asyncio.Event()
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, snapshot: TransferProgress) -> bool:
        """Queue *snapshot* unless the buffer is full. Returns whether it was queued."""
        if self._closed:
            return False
        if len(self._items) >= self._maxsize:
            self.dropped += 1
            return False
        self._items.append(snapshot)
        self._wakeup.set()
        return True

    def close(self, final: TransferProgress | None = None) -> None:
        """Queue *final* (making room if needed) and end the stream."""
        if self._closed:
            return
        if final is not None:
            if len(self._items) >= self._maxsize:
                # The final state supersedes the newest pending sample.
                self._items.pop()
                self.dropped += 1
            self._items.append(final)
        self._closed = True
        self._wakeup.set()
        if self.dropped:
            _logger.debug("Progress feed dropped %d snapshots", self.dropped)

    def get_nowait(self) -> TransferProgress | None:
        return self._items.popleft() if self._items else None

    async def __aiter__(self) -> AsyncIterator[TransferProgress]:
        while True:
            while self._items:
                yield self._items.popleft()
            if self._closed:
                return
            self._wakeup.clear()
            await self._wakeup.wait()


class ProgressReporter:
    """Publishes meter snapshots when the percentage moves.

    Fans out to an optional :class:`ProgressFeed` and an optional
    synchronous callback. Each sink remembers the last percentage it
    received so no value reaches it twice, including the final snapshot.
    """

    def __init__(
        self,
        meter: TransferMeter,
        *,
        feed: ProgressFeed | None = None,
        callback: ProgressCallback | None = None,
    ) -> None:
        self.meter = meter
        self._feed = feed
        self._callback = callback
        self._last_percent: float | None = None
        self._feed_percent: float | None = None
        self._callback_percent: float | None = None
        self.last: TransferProgress | None = None

    def _notify(self, snapshot: TransferProgress) -> None:
        if self._callback is None or snapshot.percent == self._callback_percent:
            return
        self._callback_percent = snapshot.percent
        try:
            self._callback(snapshot)
        except Exception:
            _logger.debug("Progress callback failed", exc_info=True)

    def chunk_written(self, nbytes: int) -> None:
        self.meter.record(nbytes)
        snapshot = self.meter.snapshot()
        self.last = snapshot
        if snapshot.percent == self._last_percent:
            return
        self._last_percent = snapshot.percent
        if self._feed is not None and self._feed.publish(snapshot):
            self._feed_percent = snapshot.percent
        self._notify(snapshot)

    def finish(self, *, completed: bool = True) -> TransferProgress:
        """Emit the final snapshot to sinks that have not seen it and close the feed.

        *completed* is ``False`` when the transfer was aborted; the snapshot
        then keeps the plain statistics instead of marking the end.
        """
        snapshot = self.meter.snapshot(final=completed)
        self.last = snapshot
        if self._feed is not None:
            self._feed.close(None if snapshot.percent == self._feed_percent else snapshot)
        self._notify(snapshot)
        return snapshot

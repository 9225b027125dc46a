from __future__ import annotations

from datetime import timedelta

import pytest

from pyseafile._progress import ProgressFeed, ProgressReporter, TransferMeter, percent_of
from pyseafile.models.progress import TransferProgress


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _meter(total: int, *, history: int = 10) -> tuple[TransferMeter, _Clock]:
    clock = _Clock()
    return TransferMeter(total, history=history, clock=clock), clock


def test_percent_of_rounds_to_two_decimals() -> None:
    assert percent_of(1, 3) == 33.33
    assert percent_of(2, 3) == 66.67
    assert percent_of(3, 3) == 100.0
    assert percent_of(5, 0) == 0.0


def test_snapshot_before_any_time_passed_has_no_speed() -> None:
    meter, _ = _meter(1000)
    snap = meter.snapshot()

    assert snap.transferred == 0
    assert snap.percent == 0.0
    assert snap.speed == 0.0
    assert snap.speed_avg == 0.0
    assert snap.remaining is None


def test_average_speed_and_remaining_time() -> None:
    meter, clock = _meter(1000)
    clock.now += 2.0
    meter.record(200)
    snap = meter.snapshot()

    assert snap.percent == 20.0
    assert snap.speed_avg == pytest.approx(100.0)
    assert snap.remaining == timedelta(seconds=8)


def test_recent_speed_uses_history_window() -> None:
    meter, clock = _meter(10_000, history=2)
    for _ in range(3):
        clock.now += 1.0
        meter.record(100)
    # Burst: 1000 bytes in the last second.
    clock.now += 1.0
    meter.record(1000)

    snap = meter.snapshot()
    # Window covers the last two intervals: (100 + 1000) bytes over 2 s.
    assert snap.speed == pytest.approx(550.0)
    assert snap.speed_avg == pytest.approx(1300 / 4)


def test_complete_transfer_has_zero_remaining() -> None:
    meter, clock = _meter(500)
    clock.now += 1.0
    meter.record(500)
    snap = meter.snapshot()

    assert snap.complete
    assert snap.percent == 100.0
    assert snap.remaining == timedelta(0)


def test_unknown_total_reports_zero_percent() -> None:
    meter, clock = _meter(0)
    clock.now += 1.0
    meter.record(42)
    snap = meter.snapshot()

    assert snap.percent == 0.0
    assert snap.remaining is None
    assert not snap.complete


def test_final_snapshot_of_empty_transfer_is_complete() -> None:
    meter, _ = _meter(0)
    snap = meter.snapshot(final=True)

    assert snap.percent == 100.0
    assert snap.remaining == timedelta(0)
    assert snap.complete


def test_reporter_abort_leaves_empty_transfer_incomplete() -> None:
    meter, _ = _meter(0)
    feed = ProgressFeed(maxsize=4)
    reporter = ProgressReporter(meter, feed=feed)

    snap = reporter.finish(completed=False)

    assert snap.percent == 0.0
    assert snap.remaining is None
    assert not snap.complete
    assert feed.get_nowait() == snap


def _snap(meter: TransferMeter) -> TransferProgress:
    return meter.snapshot()


def test_feed_drops_samples_when_full_but_keeps_final() -> None:
    meter, clock = _meter(100)
    feed = ProgressFeed(maxsize=2)
    for _ in range(4):
        clock.now += 1.0
        meter.record(10)
        feed.publish(_snap(meter))

    final_meter, _ = _meter(100)
    final_meter.record(100)
    feed.close(final_meter.snapshot())

    received = []
    while (item := feed.get_nowait()) is not None:
        received.append(item.transferred)

    assert feed.dropped == 3
    assert received == [10, 100]
    assert feed.closed
    assert feed.publish(_snap(meter)) is False


@pytest.mark.asyncio
async def test_feed_async_iteration_ends_after_close() -> None:
    meter, clock = _meter(100)
    feed = ProgressFeed(maxsize=8)
    clock.now += 1.0
    meter.record(50)
    feed.publish(meter.snapshot())
    meter.record(50)
    feed.close(meter.snapshot())

    received = [snap.transferred async for snap in feed]

    assert received == [50, 100]


def test_feed_rejects_zero_size() -> None:
    with pytest.raises(ValueError):
        ProgressFeed(0)


def test_reporter_publishes_each_percent_once() -> None:
    meter, clock = _meter(1000)
    feed = ProgressFeed(maxsize=1000)
    seen: list[float] = []
    reporter = ProgressReporter(meter, feed=feed, callback=lambda snap: seen.append(snap.percent))

    # 1-byte chunks: many writes share a percentage value.
    for _ in range(1000):
        clock.now += 0.001
        reporter.chunk_written(1)
    final = reporter.finish()

    published = []
    while (item := feed.get_nowait()) is not None:
        published.append(item.percent)

    assert final.percent == 100.0
    assert published == sorted(set(published))
    assert published[-1] == 100.0
    assert seen == published


def test_reporter_finish_sends_final_snapshot_to_empty_feed() -> None:
    meter, _ = _meter(0)
    feed = ProgressFeed(maxsize=4)
    reporter = ProgressReporter(meter, feed=feed)

    reporter.finish()

    item = feed.get_nowait()
    assert item is not None
    assert item.transferred == 0
    assert feed.closed


def test_reporter_survives_callback_errors() -> None:
    meter, clock = _meter(10)

    def _boom(_snap: TransferProgress) -> None:
        raise RuntimeError("observer bug")

    reporter = ProgressReporter(meter, callback=_boom)
    clock.now += 1.0
    reporter.chunk_written(10)

    assert reporter.finish().transferred == 10

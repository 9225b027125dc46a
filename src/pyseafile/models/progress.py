"""Upload progress snapshot model."""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict


class TransferProgress(BaseModel):
    """Immutable progress report emitted while an upload streams.

    Parameters
    ----------
    transferred : int
        Source bytes written to the request body so far.
    total_size : int
        Expected source size in bytes (``0`` when unknown).
    percent : float
        ``transferred / total_size`` in percent, two decimals.
    speed : float
        Recent throughput in bytes/second over the chunk history window.
    speed_avg : float
        Average throughput in bytes/second since the transfer started.
    remaining : timedelta or None
        Estimated time left, ``None`` while the average speed is unknown.
    start_time : datetime
        Wall-clock time the transfer started.
    """

    model_config = ConfigDict(frozen=True)

    transferred: int
    total_size: int
    percent: float
    speed: float
    speed_avg: float
    remaining: timedelta | None
    start_time: datetime

    @property
    def complete(self) -> bool:
        return self.percent >= 100.0 and self.transferred >= self.total_size

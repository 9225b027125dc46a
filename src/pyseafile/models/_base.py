"""Base model for Seafile API responses.

Every response model inherits from :class:`SeafileBaseModel` which
provides:

* frozen instances (responses are read-only snapshots),
* tolerance for unknown keys, since servers add fields between releases,
* a ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_epoch(value: Any) -> datetime | None:
    """Convert an epoch timestamp (seconds or milliseconds) to a UTC datetime.

    Returns ``None`` for ``None``, empty strings and non-positive values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    ts = int(value)
    if ts <= 0:
        return None
    if ts >= _MS_THRESHOLD:
        ts = ts // 1000
    return datetime.fromtimestamp(ts, tz=UTC)


EpochTimestamp = Annotated[datetime | None, BeforeValidator(parse_epoch)]
"""Annotated type that coerces Seafile epoch ints to UTC datetimes."""


class SeafileBaseModel(BaseModel):
    """Base for Seafile API response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original API response dict."""

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        """Drop ``null`` values so field defaults apply, and keep the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        # Keep an explicitly passed raw= (kwargs construction).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned

"""Directory entry model."""

from __future__ import annotations

from pyseafile.models._base import EpochTimestamp, SeafileBaseModel


class DirEntry(SeafileBaseModel):
    """One entry of a ``/repos/{id}/dir/`` listing."""

    id: str = ""
    name: str = ""
    type: str = ""
    """``"file"`` or ``"dir"``."""
    size: int = 0
    permission: str = ""
    mtime: EpochTimestamp = None

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"

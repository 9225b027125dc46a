"""Library (repository) model."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from pyseafile.models._base import EpochTimestamp, SeafileBaseModel


class Library(SeafileBaseModel):
    """A Seafile library as returned by ``/repos/`` and ``/repos/{id}/``."""

    id: str = Field(default="", validation_alias=AliasChoices("id", "repo_id"))
    """Library (repo) identifier."""
    name: str = Field(default="", validation_alias=AliasChoices("name", "repo_name"))
    """Display name."""
    owner: str = ""
    """Owner account (email)."""
    size: int = 0
    """Total size in bytes."""
    permission: str = ""
    """Access for the current user, ``"r"`` or ``"rw"``."""
    encrypted: bool = False
    virtual: bool = False
    type: str = ""
    """Ownership kind (``"repo"``, ``"srepo"``, ``"grepo"``)."""
    desc: str = ""
    root: str = ""
    """Root directory object id."""
    mtime: EpochTimestamp = None
    """Last modification time (UTC)."""

    @property
    def writable(self) -> bool:
        return "w" in self.permission

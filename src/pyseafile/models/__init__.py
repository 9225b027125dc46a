"""Typed models for Seafile API responses and upload progress."""

from pyseafile.models.file import DirEntry
from pyseafile.models.library import Library
from pyseafile.models.progress import TransferProgress
from pyseafile.models.token import AuthToken

__all__ = [
    "AuthToken",
    "DirEntry",
    "Library",
    "TransferProgress",
]

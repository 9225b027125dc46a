"""pyseafile - Async Python client for the Seafile web API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyseafile")
except PackageNotFoundError:
    __version__ = "0+local"
from pyseafile._progress import ProgressFeed
from pyseafile._token_store import CachedToken, TokenStore
from pyseafile.client import RemoteLibrary, SeafileClient
from pyseafile.config import SeafileConfig
from pyseafile.exceptions import (
    SeafileApiError,
    SeafileAuthError,
    SeafileConfigError,
    SeafileCryptoError,
    SeafileError,
    SeafileFormatError,
    SeafileInternalServerError,
    SeafileLibraryNotFoundError,
    SeafileLoginError,
    SeafileNotFoundError,
    SeafileOperationFailedError,
    SeafileThrottledError,
    SeafileTransportError,
    SeafileUnexpectedStatusError,
    SeafileUploadError,
)
from pyseafile.models import AuthToken, DirEntry, Library, TransferProgress
from pyseafile.session import Session

__all__ = [
    "__version__",
    "AuthToken",
    "CachedToken",
    "DirEntry",
    "Library",
    "ProgressFeed",
    "RemoteLibrary",
    "SeafileApiError",
    "SeafileAuthError",
    "SeafileClient",
    "SeafileConfig",
    "SeafileConfigError",
    "SeafileCryptoError",
    "SeafileError",
    "SeafileFormatError",
    "SeafileInternalServerError",
    "SeafileLibraryNotFoundError",
    "SeafileLoginError",
    "SeafileNotFoundError",
    "SeafileOperationFailedError",
    "SeafileThrottledError",
    "SeafileTransportError",
    "SeafileUnexpectedStatusError",
    "SeafileUploadError",
    "Session",
    "TokenStore",
    "TransferProgress",
]

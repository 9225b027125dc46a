"""Internal constants shared across the library."""

from __future__ import annotations

#: Path suffix every Seafile web API endpoint lives under.
API_SUFFIX = "/api2"

#: Separator used when deriving the token-store account identifier.
ACCOUNT_ID_SEPARATOR = "##"

#: Cached tokens older than this (seconds) are not reused and get purged
#: on the next token-store write.
DEFAULT_TOKEN_MAX_AGE: float = 30 * 60

#: Directory (below the user config dir) and file name of the token store.
#: The directory name is kept for compatibility with existing caches.
TOKEN_STORE_DIRNAME = "goseafile"
TOKEN_STORE_FILENAME = "tokens.json"

#: Upload copy buffer size.
DEFAULT_CHUNK_SIZE = 32 * 1024

#: Number of chunk boundaries kept for the "recent speed" window.
DEFAULT_PROGRESS_HISTORY = 10

#: Pending snapshots a progress feed buffers before dropping new samples.
DEFAULT_PROGRESS_QUEUE_SIZE = 64

DEFAULT_LIBRARY = "My Library"

#: HTTP statuses treated as success by the transport.
SUCCESS_STATUSES: frozenset[int] = frozenset({200, 201, 202})

STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_TOO_MANY_REQUESTS = 429
STATUS_INTERNAL_SERVER_ERROR = 500
STATUS_OPERATION_FAILED = 520

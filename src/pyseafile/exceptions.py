"""Custom exception hierarchy for pyseafile."""

from __future__ import annotations


class SeafileError(Exception):
    """Base exception for all pyseafile errors."""


class SeafileConfigError(SeafileError):
    """Invalid or missing configuration."""


class SeafileCryptoError(SeafileError):
    """Encryption or decryption failure."""


class SeafileFormatError(SeafileCryptoError):
    """Malformed encrypted blob (too short, or not decodable)."""


class SeafileTransportError(SeafileError):
    """Network-level failure or a response body that is not JSON."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        method: str = "",
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.method = method
        self.endpoint = endpoint
        super().__init__(message)


class SeafileApiError(SeafileError):
    """The API answered with a non-success HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        method: str = "",
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.method = method
        self.endpoint = endpoint
        super().__init__(message)


class SeafileAuthError(SeafileApiError):
    """Token missing, invalid or expired (HTTP 403).

    The transport catches this internally and re-authenticates once
    before giving up.
    """


class SeafileLoginError(SeafileAuthError):
    """No cached token worked and password login failed or was impossible."""


class SeafileNotFoundError(SeafileApiError):
    """Requested resource does not exist (HTTP 404)."""


class SeafileLibraryNotFoundError(SeafileNotFoundError):
    """No library with the requested name is visible to the account."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"could not find library '{name}'")


class SeafileThrottledError(SeafileApiError):
    """Rate limited (HTTP 429).

    Not retried automatically; callers may back off and retry.
    """


class SeafileInternalServerError(SeafileApiError):
    """Server fault (HTTP 500)."""


class SeafileOperationFailedError(SeafileApiError):
    """Seafile reported the operation as failed (HTTP 520)."""


class SeafileUnexpectedStatusError(SeafileApiError):
    """Any other non-success HTTP status."""


class SeafileUploadError(SeafileError):
    """Streaming upload failed (source, body or final status)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

"""Session state shared by the transport and the authenticator."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from pyseafile._constants import API_SUFFIX


def normalize_api_url(url: str) -> str:
    """Return *url* without trailing slashes and ending in ``/api2``.

    ``https://host``, ``https://host/`` and ``https://host/api2/`` all map
    to ``https://host/api2``.
    """
    base = url.strip().rstrip("/")
    if base.endswith(API_SUFFIX):
        base = base[: -len(API_SUFFIX)].rstrip("/")
    return f"{base}{API_SUFFIX}"


class Session(BaseModel):
    """Mutable connection state for one Seafile account.

    Parameters
    ----------
    url : str
        Server URL as configured (with or without ``/api2``).
    username : str
        Account user name, used for password login and token-cache keys.
    password : str
        Account password. Empty disables password login.
    token : str
        Current API token. Empty means unauthenticated. A non-empty token
        is not known to be valid until an authenticated request succeeds.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    url: str
    username: str = ""
    password: str = Field(default="", repr=False)
    token: str = Field(default="", repr=False)

    @property
    def api_url(self) -> str:
        """Normalized API base URL."""
        return normalize_api_url(self.url)

    @property
    def authenticated(self) -> bool:
        """Whether a token is set (not whether it is valid)."""
        return bool(self.token)

    def authorization_header(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Token {self.token}"}

    def clear_token(self) -> None:
        self.token = ""

    def switch_account(self, *, url: str | None = None, username: str | None = None, password: str | None = None) -> None:
        """Change connection details, dropping the current token."""
        if url is not None:
            self.url = url
        if username is not None:
            self.username = username
        if password is not None:
            self.password = password
        self.token = ""

"""Authentication orchestration.

Order of attempts for one session:

1. a cached token from the :class:`TokenStore`, if younger than the
   configured maximum age and accepted by ``/auth/ping/``;
2. password login, whose token is then written back to the store.

A cached token that fails validation is evicted. Token-store problems are
logged and never abort authentication.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pyseafile._api.auth import check_auth_ping, fetch_auth_token
from pyseafile._constants import DEFAULT_TOKEN_MAX_AGE
from pyseafile._crypto.hashing import account_id, token_fingerprint
from pyseafile._token_store import TokenStore
from pyseafile._transport import ApiTransport
from pyseafile.exceptions import SeafileApiError, SeafileLoginError, SeafileTransportError
from pyseafile.session import Session

_logger = logging.getLogger(__name__)


class Authenticator:
    """Obtains and refreshes the token of a :class:`Session`.

    Parameters
    ----------
    session : Session
        State to authenticate. Its token is replaced in place.
    transport : ApiTransport
        Transport bound to *session*.
    token_store : TokenStore, optional
        Token cache. ``None`` disables caching.
    max_age : float
        Seconds a cached token is trusted; also the purge expiry on writes.
    """

    def __init__(
        self,
        session: Session,
        transport: ApiTransport,
        *,
        token_store: TokenStore | None = None,
        max_age: float = DEFAULT_TOKEN_MAX_AGE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session = session
        self._transport = transport
        self._token_store = token_store
        self._max_age = max_age
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def account(self) -> str:
        """Token-store key for the current (endpoint, user) pair."""
        return account_id(self._session.api_url, self._session.username)

    @property
    def token_store(self) -> TokenStore | None:
        return self._token_store

    def use_token_store(self, token_store: TokenStore | None) -> None:
        self._token_store = token_store

    async def validate(self, token: str) -> bool:
        """Install *token* and check it against ``/auth/ping/``.

        On failure the session is left without a token.
        """
        if not token:
            return False
        self._session.token = token
        if await check_auth_ping(self._transport):
            return True
        _logger.warning("Token %s invalid", token_fingerprint(token))
        self._session.clear_token()
        return False

    async def login(self, username: str | None = None, password: str | None = None) -> str:
        """Password login; stores the new token in the session and returns it.

        Credentials are only sent after the server answered ``/ping/``.

        Raises
        ------
        SeafileLoginError
            If the server does not answer the ping or returns no token.
        SeafileApiError, SeafileTransportError
            If the login request itself fails.
        """
        user = self._session.username if username is None else username
        secret = self._session.password if password is None else password
        if not await self._transport.ping():
            raise SeafileLoginError(
                "server did not respond correctly to ping",
                method="GET",
                endpoint="/ping/",
            )
        self._session.clear_token()
        token = await fetch_auth_token(self._transport, user, secret)
        self._session.token = token.token
        _logger.debug("Logged in as %s (token %s)", user, token_fingerprint(token.token))
        return token.token

    def _cached_token(self) -> str:
        if self._token_store is None:
            return ""
        cached = self._token_store.lookup(self.account)
        if cached is None:
            return ""
        if not cached.is_fresh(self._max_age, self._clock()):
            _logger.warning("Cached token found but not valid anymore")
            return ""
        _logger.debug("Cached token %s still fresh", token_fingerprint(cached.token))
        return cached.token

    async def try_auth(self) -> bool:
        """Authenticate from the token cache or by password login.

        Returns ``False`` (and logs) when neither works.
        """
        _logger.debug("Trying to authenticate %s at %s", self._session.username, self._session.api_url)
        cached = self._cached_token()
        if cached:
            if await self.validate(cached):
                return True
            _logger.warning("Authentication with cached token failed, removing it")
            if self._token_store is not None and not self._token_store.delete(self.account, self._max_age):
                _logger.warning("Could not remove invalid cached token")

        if not self._session.password:
            _logger.debug("No password configured, cannot log in")
            return False

        try:
            token = await self.login()
        except (SeafileApiError, SeafileTransportError) as exc:
            _logger.error("No valid authentication found (auth error: %s)", exc)
            return False
        _logger.debug("Authentication succeeded")

        if self._token_store is not None and not self._token_store.store(self.account, token, self._max_age):
            _logger.warning("Could not save auth token")
        return True

    async def reauthenticate(self) -> bool:
        """Re-authentication callback for the transport's 403 handling."""
        self._session.clear_token()
        return await self.try_auth()

    async def ensure_authenticated(self) -> None:
        """Make sure the session holds a validated token.

        A token already present in the session (e.g. passed explicitly) is
        validated first; otherwise :meth:`try_auth` runs.

        Raises
        ------
        SeafileLoginError
            If no way to authenticate succeeded.
        """
        if self._session.token and await self.validate(self._session.token):
            return
        if not await self.try_auth():
            raise SeafileLoginError(
                f"no valid authentication found for {self._session.username or '<anonymous>'}",
                endpoint="/auth-token/",
            )

"""High-level async client for the Seafile web API."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import IO, Any

import aiohttp

from pyseafile._api.libraries import fetch_directory, fetch_libraries, fetch_library, fetch_library_owner
from pyseafile._api.upload import upload_path, upload_stream
from pyseafile._auth import Authenticator
from pyseafile._progress import ProgressCallback, ProgressFeed
from pyseafile._token_store import TokenStore
from pyseafile._transport import ApiTransport
from pyseafile.config import SeafileConfig
from pyseafile.exceptions import SeafileError, SeafileLibraryNotFoundError
from pyseafile.models.file import DirEntry
from pyseafile.models.library import Library
from pyseafile.models.progress import TransferProgress
from pyseafile.session import Session

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RemoteLibrary:
    """A :class:`Library` bound to the client that fetched it.

    Offers the per-library operations (listing, upload, owner lookup)
    without repeating the library id.
    """

    client: SeafileClient
    info: Library

    @property
    def id(self) -> str:
        return self.info.id

    @property
    def name(self) -> str:
        return self.info.name

    async def list(self, path: str = "") -> list[DirEntry]:
        return await self.client.list_directory(self.info, path)

    async def upload(
        self,
        source: IO[bytes] | Any,
        size: int,
        target: str,
        *,
        feed: ProgressFeed | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TransferProgress:
        return await self.client.upload(self.info, source, size, target, feed=feed, on_progress=on_progress)

    async def upload_file(
        self,
        local_path: str | os.PathLike[str],
        target: str,
        *,
        feed: ProgressFeed | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TransferProgress:
        return await self.client.upload_file(self.info, local_path, target, feed=feed, on_progress=on_progress)

    async def owner(self) -> str:
        return await self.client.get_library_owner(self.info)

    async def refresh(self) -> RemoteLibrary:
        return RemoteLibrary(self.client, await self.client.get_library_by_id(self.info.id))


def _library_id(library: Library | RemoteLibrary | str) -> str:
    if isinstance(library, str):
        return library
    return library.id


def _close_feed(feed: ProgressFeed | None) -> None:
    if feed is not None:
        feed.close()


class SeafileClient:
    """Async client for the Seafile web API.

    Usage::

        async with SeafileClient(config) as client:
            await client.ensure_authenticated()
            library = await client.get_library("My Library")
            await library.upload_file("report.pdf", "/docs/report.pdf")
    """

    def __init__(
        self,
        config: SeafileConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        token_store: TokenStore | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._state = Session(
            url=config.url,
            username=config.username,
            password=config.password,
            token=config.token,
        )
        self._token_store = token_store
        self._transport: ApiTransport | None = None
        self._auth: Authenticator | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SeafileClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = ApiTransport(
            self._state,
            self._http_session,
            request_timeout=self._config.request_timeout,
        )
        self._auth = Authenticator(
            self._state,
            self._transport,
            token_store=self._make_token_store(),
            max_age=self._config.token_max_age,
        )
        self._transport.set_reauthenticator(self._auth.reauthenticate)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None
        self._auth = None

    def _make_token_store(self) -> TokenStore | None:
        if self._token_store is not None:
            return self._token_store
        if not self._config.token_cache_enabled or not self._state.password:
            return None
        return TokenStore(
            self._config.resolved_token_store_path,
            self._state.password,
            legacy_base64=self._config.legacy_base64_tokens,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> ApiTransport:
        if self._transport is None:
            raise SeafileError("Client not initialized. Use 'async with SeafileClient(...) as client:'")
        return self._transport

    def _require_auth(self) -> Authenticator:
        if self._auth is None:
            raise SeafileError("Client not initialized. Use 'async with SeafileClient(...) as client:'")
        return self._auth

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        """Mutable connection state (URL, user, token)."""
        return self._state

    @property
    def config(self) -> SeafileConfig:
        return self._config

    async def ping(self) -> bool:
        """Unauthenticated reachability probe."""
        return await self._require_transport().ping()

    async def login(self, username: str | None = None, password: str | None = None) -> None:
        """Log in with a password, switching accounts when credentials are given.

        The new token is written to the token cache.
        """
        auth = self._require_auth()
        if username is not None or password is not None:
            self._state.switch_account(username=username, password=password)
            auth.use_token_store(self._make_token_store())
        token = await auth.login()
        store = auth.token_store
        if store is not None and not store.store(auth.account, token, self._config.token_max_age):
            _logger.warning("Could not save auth token")

    async def ensure_authenticated(self) -> None:
        """Authenticate from the explicit token, the token cache or the password."""
        await self._require_auth().ensure_authenticated()

    async def _authenticated_transport(self) -> ApiTransport:
        transport = self._require_transport()
        if not self._state.token:
            await self.ensure_authenticated()
        return transport

    # ------------------------------------------------------------------
    # Libraries
    # ------------------------------------------------------------------

    async def list_libraries(self) -> list[RemoteLibrary]:
        """All libraries visible to the account."""
        transport = await self._authenticated_transport()
        return [RemoteLibrary(self, lib) for lib in await fetch_libraries(transport)]

    async def get_library(self, name: str) -> RemoteLibrary:
        """Find a library by display name.

        Raises
        ------
        SeafileLibraryNotFoundError
            If no visible library has that name.
        """
        for library in await self.list_libraries():
            if library.name == name:
                return library
        raise SeafileLibraryNotFoundError(name)

    async def get_library_by_id(self, library_id: str) -> Library:
        transport = await self._authenticated_transport()
        return await fetch_library(transport, library_id)

    async def get_library_owner(self, library: Library | RemoteLibrary | str) -> str:
        transport = await self._authenticated_transport()
        return await fetch_library_owner(transport, _library_id(library))

    async def list_directory(self, library: Library | RemoteLibrary | str, path: str = "") -> list[DirEntry]:
        """Entries of *path* in a library (library root when empty)."""
        transport = await self._authenticated_transport()
        return await fetch_directory(transport, _library_id(library), path)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def upload(
        self,
        library: Library | RemoteLibrary | str,
        source: IO[bytes] | Any,
        size: int,
        target: str,
        *,
        feed: ProgressFeed | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TransferProgress:
        """Stream *size* bytes from *source* to *target* in a library."""
        try:
            transport = await self._authenticated_transport()
        except BaseException:
            _close_feed(feed)
            raise
        return await upload_stream(
            transport,
            _library_id(library),
            source,
            size,
            target,
            chunk_size=self._config.chunk_size,
            history=self._config.progress_history,
            feed=feed,
            on_progress=on_progress,
        )

    async def upload_file(
        self,
        library: Library | RemoteLibrary | str,
        local_path: str | os.PathLike[str],
        target: str,
        *,
        feed: ProgressFeed | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TransferProgress:
        """Upload a local file to *target* in a library."""
        try:
            transport = await self._authenticated_transport()
            return await upload_path(
                transport,
                _library_id(library),
                local_path,
                target,
                chunk_size=self._config.chunk_size,
                history=self._config.progress_history,
                feed=feed,
                on_progress=on_progress,
            )
        finally:
            _close_feed(feed)

    def progress_feed(self) -> ProgressFeed:
        """A fresh feed sized from the configuration."""
        return ProgressFeed(self._config.progress_queue_size)

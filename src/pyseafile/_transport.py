"""HTTP transport for the Seafile web API.

Owns URL building, header injection, the status-to-exception mapping and
the single place where silent recovery happens: a 403 triggers one
re-authentication and one retry of the same request.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, Awaitable, Callable, Mapping
from typing import Any, Protocol

import aiohttp

from pyseafile._constants import (
    STATUS_FORBIDDEN,
    STATUS_INTERNAL_SERVER_ERROR,
    STATUS_NOT_FOUND,
    STATUS_OPERATION_FAILED,
    STATUS_TOO_MANY_REQUESTS,
    SUCCESS_STATUSES,
)
from pyseafile._redact import redact_for_log, redact_url
from pyseafile.exceptions import (
    SeafileApiError,
    SeafileAuthError,
    SeafileInternalServerError,
    SeafileNotFoundError,
    SeafileOperationFailedError,
    SeafileThrottledError,
    SeafileTransportError,
    SeafileUnexpectedStatusError,
)
from pyseafile.session import Session

_logger = logging.getLogger(__name__)

Reauthenticator = Callable[[], Awaitable[bool]]

_STATUS_ERRORS: dict[int, tuple[type[SeafileApiError], str]] = {
    STATUS_FORBIDDEN: (SeafileAuthError, "invalid or expired token"),
    STATUS_NOT_FOUND: (SeafileNotFoundError, "resource not found"),
    STATUS_TOO_MANY_REQUESTS: (SeafileThrottledError, "rate limited"),
    STATUS_INTERNAL_SERVER_ERROR: (SeafileInternalServerError, "internal server error"),
    STATUS_OPERATION_FAILED: (SeafileOperationFailedError, "operation failed"),
}


def raise_for_status(status: int, *, method: str, endpoint: str, body: str = "") -> None:
    """Raise the exception class mapped to a non-success *status*."""
    if status in SUCCESS_STATUSES:
        return
    exc_cls, reason = _STATUS_ERRORS.get(status, (SeafileUnexpectedStatusError, "unexpected status"))
    detail = f": {body[:200]}" if body else ""
    raise exc_cls(
        f"{method} {endpoint} failed: HTTP {status} ({reason}){detail}",
        status_code=status,
        method=method,
        endpoint=endpoint,
    )


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`ApiTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        form: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        retry_auth: bool = True,
    ) -> Any: ...

    async def post_stream(
        self,
        url: str,
        body: AsyncIterable[bytes],
        content_type: str,
    ) -> tuple[int, str]: ...


class ApiTransport:
    """aiohttp-backed transport bound to one :class:`Session`.

    Parameters
    ----------
    session : Session
        Connection state. The token is read on every request and may be
        replaced by the re-authentication callback.
    http_session : aiohttp.ClientSession
        Shared HTTP connection pool.
    reauthenticate : callable, optional
        Coroutine function returning ``True`` when a fresh token was put
        into *session*. Without it, 403 responses propagate immediately.
    request_timeout : float, optional
        Total timeout per API request in seconds.
    """

    def __init__(
        self,
        session: Session,
        http_session: aiohttp.ClientSession,
        *,
        reauthenticate: Reauthenticator | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self._session = session
        self._http = http_session
        self._reauthenticate = reauthenticate
        self._request_timeout = request_timeout

    @property
    def session(self) -> Session:
        return self._session

    def set_reauthenticator(self, reauthenticate: Reauthenticator | None) -> None:
        self._reauthenticate = reauthenticate

    def build_url(self, path: str) -> str:
        """Join *path* onto the API base URL unless it is already absolute."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._session.api_url}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        headers.update(self._session.authorization_header())
        return headers

    def _timeout_kwargs(self, *, streaming: bool = False) -> dict[str, aiohttp.ClientTimeout]:
        """Per-request timeout override; empty keeps the client session default."""
        if self._request_timeout is None:
            return {}
        if streaming:
            # Uploads may run longer than any per-request budget; bound stalls instead.
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._request_timeout, sock_read=self._request_timeout)
        else:
            timeout = aiohttp.ClientTimeout(total=self._request_timeout)
        return {"timeout": timeout}

    async def request(
        self,
        method: str,
        path: str,
        *,
        form: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        retry_auth: bool = True,
    ) -> Any:
        """Perform an API call and return the decoded JSON body.

        A 403 response triggers one call of the re-authentication callback;
        when that succeeds the request is repeated once. Every other error
        propagates unchanged.

        Raises
        ------
        SeafileApiError
            Mapped from the HTTP status.
        SeafileTransportError
            Network failure or non-JSON success body.
        """
        reauthenticated = False
        while True:
            try:
                return await self.request_once(method, path, form=form, params=params)
            except SeafileAuthError as exc:
                if not retry_auth or reauthenticated or self._reauthenticate is None:
                    raise
                reauthenticated = True
                _logger.info("%s %s rejected the token, re-authenticating", method, path)
                if not await self._reauthenticate():
                    raise exc
                _logger.debug("Re-authenticated, retrying %s %s", method, path)

    async def request_once(
        self,
        method: str,
        path: str,
        *,
        form: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        """Single request attempt without any retry."""
        status, text = await self._send(method, path, form=form, params=params)
        if status == STATUS_TOO_MANY_REQUESTS:
            _logger.warning("%s %s throttled by the server (HTTP 429)", method, path)
        raise_for_status(status, method=method, endpoint=path, body=text)
        return _decode_json(text, method=method, endpoint=path)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        form: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> tuple[int, str]:
        url = self.build_url(path)
        headers = self._headers()
        data: aiohttp.FormData | None = None
        if form is not None:
            data = aiohttp.FormData(dict(form))

        if form is not None:
            _logger.debug("%s %s params=%s form=%s", method, url, params, redact_for_log(dict(form)))
        else:
            _logger.debug("%s %s params=%s", method, url, params)

        try:
            async with self._http.request(
                method,
                url,
                data=data,
                params=params,
                headers=headers,
                **self._timeout_kwargs(),
            ) as resp:
                text = await resp.text()
                _logger.debug("%s %s -> HTTP %s", method, path, resp.status)
                return resp.status, text
        except aiohttp.ClientError as exc:
            raise SeafileTransportError(
                f"{method} {path} failed: {exc}",
                method=method,
                endpoint=path,
            ) from exc
        except TimeoutError as exc:
            raise SeafileTransportError(
                f"{method} {path} timed out",
                method=method,
                endpoint=path,
            ) from exc

    async def ping(self) -> bool:
        """Unauthenticated reachability probe.

        ``True`` for HTTP 200 with body ``"pong"`` and for HTTP 429, since a
        throttling server is still reachable.
        """
        try:
            status, text = await self._send("GET", "/ping/")
        except SeafileTransportError as exc:
            _logger.warning("ping failed: %s", exc)
            return False
        if status == STATUS_TOO_MANY_REQUESTS:
            _logger.warning("ping throttled (HTTP 429), server is reachable")
            return True
        if status != 200:
            _logger.warning("ping failed: HTTP %s", status)
            return False
        try:
            body = _decode_json(text, method="GET", endpoint="/ping/")
        except SeafileTransportError:
            body = text.strip()
        return body == "pong"

    async def post_stream(
        self,
        url: str,
        body: AsyncIterable[bytes],
        content_type: str,
    ) -> tuple[int, str]:
        """POST a streamed body (chunked) and return ``(status, text)``.

        No status mapping and no auth retry: upload links are single-use.
        """
        headers = self._headers()
        headers["Content-Type"] = content_type
        safe_url = redact_url(url)
        _logger.debug("POST %s (streaming %s)", safe_url, content_type.split(";", 1)[0])
        try:
            async with self._http.post(
                self.build_url(url),
                data=body,
                headers=headers,
                **self._timeout_kwargs(streaming=True),
            ) as resp:
                text = await resp.text()
                _logger.debug("POST %s -> HTTP %s", safe_url, resp.status)
                return resp.status, text
        except aiohttp.ClientError as exc:
            raise SeafileTransportError(
                f"POST {safe_url} failed: {exc}",
                method="POST",
                endpoint=safe_url,
            ) from exc


def _decode_json(text: str, *, method: str, endpoint: str) -> Any:
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise SeafileTransportError(
            f"Invalid JSON from {method} {endpoint}: {text[:200]}",
            method=method,
            endpoint=endpoint,
        ) from exc

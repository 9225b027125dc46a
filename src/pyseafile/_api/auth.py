"""Authentication endpoints.

Endpoints:
  - POST /auth-token/
  - GET /auth/ping/
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from pyseafile._redact import redact_for_log
from pyseafile._transport import Transport
from pyseafile.exceptions import SeafileApiError, SeafileLoginError, SeafileTransportError
from pyseafile.models.token import AuthToken

_logger = logging.getLogger(__name__)

AUTH_TOKEN_ENDPOINT = "/auth-token/"
AUTH_PING_ENDPOINT = "/auth/ping/"


async def fetch_auth_token(transport: Transport, username: str, password: str) -> AuthToken:
    """Exchange username/password for an API token.

    Never retried on 403: a rejected login must not re-enter the
    authentication flow.

    Raises
    ------
    SeafileLoginError
        If the response carries no token.
    SeafileApiError, SeafileTransportError
        On HTTP or network failure.
    """
    form = {"username": username, "password": password}
    response = await transport.request("POST", AUTH_TOKEN_ENDPOINT, form=form, retry_auth=False)
    try:
        return AuthToken.model_validate(response)
    except ValidationError as exc:
        _logger.debug("auth-token response: %s", redact_for_log(response))
        raise SeafileLoginError(
            "Login response missing token",
            method="POST",
            endpoint=AUTH_TOKEN_ENDPOINT,
        ) from exc


async def check_auth_ping(transport: Transport) -> bool:
    """Probe ``/auth/ping/`` with the current token.

    Returns ``False`` (and logs) on any failure instead of raising.
    """
    try:
        response = await transport.request("GET", AUTH_PING_ENDPOINT, retry_auth=False)
    except (SeafileApiError, SeafileTransportError) as exc:
        _logger.warning("auth/ping failed: %s", exc)
        return False
    if response != "pong":
        _logger.warning("auth/ping returned unexpected body: %r", redact_for_log(response, max_string=64))
        return False
    return True

"""Library and directory endpoints.

Endpoints:
  - GET /repos/
  - GET /repos/{id}/
  - GET /repos/{id}/owner/
  - GET /repos/{id}/dir/?p=<path>
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from pyseafile._transport import Transport
from pyseafile.exceptions import SeafileTransportError
from pyseafile.models.file import DirEntry
from pyseafile.models.library import Library

_logger = logging.getLogger(__name__)


def repo_path(library_id: str, suffix: str = "") -> str:
    """Endpoint path below ``/repos/{id}/`` with the id URL-quoted."""
    return f"/repos/{quote(library_id, safe='')}/{suffix}"


def _expect_list(decoded: Any, *, endpoint: str) -> list[Any]:
    if not isinstance(decoded, list):
        raise SeafileTransportError(
            f"Expected a JSON array from GET {endpoint}, got {type(decoded).__name__}",
            method="GET",
            endpoint=endpoint,
        )
    return decoded


def _validate_items(model: Any, items: list[Any], *, endpoint: str) -> list[Any]:
    parsed = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as exc:
            raise SeafileTransportError(
                f"Malformed item from GET {endpoint}: {exc.errors()[0]['msg']}",
                method="GET",
                endpoint=endpoint,
            ) from exc
    return parsed


async def fetch_libraries(transport: Transport) -> list[Library]:
    """List every library visible to the authenticated user."""
    endpoint = "/repos/"
    decoded = await transport.request("GET", endpoint)
    libraries: list[Library] = _validate_items(Library, _expect_list(decoded, endpoint=endpoint), endpoint=endpoint)
    _logger.debug("Fetched %d libraries", len(libraries))
    return libraries


async def fetch_library(transport: Transport, library_id: str) -> Library:
    """Fetch a single library by id."""
    endpoint = repo_path(library_id)
    decoded = await transport.request("GET", endpoint)
    if not isinstance(decoded, dict):
        raise SeafileTransportError(
            f"Expected a JSON object from GET {endpoint}",
            method="GET",
            endpoint=endpoint,
        )
    # Some server versions omit the id on the detail endpoint.
    decoded.setdefault("id", library_id)
    return Library.model_validate(decoded)


async def fetch_library_owner(transport: Transport, library_id: str) -> str:
    """Return the owner account of a library."""
    endpoint = repo_path(library_id, "owner/")
    decoded = await transport.request("GET", endpoint)
    if isinstance(decoded, dict):
        owner = decoded.get("owner", decoded.get("Owner", ""))
        return str(owner or "")
    return ""


async def fetch_directory(transport: Transport, library_id: str, path: str = "") -> list[DirEntry]:
    """List the entries of *path* inside a library (root when empty)."""
    endpoint = repo_path(library_id, "dir/")
    params = {"p": path} if path else None
    decoded = await transport.request("GET", endpoint, params=params)
    return _validate_items(DirEntry, _expect_list(decoded, endpoint=endpoint), endpoint=endpoint)

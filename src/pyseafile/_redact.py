"""Helpers for safe debug logging.

pyseafile handles passwords and API tokens. This module redacts sensitive
fields before they reach DEBUG logs.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

#: Keys whose values are never logged. Matching is case-insensitive and
#: ignores ``-``/``_`` so ``auth_token`` and ``X-Auth-Token`` are covered too.
_SENSITIVE_KEY_PARTS: tuple[str, ...] = ("password", "token", "authorization", "cookie")

_AUTH_VALUE_RE = re.compile(r"^(Token|Bearer)\s+\S+$", re.IGNORECASE)

_MAX_DEPTH = 20


def _is_sensitive(key: str) -> bool:
    normalized = key.lower().replace("-", "").replace("_", "")
    return any(part in normalized for part in _SENSITIVE_KEY_PARTS)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs.

    Mapping entries with sensitive keys become ``"<redacted>"``, as do bare
    ``Token <value>`` strings. Long strings are truncated and bytes are
    summarised by length.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        if _AUTH_VALUE_RE.match(value):
            return "<redacted>"
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, Mapping):
        return {
            str(key): "<redacted>"
            if _is_sensitive(str(key))
            else redact_for_log(item, max_string=max_string, _depth=_depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, Sequence):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]
    return repr(value)


def redact_url(url: str) -> str:
    """Mask the final path segment of a one-time upload link.

    Seafile upload links carry a short-lived access token as their last
    path component (``.../seafhttp/upload-api/<token>``).
    """
    base, _, query = url.partition("?")
    scheme, sep, rest = base.partition("://")
    if not sep or "/" not in rest.rstrip("/"):
        return url
    head = rest.rstrip("/").rsplit("/", 1)[0]
    redacted = f"{scheme}://{head}/<redacted>"
    return f"{redacted}?{query}" if query else redacted

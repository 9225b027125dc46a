"""Hash helpers for token-store keys and log-safe fingerprints."""

from __future__ import annotations

import hashlib

from pyseafile._constants import ACCOUNT_ID_SEPARATOR


def account_id(url: str, username: str) -> str:
    """Derive the token-store key for an (endpoint, user) pair.

    Computed as the lowercase hex MD5 of ``url + "##" + username``. MD5 is
    used as a fast, stable identifier here, not as a security boundary,
    and matches the keys in existing token files.
    """
    value = f"{url}{ACCOUNT_ID_SEPARATOR}{username}"
    return hashlib.md5(value.encode("utf-8"), usedforsecurity=False).hexdigest()


def token_fingerprint(token: str) -> str:
    """Short, non-reversible label for a token, suitable for logs."""
    if not token:
        return "<none>"
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:8]

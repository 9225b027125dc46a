"""Encrypted on-disk cache of API tokens.

The store is one JSON object mapping account identifiers to records::

    {"<account id>": {"Token": "<base64 blob>", "TimeStamp": "<RFC 3339>"}}

Each blob is the token encrypted with a key derived from the account
password, so a cached token can only be unlocked by whoever knows the
password. This avoids sending the password over the wire on every run.

Every failure here is non-fatal: lookups degrade to "no cached token" and
writes report ``False``. Writers do read-modify-write without locking;
the last concurrent writer wins.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import re
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from pyseafile._crypto.aes import decrypt, derive_key, encrypt
from pyseafile._crypto.hashing import token_fingerprint
from pyseafile.exceptions import SeafileCryptoError

_logger = logging.getLogger(__name__)

# RFC 3339 timestamps from other writers may carry nanoseconds; datetime takes micros.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def _parse_rfc3339(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r"\1", text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class TokenRecord(BaseModel):
    """One entry of the token store file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    blob: bytes = Field(alias="Token")
    """``IV || ciphertext`` of the token."""
    timestamp: datetime = Field(alias="TimeStamp")
    """When the token was stored."""

    @field_validator("blob", mode="before")
    @classmethod
    def _decode_blob(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"Token is not base64: {exc}") from exc
        return value

    @field_validator("timestamp", mode="before")
    @classmethod
    def _decode_timestamp(cls, value: Any) -> Any:
        return _parse_rfc3339(value)

    @field_serializer("blob")
    def _encode_blob(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    @field_serializer("timestamp")
    def _encode_timestamp(self, value: datetime) -> str:
        return value.isoformat()

    def age(self, now: datetime) -> timedelta:
        return now - self.timestamp


class CachedToken(BaseModel):
    """A decrypted token together with the time it was stored."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(repr=False)
    timestamp: datetime

    def is_fresh(self, max_age: float, now: datetime | None = None) -> bool:
        """Whether the token is younger than *max_age* seconds (``0`` = no limit)."""
        if max_age <= 0:
            return True
        current = now or datetime.now(UTC)
        return (current - self.timestamp) < timedelta(seconds=max_age)


def _looks_like_token(text: str) -> bool:
    return bool(text) and text.isascii() and text.isprintable()


class TokenStore:
    """Password-keyed token cache backed by a single JSON file.

    Parameters
    ----------
    path : Path
        Location of the store file. Parent directories are created on the
        first write with mode ``0700``, the file itself with ``0600``.
    password : str
        Password the encryption key is derived from.
    legacy_base64 : bool
        Base64-wrap the plaintext before encryption (compatible blobs).
    clock : callable, optional
        Returns the current aware datetime. Defaults to ``datetime.now(UTC)``.
    """

    def __init__(
        self,
        path: Path,
        password: str,
        *,
        legacy_base64: bool = True,
        clock: Any = None,
    ) -> None:
        self._path = Path(path)
        self._key = derive_key(password)
        self._legacy_base64 = legacy_base64
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def path(self) -> Path:
        return self._path

    def _read_raw(self) -> dict[str, Any]:
        with open(self._path, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"token store root must be an object, got {type(data).__name__}")
        return data

    def _read_records(self) -> dict[str, TokenRecord]:
        """Parse the store, skipping entries that do not validate."""
        records: dict[str, TokenRecord] = {}
        for account, entry in self._read_raw().items():
            try:
                records[account] = TokenRecord.model_validate(entry)
            except ValidationError as exc:
                _logger.warning("Dropping malformed token store entry %s: %s", account, exc.errors()[0]["msg"])
        return records

    def lookup(self, account: str) -> CachedToken | None:
        """Return the decrypted token stored for *account*, or ``None``.

        Never raises: unreadable, unparseable or foreign-keyed stores are
        logged and treated as a cache miss.
        """
        try:
            raw = self._read_raw()
        except FileNotFoundError:
            _logger.debug("No token store at %s", self._path)
            return None
        except (OSError, ValueError) as exc:
            _logger.warning("Could not read token store %s: %s", self._path, exc)
            return None

        entry = raw.get(account)
        if entry is None:
            _logger.debug("Token not found for %s", account)
            return None

        try:
            record = TokenRecord.model_validate(entry)
        except ValidationError as exc:
            _logger.warning("Malformed token store entry for %s: %s", account, exc.errors()[0]["msg"])
            return None

        try:
            plaintext = decrypt(self._key, record.blob, legacy_base64=self._legacy_base64)
            token = plaintext.decode("utf-8")
        except (SeafileCryptoError, UnicodeDecodeError) as exc:
            _logger.warning("Could not decrypt cached token for %s: %s", account, exc)
            return None
        if not _looks_like_token(token):
            _logger.warning("Could not decrypt cached token for %s: wrong password?", account)
            return None

        return CachedToken(token=token, timestamp=record.timestamp)

    def store(self, account: str, token: str, expiry: float) -> bool:
        """Insert (or, with an empty *token*, delete) the entry for *account*.

        Entries older than *expiry* seconds are purged first when
        ``expiry > 0``. The whole file is rewritten. Returns ``False`` and
        logs when the store could not be updated.
        """
        try:
            self._store(account, token, expiry)
        except (OSError, ValueError, SeafileCryptoError) as exc:
            _logger.warning("Could not update token store %s: %s", self._path, exc)
            return False
        return True

    def delete(self, account: str, expiry: float = 0) -> bool:
        return self.store(account, "", expiry)

    def _store(self, account: str, token: str, expiry: float) -> None:
        self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        try:
            records = self._read_records()
        except FileNotFoundError:
            records = {}

        now = self._clock()
        if expiry > 0:
            limit = timedelta(seconds=expiry)
            for key in [k for k, rec in records.items() if rec.age(now) > limit]:
                _logger.debug("Removing expired token entry %s", key)
                del records[key]

        if token:
            blob = encrypt(self._key, token.encode("utf-8"), legacy_base64=self._legacy_base64)
            records[account] = TokenRecord(blob=blob, timestamp=now)
            _logger.debug("Stored token %s for %s", token_fingerprint(token), account)
        elif records.pop(account, None) is not None:
            _logger.debug("Removed token entry %s", account)

        payload = {key: rec.model_dump(mode="json", by_alias=True) for key, rec in records.items()}
        self._write(json.dumps(payload, indent=2, sort_keys=True))

    def _write(self, content: str) -> None:
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)

from __future__ import annotations

import base64
import json
import stat
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pyseafile._crypto import derive_key, encrypt
from pyseafile._token_store import CachedToken, TokenStore


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _store(tmp_path: Path, password: str = "secret", clock: _Clock | None = None) -> TokenStore:
    return TokenStore(tmp_path / "goseafile" / "tokens.json", password, clock=clock)


def test_store_then_lookup_returns_token_and_timestamp(tmp_path: Path) -> None:
    clock = _Clock()
    store = _store(tmp_path, clock=clock)

    assert store.store("acct", "tok-123", 1800) is True
    cached = store.lookup("acct")

    assert cached is not None
    assert cached.token == "tok-123"
    assert cached.timestamp == clock.now


def test_file_uses_token_and_timestamp_keys(tmp_path: Path) -> None:
    store = _store(tmp_path, clock=_Clock())
    store.store("acct", "tok-123", 0)

    data = json.loads(store.path.read_text())
    assert set(data) == {"acct"}
    assert set(data["acct"]) == {"Token", "TimeStamp"}
    assert "tok-123" not in store.path.read_text()
    base64.b64decode(data["acct"]["Token"], validate=True)
    datetime.fromisoformat(data["acct"]["TimeStamp"])


def test_store_creates_private_directory_and_file(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.store("acct", "tok", 0)

    assert stat.S_IMODE(store.path.stat().st_mode) == 0o600
    assert stat.S_IMODE(store.path.parent.stat().st_mode) & 0o077 == 0


def test_lookup_missing_file_is_a_miss(tmp_path: Path) -> None:
    assert _store(tmp_path).lookup("acct") is None


def test_lookup_unknown_account_is_a_miss(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.store("acct", "tok", 0)
    assert store.lookup("other") is None


def test_lookup_with_wrong_password_is_a_miss(tmp_path: Path) -> None:
    _store(tmp_path, password="secret").store("acct", "a-reasonably-long-api-token-0123456789", 0)
    assert _store(tmp_path, password="not-the-password").lookup("acct") is None


def test_store_purges_expired_entries(tmp_path: Path) -> None:
    clock = _Clock()
    store = _store(tmp_path, clock=clock)
    store.store("old", "tok-old", 1800)

    clock.advance(3600)
    store.store("new", "tok-new", 1800)

    data = json.loads(store.path.read_text())
    assert set(data) == {"new"}


def test_zero_expiry_keeps_old_entries(tmp_path: Path) -> None:
    clock = _Clock()
    store = _store(tmp_path, clock=clock)
    store.store("old", "tok-old", 0)

    clock.advance(10 * 86400)
    store.store("new", "tok-new", 0)

    assert set(json.loads(store.path.read_text())) == {"old", "new"}


def test_delete_removes_entry(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.store("acct", "tok", 0)
    store.store("keep", "tok2", 0)

    assert store.delete("acct") is True

    assert store.lookup("acct") is None
    assert store.lookup("keep") is not None


def test_corrupt_file_is_a_miss_and_not_overwritten(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{not json")

    assert store.lookup("acct") is None
    assert store.store("acct", "tok", 0) is False
    assert store.path.read_text() == "{not json"


def test_reads_entries_written_with_nanosecond_timestamps(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.parent.mkdir(parents=True)
    blob = encrypt(derive_key("secret"), b"tok-ns")
    store.path.write_text(
        json.dumps(
            {
                "acct": {
                    "Token": base64.b64encode(blob).decode(),
                    "TimeStamp": "2026-01-01T12:00:00.123456789Z",
                }
            }
        )
    )

    cached = store.lookup("acct")

    assert cached is not None
    assert cached.token == "tok-ns"
    assert cached.timestamp == datetime(2026, 1, 1, 12, 0, 0, 123456, tzinfo=UTC)


def test_cached_token_freshness() -> None:
    stored = datetime(2026, 1, 1, tzinfo=UTC)
    cached = CachedToken(token="tok", timestamp=stored)

    assert cached.is_fresh(1800, stored + timedelta(seconds=60)) is True
    assert cached.is_fresh(1800, stored + timedelta(seconds=1801)) is False
    assert cached.is_fresh(0, stored + timedelta(days=365)) is True

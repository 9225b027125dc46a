from __future__ import annotations

from pathlib import Path

import pytest
from fake_seafile import PASSWORD, USERNAME, FakeSeafile, running

from pyseafile import (
    SeafileClient,
    SeafileConfig,
    SeafileError,
    SeafileLibraryNotFoundError,
    SeafileLoginError,
    TokenStore,
)
from pyseafile._crypto import account_id


def _config(url: str, tmp_path: Path, **kwargs: object) -> SeafileConfig:
    values: dict[str, object] = {
        "url": url,
        "username": USERNAME,
        "password": PASSWORD,
        "token_store_path": tmp_path / "tokens.json",
    }
    values.update(kwargs)
    return SeafileConfig(**values)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_client_requires_context_manager(tmp_path: Path) -> None:
    client = SeafileClient(_config("https://cloud.example.com", tmp_path))
    with pytest.raises(SeafileError):
        await client.list_libraries()


@pytest.mark.asyncio
async def test_list_libraries_logs_in_lazily_and_caches_token(tmp_path: Path) -> None:
    fake = FakeSeafile()

    async with running(fake) as url, SeafileClient(_config(url, tmp_path)) as client:
        libraries = await client.list_libraries()
        token = client.session.token

    assert [lib.name for lib in libraries] == ["My Library", "Photos"]
    assert fake.login_count == 1
    assert ("GET", "/api2/ping/") in fake.requests

    store = TokenStore(tmp_path / "tokens.json", PASSWORD)
    cached = store.lookup(account_id(f"{url}/api2", USERNAME))
    assert cached is not None
    assert cached.token == token


@pytest.mark.asyncio
async def test_second_client_reuses_cached_token(tmp_path: Path) -> None:
    fake = FakeSeafile()

    async with running(fake) as url:
        async with SeafileClient(_config(url, tmp_path)) as client:
            await client.ensure_authenticated()
        async with SeafileClient(_config(url, tmp_path)) as client:
            await client.ensure_authenticated()
            libraries = await client.list_libraries()

    assert len(libraries) == 2
    assert fake.login_count == 1


@pytest.mark.asyncio
async def test_token_cache_can_be_disabled(tmp_path: Path) -> None:
    fake = FakeSeafile()

    async with running(fake) as url, SeafileClient(_config(url, tmp_path, token_cache_enabled=False)) as client:
        await client.list_libraries()

    assert fake.login_count == 1
    assert not (tmp_path / "tokens.json").exists()


@pytest.mark.asyncio
async def test_server_side_token_expiry_is_recovered(tmp_path: Path) -> None:
    fake = FakeSeafile()

    async with running(fake) as url, SeafileClient(_config(url, tmp_path)) as client:
        await client.list_libraries()
        fake.valid_tokens.clear()
        libraries = await client.list_libraries()
        token = client.session.token

    assert len(libraries) == 2
    assert fake.login_count == 2
    cached = TokenStore(tmp_path / "tokens.json", PASSWORD).lookup(account_id(f"{url}/api2", USERNAME))
    assert cached is not None
    assert cached.token == token


@pytest.mark.asyncio
async def test_wrong_password_raises_login_error(tmp_path: Path) -> None:
    fake = FakeSeafile()

    async with running(fake) as url, SeafileClient(_config(url, tmp_path, password="wrong")) as client:
        with pytest.raises(SeafileLoginError):
            await client.list_libraries()


@pytest.mark.asyncio
async def test_explicit_token_skips_login(tmp_path: Path) -> None:
    fake = FakeSeafile()
    token = fake.issue_token()

    async with running(fake) as url, SeafileClient(_config(url, tmp_path, password="", token=token)) as client:
        libraries = await client.list_libraries()

    assert len(libraries) == 2
    assert fake.login_count == 0


@pytest.mark.asyncio
async def test_get_library_not_found_names_the_library(tmp_path: Path) -> None:
    fake = FakeSeafile()

    async with running(fake) as url, SeafileClient(_config(url, tmp_path)) as client:
        with pytest.raises(SeafileLibraryNotFoundError, match="could not find library 'Nope'") as excinfo:
            await client.get_library("Nope")

    assert excinfo.value.name == "Nope"


@pytest.mark.asyncio
async def test_library_operations(tmp_path: Path) -> None:
    fake = FakeSeafile()

    async with running(fake) as url, SeafileClient(_config(url, tmp_path)) as client:
        library = await client.get_library("Photos")
        root = await library.list()
        sub = await library.list("/docs")
        owner = await library.owner()
        refreshed = await library.refresh()

    assert library.id == "lib-2"
    assert [entry.name for entry in root] == ["docs", "a.txt"]
    assert root[0].is_dir
    assert len(sub) == 2
    assert fake.dir_params == ["", "/docs"]
    assert owner == "other@example.com"
    assert refreshed.id == "lib-2"
    assert refreshed.name == "Photos"


@pytest.mark.asyncio
async def test_login_switches_account(tmp_path: Path) -> None:
    fake = FakeSeafile()

    async with running(fake) as url, SeafileClient(_config(url, tmp_path, username="", password="")) as client:
        assert await client.ping() is True
        await client.login(USERNAME, PASSWORD)
        assert client.session.username == USERNAME
        assert client.session.authenticated

    assert fake.login_count == 1
    cached = TokenStore(tmp_path / "tokens.json", PASSWORD).lookup(account_id(f"{url}/api2", USERNAME))
    assert cached is not None

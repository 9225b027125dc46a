"""Client configuration for pyseafile."""

from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path
from typing import Any

from pyseafile._constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_LIBRARY,
    DEFAULT_PROGRESS_HISTORY,
    DEFAULT_PROGRESS_QUEUE_SIZE,
    DEFAULT_TOKEN_MAX_AGE,
    TOKEN_STORE_DIRNAME,
    TOKEN_STORE_FILENAME,
)
from pyseafile.exceptions import SeafileConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def default_token_store_path() -> Path:
    """Per-user location of the token cache.

    ``$XDG_CONFIG_HOME/goseafile/tokens.json`` when the variable is set,
    ``~/.config/goseafile/tokens.json`` otherwise.
    """
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / TOKEN_STORE_DIRNAME / TOKEN_STORE_FILENAME


@dataclasses.dataclass(frozen=True)
class SeafileConfig:
    """Client configuration.

    Parameters
    ----------
    url : str
        Seafile server URL. The ``/api2`` suffix is appended when missing.
    username : str
        Account user name (usually an email address).
    password : str
        Account password. Used for password login and to derive the
        token-store encryption key. May be empty when ``token`` is given.
    token : str
        Pre-obtained API token. Tried before the token store.
    library : str
        Name of the library CLI commands operate on.
    token_max_age : float
        Seconds a cached token is trusted. Older entries are ignored and
        purged on the next token-store write. ``0`` disables purging.
    token_store_path : Path or None
        Token cache location. ``None`` selects
        :func:`default_token_store_path`.
    token_cache_enabled : bool
        Read and write the token cache at all.
    legacy_base64_tokens : bool
        Base64-wrap token plaintext before encryption, matching token
        files written by earlier Seafile command line tools.
    chunk_size : int
        Upload copy buffer size in bytes.
    progress_history : int
        Number of chunk boundaries in the recent-speed window.
    progress_queue_size : int
        Snapshots a progress feed buffers before dropping samples.
    request_timeout : float or None
        Total timeout per HTTP request in seconds. ``None`` keeps the
        aiohttp default.
    """

    url: str = ""
    username: str = ""
    password: str = ""
    token: str = ""
    library: str = DEFAULT_LIBRARY
    token_max_age: float = DEFAULT_TOKEN_MAX_AGE
    token_store_path: Path | None = None
    token_cache_enabled: bool = True
    legacy_base64_tokens: bool = True
    chunk_size: int = DEFAULT_CHUNK_SIZE
    progress_history: int = DEFAULT_PROGRESS_HISTORY
    progress_queue_size: int = DEFAULT_PROGRESS_QUEUE_SIZE
    request_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise SeafileConfigError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.progress_history < 1:
            raise SeafileConfigError(f"progress_history must be at least 1, got {self.progress_history}")
        if self.progress_queue_size < 1:
            raise SeafileConfigError(f"progress_queue_size must be at least 1, got {self.progress_queue_size}")
        if self.token_max_age < 0:
            raise SeafileConfigError(f"token_max_age must not be negative, got {self.token_max_age}")

    @property
    def resolved_token_store_path(self) -> Path:
        if self.token_store_path is not None:
            return Path(self.token_store_path)
        return default_token_store_path()

    @classmethod
    def from_env(cls, **overrides: Any) -> SeafileConfig:
        """Create configuration from ``SEAFILE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "SEAFILE_URL": "url",
            "SEAFILE_USER": "username",
            "SEAFILE_PASSWORD": "password",
            "SEAFILE_TOKEN": "token",
            "SEAFILE_LIBRARY": "library",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        max_age_env = env.get("SEAFILE_TOKEN_MAX_AGE")
        if max_age_env is not None and "token_max_age" not in overrides:
            config_kwargs["token_max_age"] = _parse_float(max_age_env, "SEAFILE_TOKEN_MAX_AGE")

        store_env = env.get("SEAFILE_TOKEN_STORE")
        if store_env and "token_store_path" not in overrides:
            config_kwargs["token_store_path"] = Path(store_env).expanduser()

        if "token_cache_enabled" not in overrides:
            config_kwargs["token_cache_enabled"] = _env_bool(env.get("SEAFILE_TOKEN_CACHE"), True)

        timeout_env = env.get("SEAFILE_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = _parse_float(timeout_env, "SEAFILE_REQUEST_TIMEOUT")

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

    @classmethod
    def from_json_file(cls, path: str | os.PathLike[str], **overrides: Any) -> SeafileConfig:
        """Load a JSON config file with ``Url``/``User``/``Password``/``Library`` keys.

        Empty values in the file are ignored. Explicit keyword arguments
        that are not empty take precedence over the file.
        """
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except OSError as exc:
            raise SeafileConfigError(f"Could not read config file {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise SeafileConfigError(f"Could not decode JSON in config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise SeafileConfigError(f"Config file {path} must contain a JSON object")

        _FILE_CONFIG_MAP = {
            "Url": "url",
            "User": "username",
            "Password": "password",
            "Library": "library",
        }
        config_kwargs: dict[str, Any] = {}
        for file_key, field_name in _FILE_CONFIG_MAP.items():
            val = data.get(file_key)
            if isinstance(val, str) and val:
                config_kwargs[field_name] = val

        config_kwargs.update({k: v for k, v in overrides.items() if v not in (None, "")})
        return cls(**config_kwargs)


def _parse_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise SeafileConfigError(f"{name} must be a number, got {value!r}") from exc

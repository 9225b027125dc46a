"""``pyseafile`` command line tool.

Usage
-----
::

    pyseafile --url https://cloud.example.com --user me@example.com \\
        --password secret listlibs
    pyseafile --conf seafile.json --lib Photos list /2024
    pyseafile --conf seafile.json upload holiday.jpg /2024/

Connection settings come from the ``--conf`` JSON file when given, from
``SEAFILE_*`` environment variables otherwise. Non-empty command line flags
override either source.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import posixpath
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, TextIO

from pyseafile._progress import ProgressFeed
from pyseafile.client import SeafileClient
from pyseafile.config import SeafileConfig
from pyseafile.exceptions import SeafileConfigError, SeafileError
from pyseafile.models.progress import TransferProgress

_logger = logging.getLogger(__name__)

_IEC_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")


def format_size(nbytes: float) -> str:
    """Human-readable IEC size, e.g. ``1.50 MiB``."""
    value = float(nbytes)
    for unit in _IEC_UNITS:
        if abs(value) < 1024 or unit == _IEC_UNITS[-1]:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} {_IEC_UNITS[-1]}"


def format_duration(duration: timedelta | None) -> str:
    if duration is None:
        return "unknown"
    seconds = int(duration.total_seconds())
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


def remote_target(local: str, remote: str | None) -> str:
    """Remote path for ``upload``: a trailing ``/`` appends the local file name."""
    name = Path(local).name
    if not remote:
        return "/" + name
    target = "/" + remote.lstrip("/")
    if target.endswith("/"):
        target += name
    return posixpath.normpath(target)


async def show_progress(feed: ProgressFeed, label: str, out: TextIO | None = None) -> None:
    """Render snapshots from *feed* on a single, self-overwriting line (stderr by default)."""
    if out is None:
        out = sys.stderr
    width = 0
    last: TransferProgress | None = None
    async for snap in feed:
        last = snap
        line = (
            f"[{snap.percent:.2f}%] {label} ({format_size(snap.transferred)}/{format_size(snap.total_size)}) "
            f"(Speed: {format_size(snap.speed)}/sec, AVG: {format_size(snap.speed_avg)}/sec) "
            f"(Remaining: {format_duration(snap.remaining)})"
        )
        width = max(width, len(line))
        out.write("\r" + line.ljust(width))
        out.flush()
    if last is None:
        return
    elapsed = datetime.now(UTC) - last.start_time
    out.write(
        "\r" + " " * width
        + f"\r[DONE] {label} (Size: {format_size(last.total_size)}, Time: {format_duration(elapsed)}, "
        f"Speed: {format_size(last.speed_avg)}/sec)\n"
    )
    out.flush()


async def cmd_listlibs(client: SeafileClient, args: argparse.Namespace) -> None:
    for library in await client.list_libraries():
        print(library.name)


async def cmd_list(client: SeafileClient, args: argparse.Namespace) -> None:
    library = await client.get_library(client.config.library)
    for entry in await library.list(args.path or ""):
        print(f"{entry.name}/" if entry.is_dir else entry.name)


async def cmd_upload(client: SeafileClient, args: argparse.Namespace) -> None:
    library = await client.get_library(client.config.library)
    target = remote_target(args.local, args.remote)
    _logger.info("Upload '%s' => '%s::%s'", args.local, library.name, target)

    feed = client.progress_feed()
    display = asyncio.create_task(show_progress(feed, f"{args.local} => {library.name}::{target}"))
    try:
        await library.upload_file(args.local, target, feed=feed)
    finally:
        await display


_COMMANDS = {
    "listlibs": cmd_listlibs,
    "list": cmd_list,
    "upload": cmd_upload,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pyseafile", description="Seafile command line client")
    parser.add_argument(
        "--conf",
        help="JSON file containing Url, User, Password and Library; non-empty flags override its values",
    )
    parser.add_argument("--url", help="the API endpoint")
    parser.add_argument("--user", help="the user")
    parser.add_argument("--password", help="the user's password")
    parser.add_argument("--token", help="a valid auth token")
    parser.add_argument("--lib", help="the library to work in (default: My Library)")
    parser.add_argument("--debug", action="store_true", help="Output warning and debug statements")
    parser.add_argument("--warn", action="store_true", help="Output warnings")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("listlibs", help="List the available libraries")
    list_parser = sub.add_parser("list", help="List a directory of the library")
    list_parser.add_argument("path", nargs="?", default="", help="directory inside the library")
    upload_parser = sub.add_parser("upload", help="Upload a local file")
    upload_parser.add_argument("local", help="source file")
    upload_parser.add_argument("remote", nargs="?", help="remote destination (trailing / keeps the name)")
    return parser


def load_config(args: argparse.Namespace) -> SeafileConfig:
    """Build the configuration from ``--conf`` or the environment, then the flags."""
    flags: dict[str, Any] = {
        "url": args.url,
        "username": args.user,
        "password": args.password,
        "token": args.token,
        "library": args.lib,
    }
    if args.conf:
        config = SeafileConfig.from_json_file(args.conf, **flags)
    else:
        config = SeafileConfig.from_env(**{k: v for k, v in flags.items() if v})
    if not config.url:
        raise SeafileConfigError("No Seafile API endpoint specified (use --url, --conf or SEAFILE_URL)")
    return config


async def run(args: argparse.Namespace) -> None:
    config = load_config(args)
    command = _COMMANDS[args.command or "listlibs"]
    async with SeafileClient(config) as client:
        await command(client, args)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.ERROR
    if args.warn:
        level = logging.WARNING
    if args.debug:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="[%(levelname)s] %(name)s: %(message)s")

    try:
        asyncio.run(run(args))
    except SeafileError as exc:
        _logger.error("Command %s returned an error: %s", args.command or "listlibs", exc)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())

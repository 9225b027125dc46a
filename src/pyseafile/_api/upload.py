"""Streaming multipart upload.

Endpoints:
  - GET /repos/{id}/upload-link/
  - POST <upload link>

The request body is never buffered. A producer task writes the multipart
envelope (built by :class:`aiohttp.FormData`) into a :class:`BytePipe`
whose read end is the body of the outgoing POST, so aiohttp pulls bytes
while the encoder pushes them. The file part is read in fixed-size chunks
and every chunk that made it through the pipe is reported to the progress
meter.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import os
import posixpath
from collections.abc import AsyncIterator
from pathlib import Path
from typing import IO, Any

import aiohttp

from pyseafile._api.libraries import repo_path
from pyseafile._constants import DEFAULT_CHUNK_SIZE, DEFAULT_PROGRESS_HISTORY
from pyseafile._pipe import BytePipe, PipeClosedError
from pyseafile._progress import ProgressCallback, ProgressFeed, ProgressReporter, TransferMeter
from pyseafile._redact import redact_url
from pyseafile._transport import Transport
from pyseafile.exceptions import SeafileTransportError, SeafileUploadError
from pyseafile.models.progress import TransferProgress

_logger = logging.getLogger(__name__)

FILE_FIELD = "file"


def split_target_path(target: str) -> tuple[str, str]:
    """Split a remote path into ``(parent_dir, filename)``.

    The path is normalised and made absolute: ``"a/b/../c.txt"`` becomes
    ``("/a", "c.txt")``, ``"c.txt"`` becomes ``("/", "c.txt")``.

    Raises
    ------
    ValueError
        If the path does not name a file.
    """
    stripped = target.strip()
    if stripped.endswith("/"):
        raise ValueError(f"target path {target!r} does not name a file")
    parent, name = posixpath.split(posixpath.normpath("/" + stripped.lstrip("/")))
    if not name or name in (".", ".."):
        raise ValueError(f"target path {target!r} does not name a file")
    return parent or "/", name


async def fetch_upload_link(transport: Transport, library_id: str) -> str:
    """Ask for a one-time upload URL for a library."""
    endpoint = repo_path(library_id, "upload-link/")
    decoded = await transport.request("GET", endpoint)
    if not isinstance(decoded, str) or not decoded.startswith(("http://", "https://")):
        raise SeafileTransportError(
            f"GET {endpoint} did not return an upload link",
            method="GET",
            endpoint=endpoint,
        )
    _logger.debug("Upload link for %s: %s", library_id, redact_url(decoded))
    return decoded


async def _read_chunk(source: Any, size: int) -> bytes:
    """Read up to *size* bytes from a sync file object or an async reader."""
    read = source.read
    if inspect.iscoroutinefunction(read):
        data = await read(size)
    else:
        data = await asyncio.to_thread(read, size)
    if isinstance(data, str):
        raise TypeError("upload source must be opened in binary mode")
    return bytes(data)


async def _source_chunks(source: Any, chunk_size: int, reporter: ProgressReporter) -> AsyncIterator[bytes]:
    """Yield source chunks; resuming after a yield means the chunk was written."""
    while True:
        chunk = await _read_chunk(source, chunk_size)
        if not chunk:
            return
        yield chunk
        reporter.chunk_written(len(chunk))


async def _produce_body(
    multipart: aiohttp.MultipartWriter,
    pipe: BytePipe,
    reporter: ProgressReporter,
) -> BaseException | None:
    """Write the whole multipart body into *pipe*; return the failure, if any."""
    error: BaseException | None = None
    written = False
    try:
        await multipart.write(pipe)
        written = True
    except Exception as exc:
        error = exc
        if not isinstance(exc, PipeClosedError):
            _logger.warning("Upload body aborted: %s", exc)
    finally:
        reporter.finish(completed=written)
        await pipe.close(error)
    return error


def build_upload_form(
    source_chunks: AsyncIterator[bytes],
    parent_dir: str,
    filename: str,
) -> aiohttp.MultipartWriter:
    """Multipart envelope: the file part first, then ``parent_dir`` and ``filename``."""
    form = aiohttp.FormData(quote_fields=False)
    form.add_field(FILE_FIELD, source_chunks, filename=filename, content_type="application/octet-stream")
    form.add_field("parent_dir", parent_dir)
    form.add_field("filename", filename)
    multipart = form()
    if not isinstance(multipart, aiohttp.MultipartWriter):
        raise TypeError("upload form did not produce a multipart body")
    return multipart


async def upload_stream(
    transport: Transport,
    library_id: str,
    source: IO[bytes] | Any,
    size: int,
    target: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    history: int = DEFAULT_PROGRESS_HISTORY,
    feed: ProgressFeed | None = None,
    on_progress: ProgressCallback | None = None,
) -> TransferProgress:
    """Upload *size* bytes from *source* to *target* inside a library.

    Parameters
    ----------
    source
        Binary file object, or any object whose ``read(n)`` is a coroutine.
    size
        Expected byte count, used for percentages and ETA (``0`` if unknown).
    target
        Remote path of the new file, e.g. ``"/docs/report.pdf"``.
    feed, on_progress
        Optional progress sinks. The feed is always closed when the call
        returns, successfully or not.

    Returns
    -------
    TransferProgress
        The final transfer statistics.

    Raises
    ------
    SeafileUploadError
        If the source could not be read, the body could not be sent, or the
        server did not answer with a 2xx status.
    """
    meter = TransferMeter(size, history=history)
    reporter = ProgressReporter(meter, feed=feed, callback=on_progress)
    try:
        parent_dir, filename = split_target_path(target)
        link = await fetch_upload_link(transport, library_id)
    except BaseException:
        reporter.finish(completed=False)
        raise

    multipart = build_upload_form(_source_chunks(source, chunk_size, reporter), parent_dir, filename)
    pipe = BytePipe()
    producer = asyncio.create_task(_produce_body(multipart, pipe, reporter))
    _logger.debug("Uploading %d bytes to %s/%s", size, parent_dir.rstrip("/"), filename)

    status: int | None = None
    text = ""
    request_error: Exception | None = None
    try:
        status, text = await transport.post_stream(link, pipe, multipart.content_type)
    except asyncio.CancelledError:
        producer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await producer
        raise
    except Exception as exc:
        request_error = exc
    finally:
        await pipe.close_reader()
    body_error = await producer

    if body_error is not None and not isinstance(body_error, PipeClosedError):
        raise SeafileUploadError(f"Upload of {target} failed while streaming: {body_error}") from body_error
    if request_error is not None:
        raise SeafileUploadError(f"Upload of {target} failed: {request_error}") from request_error
    if status is None or not 200 <= status < 300:
        raise SeafileUploadError(
            f"Upload of {target} failed: expected a 2xx status, got {status}: {text[:200]}",
            status_code=status,
        )
    if body_error is not None:
        raise SeafileUploadError(f"Upload of {target} failed while streaming: {body_error}") from body_error

    final = reporter.last or meter.snapshot()
    _logger.debug("Uploaded %s (%d bytes, %.0f B/s)", target, final.transferred, final.speed_avg)
    return final


async def upload_path(
    transport: Transport,
    library_id: str,
    local_path: str | os.PathLike[str],
    target: str,
    **kwargs: Any,
) -> TransferProgress:
    """Upload a local file, sizing it from the filesystem."""
    path = Path(local_path)
    try:
        fh = open(path, "rb")
    except OSError as exc:
        raise SeafileUploadError(f"Could not open {path}: {exc}") from exc
    with fh:
        size = os.fstat(fh.fileno()).st_size
        return await upload_stream(transport, library_id, fh, size, target, **kwargs)

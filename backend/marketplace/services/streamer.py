"""Ephemeral archive handling and the download streamer.

An ``EphemeralArchive`` is a uniquely-named temp file owned by exactly one
request. ``ArchiveStreamResponse`` streams it to the client and deletes it
exactly once, whether the transfer completes, fails, or the client goes away.
"""
import logging
import os
import re
import secrets
import time
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Optional, Union

import anyio
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from marketplace.errors import StreamingError

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".zip"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"

# <slug>-<timestamp>-<16 hex>.zip, as produced by EphemeralArchive.allocate
ARCHIVE_NAME = re.compile(r"^[a-z0-9-]+-\d{8}T\d{12}Z-[0-9a-f]{16}\.zip$")

STATE_CREATED = "created"
STATE_STREAMING = "streaming"
STATE_COMPLETED = "completed"
STATE_FAILED = "failed"
STATE_ABORTED = "aborted"


def sanitize_slug(slug: str) -> str:
    """Restrict a dataset slug to characters safe in file names and headers."""
    name = slug.lower().replace("_", "-").replace(" ", "-")
    name = re.sub(r"[^a-z0-9-]", "", name)
    name = name.strip("-")
    return name[:100] or "dataset"


class EphemeralArchive:
    """A temp archive that lives for a single download request."""

    def __init__(self, path: Path, filename: str):
        self.path = path
        self.filename = filename
        self._discarded = False

    @classmethod
    def allocate(cls, temp_dir: Union[str, os.PathLike], slug: str) -> "EphemeralArchive":
        """
        Reserve a collision-free path in ``temp_dir`` (the file itself is not created).

        The client-facing filename is ``<slug>-<timestamp>.zip``; the on-disk name
        adds a random suffix so concurrent requests for the same dataset never share
        a path.
        """
        directory = Path(temp_dir)
        directory.mkdir(parents=True, exist_ok=True)
        stem = f"{sanitize_slug(slug)}-{datetime.utcnow().strftime(TIMESTAMP_FORMAT)}"
        path = directory / f"{stem}-{secrets.token_hex(8)}{ARCHIVE_SUFFIX}"
        return cls(path=path, filename=f"{stem}{ARCHIVE_SUFFIX}")

    @property
    def discarded(self) -> bool:
        return self._discarded

    def discard(self) -> bool:
        """Delete the archive. Idempotent; returns True only on the call that removed it."""
        if self._discarded:
            return False
        self._discarded = True
        try:
            os.remove(self.path)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to delete temp archive {self.path.name}: {e}")
            return False
        logger.debug(f"Deleted temp archive {self.path.name}")
        return True

    def __repr__(self) -> str:
        return f"<EphemeralArchive(path={self.path}, discarded={self._discarded})>"


class ArchiveStreamResponse(Response):
    """
    Streams an ``EphemeralArchive`` and removes it on every terminal transition.

    State machine: created → streaming → completed | failed | aborted.
    A failure after the response start has been sent cannot become an error
    response; it is logged and re-raised as ``StreamingError`` so the server
    drops the connection.
    """

    media_type = "application/zip"

    def __init__(self, archive: EphemeralArchive, chunk_size: int = 64 * 1024):
        self.archive = archive
        self.chunk_size = chunk_size
        self.state = STATE_CREATED
        self.error: Optional[BaseException] = None
        self.status_code = 200
        self.background = None

        headers = {"content-disposition": f'attachment; filename="{archive.filename}"'}
        try:
            headers["content-length"] = str(archive.path.stat().st_size)
        except OSError:
            # Reported as a stream failure once the body is read
            pass
        self.init_headers(headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self.state = STATE_STREAMING
        try:
            async with anyio.create_task_group() as task_group:

                async def run_and_cancel(func):
                    await func()
                    task_group.cancel_scope.cancel()

                task_group.start_soon(run_and_cancel, partial(self._stream, send))
                await run_and_cancel(partial(self._listen_for_disconnect, receive))
        finally:
            if self.state == STATE_STREAMING:
                # Cancelled from outside (server shutdown, upstream disconnect)
                self.state = STATE_ABORTED
                logger.info(f"Download of {self.archive.filename} cancelled")
            self.archive.discard()

        if self.state == STATE_FAILED:
            raise StreamingError(diagnostics=str(self.error)) from self.error

    async def _listen_for_disconnect(self, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                if self.state == STATE_STREAMING:
                    self.state = STATE_ABORTED
                    logger.info(f"Client disconnected during download of {self.archive.filename}")
                break

    async def _stream(self, send: Send) -> None:
        try:
            await send({
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers,
            })
            async with await anyio.open_file(self.archive.path, mode="rb") as handle:
                more_body = True
                while more_body:
                    chunk = await handle.read(self.chunk_size)
                    more_body = len(chunk) == self.chunk_size
                    await send({
                        "type": "http.response.body",
                        "body": chunk,
                        "more_body": more_body,
                    })
                    if not more_body and self.state == STATE_STREAMING:
                        self.state = STATE_COMPLETED
        except Exception as e:
            if self.state == STATE_STREAMING:
                self.state = STATE_FAILED
                self.error = e
                logger.error(f"Streaming {self.archive.filename} failed after headers were sent: {e}")
            return

        if self.state == STATE_COMPLETED:
            logger.info(f"Download of {self.archive.filename} completed")


def stream_and_cleanup(archive: EphemeralArchive, chunk_size: int = 64 * 1024) -> ArchiveStreamResponse:
    """Build the response that streams ``archive`` and guarantees its deletion."""
    return ArchiveStreamResponse(archive, chunk_size=chunk_size)


def sweep_stale_archives(temp_dir: Union[str, os.PathLike], max_age_seconds: float) -> int:
    """
    Remove archives older than ``max_age_seconds`` from ``temp_dir``.

    Only orphans from a crashed process can be that old; live downloads delete
    their own file. Files whose names were not generated by
    ``EphemeralArchive.allocate`` are left alone. Returns the number of files
    removed.
    """
    directory = Path(temp_dir)
    if not directory.is_dir():
        return 0

    cutoff = time.time() - max_age_seconds
    removed = 0
    for entry in directory.glob(f"*{ARCHIVE_SUFFIX}"):
        if not ARCHIVE_NAME.match(entry.name):
            continue
        try:
            if entry.is_file() and entry.stat().st_mtime < cutoff:
                entry.unlink()
                removed += 1
        except FileNotFoundError:
            continue

    if removed:
        logger.warning(f"Removed {removed} orphaned archive(s) from {directory}")
    return removed

"""Tests for ephemeral archives and the cleanup-guaranteeing download stream."""
import asyncio
import os
import re
import time

import pytest

from marketplace.errors import StreamingError
from marketplace.services.streamer import (
    ArchiveStreamResponse,
    EphemeralArchive,
    STATE_ABORTED,
    STATE_COMPLETED,
    STATE_FAILED,
    sanitize_slug,
    stream_and_cleanup,
    sweep_stale_archives,
)

SCOPE = {"type": "http", "method": "GET", "path": "/api/download/x", "headers": []}


def make_archive(tmp_path, payload=b"PK\x03\x04" + b"x" * 1000, slug="global-markets"):
    archive = EphemeralArchive.allocate(tmp_path / "archives", slug)
    archive.path.write_bytes(payload)
    return archive


async def never_disconnect():
    await asyncio.sleep(3600)


def test_sanitize_slug():
    assert sanitize_slug("Global_Markets Q2") == "global-markets-q2"
    assert sanitize_slug("../../etc/passwd") == "etcpasswd"
    assert sanitize_slug("***") == "dataset"


def test_allocate_names_are_unique_and_timestamped(tmp_path):
    first = EphemeralArchive.allocate(tmp_path, "global-markets")
    second = EphemeralArchive.allocate(tmp_path, "global-markets")

    assert first.path != second.path
    assert re.match(r"^global-markets-\d{8}T\d{12}Z\.zip$", first.filename)
    assert first.path.parent == tmp_path
    assert not first.path.exists()


def test_discard_is_idempotent(tmp_path):
    archive = make_archive(tmp_path)

    assert archive.discard() is True
    assert archive.discard() is False
    assert archive.discarded
    assert not archive.path.exists()


def test_response_headers(tmp_path):
    archive = make_archive(tmp_path, payload=b"z" * 10)
    response = stream_and_cleanup(archive)

    assert response.headers["content-type"] == "application/zip"
    assert response.headers["content-length"] == "10"
    assert response.headers["content-disposition"] == f'attachment; filename="{archive.filename}"'
    archive.discard()


@pytest.mark.asyncio
async def test_completed_stream_sends_file_and_deletes_it(tmp_path):
    payload = os.urandom(200_000)
    archive = make_archive(tmp_path, payload=payload)
    response = ArchiveStreamResponse(archive, chunk_size=64 * 1024)
    messages = []

    async def send(message):
        messages.append(message)

    await response(SCOPE, never_disconnect, send)

    assert messages[0]["type"] == "http.response.start"
    assert messages[0]["status"] == 200
    body = b"".join(m["body"] for m in messages[1:])
    assert body == payload
    assert messages[-1]["more_body"] is False
    assert response.state == STATE_COMPLETED
    assert not archive.path.exists()


@pytest.mark.asyncio
async def test_exact_multiple_of_chunk_size_completes(tmp_path):
    archive = make_archive(tmp_path, payload=b"a" * 1024)
    response = ArchiveStreamResponse(archive, chunk_size=512)
    chunks = []

    async def send(message):
        if message["type"] == "http.response.body":
            chunks.append(message["body"])

    await response(SCOPE, never_disconnect, send)

    assert b"".join(chunks) == b"a" * 1024
    assert response.state == STATE_COMPLETED
    assert not archive.path.exists()


@pytest.mark.asyncio
async def test_client_disconnect_aborts_and_deletes(tmp_path):
    archive = make_archive(tmp_path, payload=b"x" * 100_000)
    response = ArchiveStreamResponse(archive, chunk_size=1024)
    sent_chunks = 0

    async def receive():
        await asyncio.sleep(0.05)
        return {"type": "http.disconnect"}

    async def slow_send(message):
        nonlocal sent_chunks
        if message["type"] == "http.response.body":
            sent_chunks += 1
        await asyncio.sleep(0.01)

    await response(SCOPE, receive, slow_send)

    assert response.state == STATE_ABORTED
    assert sent_chunks < 100
    assert not archive.path.exists()


@pytest.mark.asyncio
async def test_send_failure_mid_stream_raises_and_deletes(tmp_path):
    archive = make_archive(tmp_path, payload=b"x" * 10_000)
    response = ArchiveStreamResponse(archive, chunk_size=1024)
    bodies = 0

    async def broken_send(message):
        nonlocal bodies
        if message["type"] == "http.response.body":
            bodies += 1
            if bodies == 3:
                raise OSError("connection reset by peer")

    with pytest.raises(StreamingError):
        await response(SCOPE, never_disconnect, broken_send)

    assert response.state == STATE_FAILED
    assert not archive.path.exists()


@pytest.mark.asyncio
async def test_unreadable_archive_fails_after_headers(tmp_path):
    archive = make_archive(tmp_path)
    response = ArchiveStreamResponse(archive)
    os.remove(archive.path)
    messages = []

    async def send(message):
        messages.append(message)

    with pytest.raises(StreamingError):
        await response(SCOPE, never_disconnect, send)

    assert messages[0]["type"] == "http.response.start"
    assert response.state == STATE_FAILED


@pytest.mark.asyncio
async def test_cancellation_from_server_deletes_archive(tmp_path):
    archive = make_archive(tmp_path, payload=b"x" * 100_000)
    response = ArchiveStreamResponse(archive, chunk_size=1024)

    async def slow_send(message):
        await asyncio.sleep(0.05)

    task = asyncio.ensure_future(response(SCOPE, never_disconnect, slow_send))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert response.state == STATE_ABORTED
    assert not archive.path.exists()


@pytest.mark.asyncio
async def test_concurrent_streams_use_distinct_files(tmp_path):
    archives = [make_archive(tmp_path, payload=f"archive-{i}".encode()) for i in range(10)]
    assert len({a.path for a in archives}) == 10

    results = {}

    async def run(archive):
        chunks = []

        async def send(message):
            if message["type"] == "http.response.body":
                chunks.append(message["body"])

        await ArchiveStreamResponse(archive)(SCOPE, never_disconnect, send)
        results[archive.path] = b"".join(chunks)

    await asyncio.gather(*(run(a) for a in archives))

    for i, archive in enumerate(archives):
        assert results[archive.path] == f"archive-{i}".encode()
        assert not archive.path.exists()
    assert list((tmp_path / "archives").iterdir()) == []


def test_sweep_removes_only_stale_archives(tmp_path):
    temp_dir = tmp_path / "archives"
    temp_dir.mkdir()
    stale = temp_dir / "old-20250101T000000000000Z-00112233aabbccdd.zip"
    fresh = temp_dir / "new-20250101T000000000000Z-8899aabbccddeeff.zip"
    other = temp_dir / "notes.txt"
    for path in (stale, fresh, other):
        path.write_bytes(b"x")
    old = time.time() - 7200
    os.utime(stale, (old, old))
    os.utime(other, (old, old))

    assert sweep_stale_archives(temp_dir, max_age_seconds=3600) == 1
    assert not stale.exists()
    assert fresh.exists()
    assert other.exists()


def test_sweep_leaves_foreign_zip_files_alone(tmp_path):
    shared = tmp_path / "shared"
    shared.mkdir()
    foreign = [shared / "backup.zip", shared / "report-2025.zip", shared / "x-20250101T000000000000Z.zip"]
    ours = EphemeralArchive.allocate(shared, "global-markets")
    for path in (*foreign, ours.path):
        path.write_bytes(b"x")
        old = time.time() - 7200
        os.utime(path, (old, old))

    assert sweep_stale_archives(shared, max_age_seconds=3600) == 1
    assert not ours.path.exists()
    assert all(path.exists() for path in foreign)


def test_sweep_missing_directory(tmp_path):
    assert sweep_stale_archives(tmp_path / "missing", max_age_seconds=60) == 0

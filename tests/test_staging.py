from __future__ import annotations

import asyncio

import pytest

from tests.conftest import BytesStream, directory_entries
from tubely.media import staging
from tubely.media.staging import STAGING_PREFIX, scoped_file, staged_upload
from tubely.services.errors import StagingFailed, UploadTooLarge


def test_staged_upload_writes_and_removes_file(tmp_path):
    staging_dir = tmp_path / "staging"
    payload = b"x" * 5000
    seen = {}

    async def run():
        async with staged_upload(BytesStream(payload), staging_dir=staging_dir, max_bytes=10_000, chunk_size=1024) as staged:
            seen["path"] = staged.path
            assert staged.size_bytes == len(payload)
            assert staged.path.read_bytes() == payload
            assert staged.path.parent == staging_dir
            assert staged.path.name.startswith(STAGING_PREFIX)
            assert staged.path.suffix == ".mp4"

    asyncio.run(run())
    assert not seen["path"].exists()
    assert directory_entries(staging_dir) == []


def test_staged_upload_accepts_exactly_max_bytes(tmp_path):
    async def run():
        async with staged_upload(BytesStream(b"a" * 64), staging_dir=tmp_path, max_bytes=64, chunk_size=16) as staged:
            return staged.size_bytes

    assert asyncio.run(run()) == 64


def test_staged_upload_rejects_oversized_stream(tmp_path):
    staging_dir = tmp_path / "staging"

    async def run():
        async with staged_upload(BytesStream(b"a" * 65), staging_dir=staging_dir, max_bytes=64, chunk_size=16):
            pytest.fail("an oversized upload must not reach the block")

    with pytest.raises(UploadTooLarge):
        asyncio.run(run())
    assert directory_entries(staging_dir) == []


def test_staged_upload_removes_file_when_block_raises(tmp_path):
    class Boom(Exception):
        pass

    async def run():
        async with staged_upload(BytesStream(b"payload"), staging_dir=tmp_path, max_bytes=1024):
            raise Boom()

    with pytest.raises(Boom):
        asyncio.run(run())
    assert directory_entries(tmp_path) == []


def test_staged_upload_reports_create_failure(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("occupied")

    async def run():
        async with staged_upload(BytesStream(b"payload"), staging_dir=blocker, max_bytes=1024):
            pytest.fail("staging must fail before the block runs")

    with pytest.raises(StagingFailed) as excinfo:
        asyncio.run(run())
    assert excinfo.value.message == "File create error"


def test_scoped_file_removes_path_on_error(tmp_path):
    target = tmp_path / "upload.mp4.processing"
    target.write_bytes(b"data")

    with pytest.raises(RuntimeError):
        with scoped_file(target):
            raise RuntimeError("downstream failure")
    assert not target.exists()


def test_scoped_file_tolerates_missing_path(tmp_path):
    with scoped_file(tmp_path / "never-written.mp4") as path:
        assert not path.exists()


def test_staged_upload_runs_file_io_in_worker_threads(tmp_path, monkeypatch):
    offloaded = []
    to_thread = asyncio.to_thread

    async def recording_to_thread(func, /, *args, **kwargs):
        offloaded.append(getattr(func, "__name__", repr(func)))
        return await to_thread(func, *args, **kwargs)

    monkeypatch.setattr(staging.asyncio, "to_thread", recording_to_thread)

    async def run():
        async with staged_upload(BytesStream(b"z" * 3000), staging_dir=tmp_path, max_bytes=10_000, chunk_size=1024):
            pass

    asyncio.run(run())
    assert offloaded == ["_create_staging_file", "open", "write", "write", "write", "close", "_remove"]

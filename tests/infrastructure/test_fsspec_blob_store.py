"""Tests for the fsspec blob store."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from domain.exceptions import NotFoundError, StorageError
from domain.value_objects.bucket import Bucket
from infrastructure.blob_stores.fsspec_blob_store import FsspecBlobStore
from tests.mocks import read_all


async def _chunks(*parts: bytes):  # type: ignore[no-untyped-def]
    for part in parts:
        yield part


async def _failing_chunks(exc: BaseException):  # type: ignore[no-untyped-def]
    yield b"first chunk"
    raise exc


async def _stalled_chunks():  # type: ignore[no-untyped-def]
    yield b"first chunk"
    await asyncio.sleep(10)
    yield b"never"


def _leftovers(store: FsspecBlobStore, bucket: Bucket) -> list[str]:
    root = store._path(bucket)  # noqa: SLF001
    if not store.fs.exists(root):
        return []
    return [path for path in store.fs.find(root) if not path.endswith(".json")]


class TestFsspecBlobStoreWrites:
    @pytest.mark.asyncio
    async def test_put_stream_commits_object(self, blob_store) -> None:
        stored = await blob_store.put_stream(
            Bucket.ORIGINALS,
            _chunks(b"abc", b"def"),
            extension="jpg",
            metadata={"content_type": "image/jpeg"},
        )

        assert stored.filename == f"{stored.id}.jpg"
        assert stored.size_bytes == 6
        assert stored.content_type == "image/jpeg"

        found = await blob_store.find_by_id(Bucket.ORIGINALS, stored.id)
        assert found.filename == stored.filename
        assert found.size_bytes == 6
        assert found.uploaded_at is not None

    @pytest.mark.asyncio
    async def test_put_stream_without_extension(self, blob_store) -> None:
        stored = await blob_store.put_stream(Bucket.DERIVED, _chunks(b"x"))

        assert stored.filename == stored.id

    @pytest.mark.asyncio
    async def test_failed_write_leaves_nothing_behind(self, blob_store) -> None:
        with pytest.raises(RuntimeError, match="client went away"):
            await blob_store.put_stream(
                Bucket.ORIGINALS,
                _failing_chunks(RuntimeError("client went away")),
                extension="jpg",
                metadata={"owner_ref": "x"},
            )

        assert _leftovers(blob_store, Bucket.ORIGINALS) == []
        assert await blob_store.find_one_by_metadata(Bucket.ORIGINALS, "owner_ref", "x") is None

    @pytest.mark.asyncio
    async def test_io_error_maps_to_storage_error(self, blob_store) -> None:
        with pytest.raises(StorageError):
            await blob_store.put_stream(
                Bucket.ORIGINALS,
                _failing_chunks(OSError("disk full")),
                extension="jpg",
            )

        assert _leftovers(blob_store, Bucket.ORIGINALS) == []

    @pytest.mark.asyncio
    async def test_cancelled_write_leaves_nothing_behind(self, blob_store) -> None:
        task = asyncio.create_task(
            blob_store.put_stream(Bucket.ORIGINALS, _stalled_chunks(), extension="jpg"),
        )
        await asyncio.sleep(0.1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert _leftovers(blob_store, Bucket.ORIGINALS) == []

    @pytest.mark.asyncio
    async def test_memory_backend(self) -> None:
        store = FsspecBlobStore(f"memory://photo-store-{uuid4().hex}")

        stored = await store.put_stream(Bucket.ORIGINALS, _chunks(b"in memory"), extension="png")
        download = await store.open_download_by_name(Bucket.ORIGINALS, stored.filename)

        assert await read_all(download) == b"in memory"


class TestFsspecBlobStoreReads:
    @pytest.mark.asyncio
    async def test_download_streams_in_chunks(self, tmp_path) -> None:
        store = FsspecBlobStore(tmp_path.as_uri(), chunk_size=4)
        stored = await store.put_stream(Bucket.ORIGINALS, _chunks(b"0123456789"), extension="jpg")

        download = await store.open_download_by_id(Bucket.ORIGINALS, stored.id)
        chunks = [chunk async for chunk in download.chunks]

        assert chunks == [b"0123", b"4567", b"89"]

    @pytest.mark.asyncio
    async def test_download_opens_file_only_when_iterated(self, blob_store, monkeypatch) -> None:
        stored = await blob_store.put_stream(Bucket.ORIGINALS, _chunks(b"abc"), extension="jpg")
        opened: list[str] = []
        real_open = blob_store.fs.open

        def tracking_open(path, mode="rb", **kwargs):  # type: ignore[no-untyped-def]
            if mode == "rb":
                opened.append(path)
            return real_open(path, mode, **kwargs)

        monkeypatch.setattr(blob_store.fs, "open", tracking_open)

        unread = await blob_store.open_download_by_id(Bucket.ORIGINALS, stored.id)
        await unread.chunks.aclose()
        assert opened == []

        download = await blob_store.open_download_by_id(Bucket.ORIGINALS, stored.id)
        assert await read_all(download) == b"abc"
        assert len(opened) == 1

    @pytest.mark.asyncio
    async def test_data_removed_after_open_is_storage_error(self, blob_store) -> None:
        stored = await blob_store.put_stream(Bucket.ORIGINALS, _chunks(b"abc"), extension="jpg")
        download = await blob_store.open_download_by_id(Bucket.ORIGINALS, stored.id)

        blob_store.fs.rm(blob_store._path(Bucket.ORIGINALS, stored.filename))  # noqa: SLF001

        with pytest.raises(StorageError):
            await read_all(download)
        with pytest.raises(NotFoundError):
            await blob_store.open_download_by_id(Bucket.ORIGINALS, stored.id)

    @pytest.mark.asyncio
    async def test_download_by_name_requires_exact_filename(self, blob_store) -> None:
        stored = await blob_store.put_stream(Bucket.ORIGINALS, _chunks(b"x"), extension="jpg")

        with pytest.raises(NotFoundError):
            await blob_store.open_download_by_name(Bucket.ORIGINALS, f"{stored.id}.png")
        with pytest.raises(NotFoundError):
            await blob_store.open_download_by_name(Bucket.ORIGINALS, "../secrets.jpg")

    @pytest.mark.asyncio
    async def test_buckets_are_isolated(self, blob_store) -> None:
        stored = await blob_store.put_stream(Bucket.ORIGINALS, _chunks(b"x"), extension="jpg")

        assert await blob_store.find_by_id(Bucket.DERIVED, stored.id) is None
        with pytest.raises(NotFoundError):
            await blob_store.open_download_by_id(Bucket.DERIVED, stored.id)

    @pytest.mark.asyncio
    async def test_find_by_id_rejects_malformed(self, blob_store) -> None:
        assert await blob_store.find_by_id(Bucket.ORIGINALS, "../../etc/passwd") is None

    @pytest.mark.asyncio
    async def test_find_one_by_metadata_returns_oldest(self, blob_store) -> None:
        first = await blob_store.put_stream(
            Bucket.DERIVED,
            _chunks(b"a"),
            metadata={"original_ref": "r1"},
        )
        await asyncio.sleep(0.01)
        await blob_store.put_stream(Bucket.DERIVED, _chunks(b"b"), metadata={"original_ref": "r1"})

        found = await blob_store.find_one_by_metadata(Bucket.DERIVED, "original_ref", "r1")

        assert found.id == first.id
        assert await blob_store.find_one_by_metadata(Bucket.DERIVED, "original_ref", "r2") is None


class TestFsspecBlobStoreMetadata:
    @pytest.mark.asyncio
    async def test_update_metadata_merges(self, blob_store) -> None:
        stored = await blob_store.put_stream(
            Bucket.ORIGINALS,
            _chunks(b"x"),
            metadata={"content_type": "image/jpeg", "size": 1},
        )

        updated = await blob_store.update_metadata(
            Bucket.ORIGINALS,
            stored.id,
            {"thumbnail_id": "t1", "size": 2},
        )

        assert updated is True
        found = await blob_store.find_by_id(Bucket.ORIGINALS, stored.id)
        assert found.metadata == {"content_type": "image/jpeg", "size": 2, "thumbnail_id": "t1"}

    @pytest.mark.asyncio
    async def test_update_metadata_missing_object(self, blob_store) -> None:
        assert await blob_store.update_metadata(
            Bucket.ORIGINALS,
            "507f191e810c19729de860ea",
            {"a": 1},
        ) is False
        assert await blob_store.update_metadata(Bucket.ORIGINALS, "bad", {"a": 1}) is False

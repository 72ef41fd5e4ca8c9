"""Tests for thumbnail use cases."""

from __future__ import annotations

import asyncio

import pytest
from returns.result import Failure, Success

from application.use_cases.photo_use_cases import GetPhotoUseCase
from application.use_cases.thumbnail_use_cases import (
    GetThumbnailStatusUseCase,
    GetThumbnailUseCase,
    ProduceThumbnailUseCase,
    StreamThumbnailUseCase,
)
from domain.exceptions import ValidationError
from domain.value_objects.bucket import Bucket
from domain.value_objects.dimensions import Dimensions
from domain.value_objects.thumbnail_state import ThumbnailState
from tests.mocks import FailingBlobStore, MockThumbnailRenderer, read_all

UNKNOWN_ID = "0123456789abcdef01234567"


async def _chunks(data: bytes):  # type: ignore[no-untyped-def]
    yield data


async def _store_original(blob_store, data: bytes, owner_ref: str) -> str:  # type: ignore[no-untyped-def]
    stored = await blob_store.put_stream(
        Bucket.ORIGINALS,
        _chunks(data),
        extension="jpg",
        metadata={"content_type": "image/jpeg", "owner_ref": owner_ref},
    )
    return stored.id


class TestProduceThumbnailUseCase:
    """Test ProduceThumbnailUseCase."""

    @pytest.mark.asyncio
    async def test_produce_thumbnail(self, blob_store, owner_ref, jpeg_bytes) -> None:
        photo_id = await _store_original(blob_store, jpeg_bytes, owner_ref)
        renderer = MockThumbnailRenderer(source_size=(640, 480))
        use_case = ProduceThumbnailUseCase(blob_store, renderer)

        result = await use_case.execute(photo_id)

        assert isinstance(result, Success)
        thumbnail = result.unwrap()
        assert thumbnail.original_ref == photo_id
        assert thumbnail.url == f"/media/thumbs/{thumbnail.id}.jpg"
        assert renderer.render_calls == [jpeg_bytes]

        stored = await blob_store.find_by_id(Bucket.DERIVED, thumbnail.id)
        assert stored.metadata == {
            "content_type": "image/jpeg",
            "original_ref": photo_id,
            "source_dimensions": {"width": 640, "height": 480},
        }

        download = await blob_store.open_download_by_id(Bucket.DERIVED, thumbnail.id)
        assert await read_all(download) == renderer.data

        photo = (await GetPhotoUseCase(blob_store).execute(photo_id)).unwrap()
        assert photo.dimensions == Dimensions(width=640, height=480)
        assert photo.derived_attributes == {"thumbnail_id": thumbnail.id}

    @pytest.mark.asyncio
    async def test_redelivered_job_does_not_duplicate(
        self,
        blob_store,
        owner_ref,
        jpeg_bytes,
    ) -> None:
        photo_id = await _store_original(blob_store, jpeg_bytes, owner_ref)
        renderer = MockThumbnailRenderer()
        use_case = ProduceThumbnailUseCase(blob_store, renderer)

        first = (await use_case.execute(photo_id)).unwrap()
        second = (await use_case.execute(photo_id)).unwrap()

        assert first.id == second.id
        assert len(renderer.render_calls) == 1

    @pytest.mark.asyncio
    async def test_redelivery_links_thumbnail_after_failed_metadata_write(
        self,
        blob_store,
        owner_ref,
        jpeg_bytes,
    ) -> None:
        photo_id = await _store_original(blob_store, jpeg_bytes, owner_ref)
        store = FailingBlobStore(blob_store, fail_update_times=1)
        renderer = MockThumbnailRenderer(source_size=(640, 480))
        use_case = ProduceThumbnailUseCase(store, renderer)

        first = await use_case.execute(photo_id)
        assert isinstance(first, Failure)
        assert first.failure().category == "storage"
        photo = (await GetPhotoUseCase(blob_store).execute(photo_id)).unwrap()
        assert photo.derived_attributes == {}

        second = await use_case.execute(photo_id)

        assert isinstance(second, Success)
        assert len(renderer.render_calls) == 1
        assert store.put_calls == 1
        photo = (await GetPhotoUseCase(blob_store).execute(photo_id)).unwrap()
        assert photo.dimensions == Dimensions(width=640, height=480)
        assert photo.derived_attributes == {"thumbnail_id": second.unwrap().id}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("photo_id", [UNKNOWN_ID, "garbage", ""])
    async def test_unknown_photo(self, blob_store, photo_id) -> None:
        renderer = MockThumbnailRenderer()

        result = await ProduceThumbnailUseCase(blob_store, renderer).execute(photo_id)

        assert isinstance(result, Failure)
        assert result.failure().category == "not_found"
        assert renderer.render_calls == []

    @pytest.mark.asyncio
    async def test_undecodable_original(self, blob_store, owner_ref) -> None:
        photo_id = await _store_original(blob_store, b"definitely not an image", owner_ref)
        renderer = MockThumbnailRenderer(raise_on_call=ValidationError("cannot identify image"))

        result = await ProduceThumbnailUseCase(blob_store, renderer).execute(photo_id)

        assert isinstance(result, Failure)
        assert result.failure().category == "validation"
        assert await blob_store.find_one_by_metadata(Bucket.DERIVED, "original_ref", photo_id) is None

    @pytest.mark.asyncio
    async def test_storage_failure_is_retryable(self, blob_store) -> None:
        store = FailingBlobStore(blob_store, fail_reads=True)

        result = await ProduceThumbnailUseCase(store, MockThumbnailRenderer()).execute(UNKNOWN_ID)

        assert isinstance(result, Failure)
        assert result.failure().category == "storage"

    @pytest.mark.asyncio
    async def test_write_timeout_is_storage(self, blob_store, owner_ref, jpeg_bytes) -> None:
        photo_id = await _store_original(blob_store, jpeg_bytes, owner_ref)
        store = FailingBlobStore(blob_store, put_delay=5.0)
        use_case = ProduceThumbnailUseCase(store, MockThumbnailRenderer(), store_timeout=0.05)

        result = await asyncio.wait_for(use_case.execute(photo_id), timeout=2)

        assert isinstance(result, Failure)
        assert result.failure().category == "storage"


class TestGetThumbnailStatusUseCase:
    """Test GetThumbnailStatusUseCase."""

    @pytest.mark.asyncio
    async def test_pending_then_ready(self, blob_store, owner_ref, jpeg_bytes) -> None:
        photo_id = await _store_original(blob_store, jpeg_bytes, owner_ref)
        use_case = GetThumbnailStatusUseCase(blob_store)

        pending = (await use_case.execute(photo_id)).unwrap()
        assert pending.state == ThumbnailState.PENDING
        assert pending.is_pending is True
        assert pending.thumbnail is None

        produced = await ProduceThumbnailUseCase(blob_store, MockThumbnailRenderer()).execute(photo_id)

        ready = (await use_case.execute(photo_id)).unwrap()
        assert ready.state == ThumbnailState.READY
        assert ready.is_ready is True
        assert ready.thumbnail == produced.unwrap()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("photo_id", [UNKNOWN_ID, "not-an-id"])
    async def test_absent(self, blob_store, photo_id) -> None:
        result = await GetThumbnailStatusUseCase(blob_store).execute(photo_id)

        assert isinstance(result, Success)
        assert result.unwrap().state == ThumbnailState.ABSENT

    @pytest.mark.asyncio
    async def test_storage_error(self, blob_store) -> None:
        store = FailingBlobStore(blob_store, fail_reads=True)

        result = await GetThumbnailStatusUseCase(store).execute(UNKNOWN_ID)

        assert isinstance(result, Failure)
        assert result.failure().category == "storage"


class TestGetThumbnailUseCase:
    """Test GetThumbnailUseCase and StreamThumbnailUseCase."""

    @pytest.mark.asyncio
    async def test_get_and_stream_produced_thumbnail(
        self,
        blob_store,
        owner_ref,
        jpeg_bytes,
    ) -> None:
        photo_id = await _store_original(blob_store, jpeg_bytes, owner_ref)
        renderer = MockThumbnailRenderer()
        produced = (await ProduceThumbnailUseCase(blob_store, renderer).execute(photo_id)).unwrap()

        thumbnail = (await GetThumbnailUseCase(blob_store).execute(produced.id)).unwrap()
        download = (await StreamThumbnailUseCase(blob_store).execute(f"{produced.id}.jpg")).unwrap()

        assert thumbnail == produced
        assert download.blob.content_type == "image/jpeg"
        assert await read_all(download) == renderer.data

    @pytest.mark.asyncio
    async def test_pending_thumbnail_reads_as_not_found(
        self,
        blob_store,
        owner_ref,
        jpeg_bytes,
    ) -> None:
        photo_id = await _store_original(blob_store, jpeg_bytes, owner_ref)

        by_photo_id = await GetThumbnailUseCase(blob_store).execute(photo_id)
        unknown = await GetThumbnailUseCase(blob_store).execute(UNKNOWN_ID)
        malformed = await GetThumbnailUseCase(blob_store).execute("../../etc/passwd")

        for result in (by_photo_id, unknown, malformed):
            assert isinstance(result, Failure)
            assert result.failure().category == "not_found"

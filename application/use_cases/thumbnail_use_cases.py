from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog
from returns.result import Failure, Result, Success

from application.dtos.errors import AppError
from application.dtos.thumbnail_dtos import ThumbnailStatusResponse
from application.mappers.photo_mappers import PhotoMapper
from application.use_cases.photo_use_cases import StreamBlobUseCase
from domain.exceptions import NotFoundError, StorageError, ValidationError
from domain.value_objects.bucket import Bucket
from domain.value_objects.mime_type import MimeType
from domain.value_objects.object_ref import parse_blob_id
from domain.value_objects.thumbnail_state import ThumbnailState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from application.dtos.thumbnail_dtos import ThumbnailResponse
    from application.ports.blob_store import BlobStore
    from application.ports.thumbnail_renderer import ThumbnailRenderer

logger = structlog.get_logger()

ORIGINAL_REF_KEY = "original_ref"
SOURCE_DIMENSIONS_KEY = "source_dimensions"


class GetThumbnailUseCase:
    """Fetch metadata of a produced thumbnail.

    A thumbnail that has not been produced yet is reported exactly like an
    unknown one; use GetThumbnailStatusUseCase to tell the two apart.
    """

    def __init__(self, blob_store: BlobStore) -> None:
        self.blob_store = blob_store

    async def execute(self, thumbnail_id: str) -> Result[ThumbnailResponse, AppError]:
        try:
            blob_id = parse_blob_id(thumbnail_id)
            blob = await self.blob_store.find_by_id(Bucket.DERIVED, blob_id)
        except NotFoundError as e:
            return Failure(AppError("not_found", str(e)))
        except StorageError as e:
            logger.exception("thumbnail_lookup_failed", thumbnail_id=thumbnail_id)
            return Failure(AppError("storage", f"Failed to fetch thumbnail: {e!s}"))

        if blob is None:
            return Failure(AppError("not_found", f"Thumbnail {thumbnail_id} not found"))

        return Success(PhotoMapper.to_thumbnail_response(blob))


class StreamThumbnailUseCase(StreamBlobUseCase):
    """Stream the bytes of a produced thumbnail."""

    bucket = Bucket.DERIVED


class GetThumbnailStatusUseCase:
    """Resolve a photo's thumbnail to READY, PENDING or ABSENT.

    READY: a thumbnail references the photo.
    PENDING: the photo exists but no thumbnail references it yet.
    ABSENT: the photo itself does not exist (or the id is malformed).
    """

    def __init__(self, blob_store: BlobStore) -> None:
        self.blob_store = blob_store

    async def execute(self, photo_id: str) -> Result[ThumbnailStatusResponse, AppError]:
        try:
            blob_id = parse_blob_id(photo_id)
        except NotFoundError:
            return Success(ThumbnailStatusResponse(photo_id=photo_id, state=ThumbnailState.ABSENT))

        try:
            thumbnail = await self.blob_store.find_one_by_metadata(
                Bucket.DERIVED,
                ORIGINAL_REF_KEY,
                blob_id,
            )
            if thumbnail is not None:
                return Success(
                    ThumbnailStatusResponse(
                        photo_id=blob_id,
                        state=ThumbnailState.READY,
                        thumbnail=PhotoMapper.to_thumbnail_response(thumbnail),
                    ),
                )

            original = await self.blob_store.find_by_id(Bucket.ORIGINALS, blob_id)
        except StorageError as e:
            logger.exception("thumbnail_status_lookup_failed", photo_id=photo_id)
            return Failure(AppError("storage", f"Failed to resolve thumbnail: {e!s}"))

        state = ThumbnailState.PENDING if original is not None else ThumbnailState.ABSENT
        return Success(ThumbnailStatusResponse(photo_id=blob_id, state=state))


async def _single_chunk(data: bytes) -> AsyncIterator[bytes]:
    yield data


class ProduceThumbnailUseCase:
    """Produce the thumbnail of one original photo.

    This is the contract the thumbnail worker fulfils for every job it
    consumes. Jobs are delivered at least once, so an existing thumbnail for
    the same original is linked again and returned instead of writing a
    second one.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        renderer: ThumbnailRenderer,
        *,
        store_timeout: float | None = None,
    ) -> None:
        self.blob_store = blob_store
        self.renderer = renderer
        self.store_timeout = store_timeout

    async def execute(self, photo_id: str) -> Result[ThumbnailResponse, AppError]:
        """Fetch the original, render it and store the thumbnail.

        Args:
            photo_id: Identifier of the original photo, as carried by the job

        Returns:
            Result containing the thumbnail, or an error. ``not_found`` and
            ``validation`` failures will never succeed on retry; ``storage``
            failures may.

        """
        try:
            blob_id = parse_blob_id(photo_id)

            async with asyncio.timeout(self.store_timeout):
                existing = await self.blob_store.find_one_by_metadata(
                    Bucket.DERIVED,
                    ORIGINAL_REF_KEY,
                    blob_id,
                )
                if existing is not None:
                    # An earlier delivery may have stored the thumbnail but not
                    # linked it; the patch is idempotent.
                    await self._link_original(
                        blob_id,
                        existing.id,
                        existing.metadata.get(SOURCE_DIMENSIONS_KEY),
                    )
                    logger.info(
                        "thumbnail_already_produced",
                        photo_id=blob_id,
                        thumbnail_id=existing.id,
                    )
                    return Success(PhotoMapper.to_thumbnail_response(existing))

                data = await self._read_original(blob_id)

            rendered = await asyncio.to_thread(self.renderer.render, data)
            dimensions = rendered.source_dimensions.model_dump()

            async with asyncio.timeout(self.store_timeout):
                stored = await self.blob_store.put_stream(
                    Bucket.DERIVED,
                    _single_chunk(rendered.data),
                    extension=MimeType.parse(rendered.content_type).extension,
                    metadata={
                        "content_type": rendered.content_type,
                        ORIGINAL_REF_KEY: blob_id,
                        SOURCE_DIMENSIONS_KEY: dimensions,
                    },
                )
                await self._link_original(blob_id, stored.id, dimensions)
        except NotFoundError as e:
            return Failure(AppError("not_found", str(e)))
        except ValidationError as e:
            return Failure(AppError("validation", f"Cannot render thumbnail: {e!s}"))
        except TimeoutError:
            return Failure(AppError("storage", f"Blob store timed out producing {photo_id}"))
        except StorageError as e:
            return Failure(AppError("storage", f"Failed to produce thumbnail: {e!s}"))

        logger.info(
            "thumbnail_produced",
            photo_id=blob_id,
            thumbnail_id=stored.id,
            size_bytes=stored.size_bytes,
        )
        return Success(PhotoMapper.to_thumbnail_response(stored))

    async def _read_original(self, blob_id: str) -> bytes:
        download = await self.blob_store.open_download_by_id(Bucket.ORIGINALS, blob_id)
        return b"".join([chunk async for chunk in download.chunks])

    async def _link_original(
        self,
        blob_id: str,
        thumbnail_id: str,
        dimensions: dict[str, int] | None,
    ) -> None:
        patch: dict[str, object] = {"thumbnail_id": thumbnail_id}
        if dimensions is not None:
            patch["dimensions"] = dimensions
        await self.blob_store.update_metadata(Bucket.ORIGINALS, blob_id, patch)

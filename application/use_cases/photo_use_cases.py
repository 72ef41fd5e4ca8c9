from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog
from returns.result import Failure, Result, Success

from application.dtos.errors import AppError
from application.dtos.photo_dtos import PhotoLinks, UploadPhotoResponse
from application.mappers.photo_mappers import PhotoMapper
from application.ports.blob_store import BlobDownload
from application.ports.job_queue import encode_job
from domain.exceptions import NotFoundError, QueueError, StorageError, ValidationError
from domain.value_objects.bucket import Bucket
from domain.value_objects.mime_type import MimeType
from domain.value_objects.object_ref import is_object_id, parse_blob_id, parse_owner_ref

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from application.dtos.photo_dtos import PhotoResponse, UploadPhotoRequest
    from application.ports.blob_store import BlobStore, StoredBlob
    from application.ports.job_queue import JobQueue
    from application.ports.staged_upload import StagedUpload

logger = structlog.get_logger()

DEFAULT_CHUNK_SIZE = 255 * 1024
DEFAULT_QUEUE_NAME = "photos"


async def iter_upload_chunks(upload: StagedUpload, chunk_size: int) -> AsyncIterator[bytes]:
    """Pull a staged upload in fixed-size chunks."""
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            return
        yield chunk


class IngestPhotoUseCase:
    """Store an uploaded photo and hand a thumbnail job to the queue.

    The original is committed to the blob store strictly before the job is
    published. A failed publish is logged and does not fail the upload: the
    photo stays readable, it just never gets a thumbnail unless the job is
    published again.
    """

    def __init__(  # noqa: PLR0913
        self,
        blob_store: BlobStore,
        job_queue: JobQueue | None = None,
        *,
        queue_name: str = DEFAULT_QUEUE_NAME,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        store_timeout: float | None = None,
        publish_timeout: float | None = None,
    ) -> None:
        self.blob_store = blob_store
        self.job_queue = job_queue
        self.queue_name = queue_name
        self.chunk_size = chunk_size
        self.store_timeout = store_timeout
        self.publish_timeout = publish_timeout

    async def execute(
        self,
        upload: StagedUpload,
        request: UploadPhotoRequest,
    ) -> Result[UploadPhotoResponse, AppError]:
        """Ingest a staged upload.

        Args:
            upload: Spooled multipart file part, closed on every exit path
            request: Ownership reference and declared content type

        Returns:
            Result containing the new photo id and links, or an error

        """
        try:
            try:
                owner_ref = parse_owner_ref(request.owner_ref)
                mime_type = MimeType.parse(request.content_type)
            except ValidationError as e:
                return Failure(AppError("validation", f"Validation error: {e!s}"))

            try:
                stored = await self._store(upload, request, owner_ref, mime_type)
            except StorageError as e:
                logger.exception("photo_store_failed", owner_ref=owner_ref)
                return Failure(AppError("storage", f"Failed to store photo: {e!s}"))

            logger.info(
                "photo_stored",
                photo_id=stored.id,
                owner_ref=owner_ref,
                size_bytes=stored.size_bytes,
            )

            await self._record_size(stored)

            try:
                await self._publish_job(stored.id)
            except QueueError:
                # The original is durable; only the thumbnail is lost.
                logger.exception("photo_job_publish_failed_upload_succeeded", photo_id=stored.id)

            return Success(
                UploadPhotoResponse(
                    id=stored.id,
                    links=PhotoLinks(
                        photo=f"/photos/{stored.id}",
                        business=f"/businesses/{owner_ref}",
                    ),
                ),
            )
        finally:
            await self._release(upload)

    async def _store(
        self,
        upload: StagedUpload,
        request: UploadPhotoRequest,
        owner_ref: str,
        mime_type: MimeType,
    ) -> StoredBlob:
        metadata = {
            "content_type": mime_type.value,
            "owner_ref": owner_ref,
            "original_filename": request.filename,
        }
        if request.caption is not None:
            metadata["caption"] = request.caption

        try:
            async with asyncio.timeout(self.store_timeout):
                return await self.blob_store.put_stream(
                    Bucket.ORIGINALS,
                    iter_upload_chunks(upload, self.chunk_size),
                    extension=mime_type.extension,
                    metadata=metadata,
                )
        except TimeoutError as e:
            msg = f"Blob store write timed out after {self.store_timeout}s"
            raise StorageError(msg) from e

    async def _record_size(self, stored: StoredBlob) -> None:
        try:
            async with asyncio.timeout(self.store_timeout):
                await self.blob_store.update_metadata(
                    Bucket.ORIGINALS,
                    stored.id,
                    {"size": stored.size_bytes},
                )
        except (StorageError, TimeoutError):
            logger.warning("photo_size_update_failed", photo_id=stored.id, exc_info=True)

    async def _publish_job(self, photo_id: str) -> None:
        if self.job_queue is None:
            logger.warning("photo_job_publishing_disabled", photo_id=photo_id)
            return

        try:
            async with asyncio.timeout(self.publish_timeout):
                await self.job_queue.publish(self.queue_name, encode_job(photo_id))
        except QueueError:
            raise
        except TimeoutError as e:
            msg = f"Publishing job for {photo_id} timed out after {self.publish_timeout}s"
            raise QueueError(msg) from e
        except Exception as e:
            msg = f"Failed to publish job for {photo_id}: {e!s}"
            raise QueueError(msg) from e

        logger.info("photo_job_published", photo_id=photo_id, queue=self.queue_name)

    async def _release(self, upload: StagedUpload) -> None:
        try:
            await upload.close()
        except Exception:  # noqa: BLE001
            logger.warning("staged_upload_release_failed", exc_info=True)


class GetPhotoUseCase:
    """Fetch metadata of an original photo."""

    def __init__(self, blob_store: BlobStore) -> None:
        self.blob_store = blob_store

    async def execute(self, photo_id: str) -> Result[PhotoResponse, AppError]:
        try:
            blob_id = parse_blob_id(photo_id)
            blob = await self.blob_store.find_by_id(Bucket.ORIGINALS, blob_id)
        except NotFoundError as e:
            return Failure(AppError("not_found", str(e)))
        except StorageError as e:
            logger.exception("photo_lookup_failed", photo_id=photo_id)
            return Failure(AppError("storage", f"Failed to fetch photo: {e!s}"))

        if blob is None:
            return Failure(AppError("not_found", f"Photo {photo_id} not found"))

        return Success(PhotoMapper.to_photo_response(blob))


class StreamBlobUseCase:
    """Open a committed blob for streaming by id or by stored filename."""

    bucket: Bucket = Bucket.ORIGINALS

    def __init__(self, blob_store: BlobStore) -> None:
        self.blob_store = blob_store

    async def execute(self, filename_or_id: str) -> Result[BlobDownload, AppError]:
        try:
            if is_object_id(filename_or_id):
                download = await self.blob_store.open_download_by_id(
                    self.bucket,
                    parse_blob_id(filename_or_id),
                )
            else:
                download = await self.blob_store.open_download_by_name(
                    self.bucket,
                    filename_or_id,
                )
        except NotFoundError as e:
            return Failure(AppError("not_found", str(e)))
        except StorageError as e:
            logger.exception(
                "blob_stream_open_failed",
                bucket=self.bucket.value,
                filename_or_id=filename_or_id,
            )
            return Failure(AppError("storage", f"Failed to open blob: {e!s}"))

        return Success(
            BlobDownload(
                blob=download.blob,
                chunks=self._logged(download.blob, download.chunks),
            ),
        )

    async def _logged(self, blob: StoredBlob, chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        # Headers are already sent once chunks flow, so failures can only be logged.
        sent = 0
        try:
            async for chunk in chunks:
                sent += len(chunk)
                yield chunk
        except StorageError:
            logger.exception(
                "blob_stream_interrupted",
                bucket=self.bucket.value,
                blob_id=blob.id,
                bytes_sent=sent,
            )
            raise


class StreamPhotoUseCase(StreamBlobUseCase):
    """Stream the bytes of an original photo."""

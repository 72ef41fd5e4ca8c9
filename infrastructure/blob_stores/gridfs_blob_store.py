"""MongoDB GridFS adapter for the blob store port.

GridFS only inserts the ``<bucket>.files`` document once every chunk has been
written, so readers never see a partially uploaded object. Failed or cancelled
uploads are aborted to drop the orphaned chunks.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from bson import ObjectId
from gridfs.errors import NoFile
from motor.motor_asyncio import AsyncIOMotorGridFSBucket
from pymongo.errors import PyMongoError

from application.ports.blob_store import BlobDownload, BlobStore, StoredBlob
from domain.exceptions import NotFoundError, StorageError

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

    from motor.motor_asyncio import (
        AsyncIOMotorCollection,
        AsyncIOMotorDatabase,
        AsyncIOMotorGridOut,
    )

    from domain.value_objects.bucket import Bucket

logger = structlog.get_logger()


class GridFSBlobStore(BlobStore):
    def __init__(self, database: AsyncIOMotorDatabase, *, chunk_size: int = 255 * 1024) -> None:
        self.database = database
        self.chunk_size = chunk_size
        self._buckets: dict[Bucket, AsyncIOMotorGridFSBucket] = {}

    def _bucket(self, bucket: Bucket) -> AsyncIOMotorGridFSBucket:
        if bucket not in self._buckets:
            self._buckets[bucket] = AsyncIOMotorGridFSBucket(
                self.database,
                bucket_name=bucket.value,
                chunk_size_bytes=self.chunk_size,
            )
        return self._buckets[bucket]

    def _files(self, bucket: Bucket) -> AsyncIOMotorCollection:
        return self.database[f"{bucket.value}.files"]

    async def put_stream(
        self,
        bucket: Bucket,
        chunks: AsyncIterable[bytes],
        *,
        extension: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> StoredBlob:
        file_id = ObjectId()
        filename = f"{file_id}.{extension}" if extension else str(file_id)
        metadata = dict(metadata or {})

        grid_in = self._bucket(bucket).open_upload_stream_with_id(
            file_id,
            filename,
            metadata=metadata,
        )
        size = 0
        try:
            async for chunk in chunks:
                await grid_in.write(chunk)
                size += len(chunk)
            await grid_in.close()
        except BaseException as exc:
            await self._abort(grid_in, bucket, file_id)
            if isinstance(exc, PyMongoError):
                msg = f"GridFS write to {bucket.value} failed: {exc!s}"
                raise StorageError(msg) from exc
            raise

        return StoredBlob(
            id=str(file_id),
            filename=filename,
            size_bytes=size,
            metadata=metadata,
            uploaded_at=datetime.now(UTC),
        )

    async def _abort(self, grid_in: Any, bucket: Bucket, file_id: ObjectId) -> None:  # noqa: ANN401
        try:
            await grid_in.abort()
        except PyMongoError:
            logger.warning(
                "gridfs_abort_failed",
                bucket=bucket.value,
                file_id=str(file_id),
                exc_info=True,
            )
        else:
            logger.info("gridfs_upload_aborted", bucket=bucket.value, file_id=str(file_id))

    async def open_download_by_id(self, bucket: Bucket, blob_id: str) -> BlobDownload:
        if not ObjectId.is_valid(blob_id):
            msg = f"No object with id {blob_id!r} in {bucket.value}"
            raise NotFoundError(msg)
        try:
            grid_out = await self._bucket(bucket).open_download_stream(ObjectId(blob_id))
        except NoFile as e:
            msg = f"No object with id {blob_id!r} in {bucket.value}"
            raise NotFoundError(msg) from e
        except PyMongoError as e:
            msg = f"GridFS read from {bucket.value} failed: {e!s}"
            raise StorageError(msg) from e
        return self._download(grid_out)

    async def open_download_by_name(self, bucket: Bucket, filename: str) -> BlobDownload:
        try:
            grid_out = await self._bucket(bucket).open_download_stream_by_name(filename)
        except NoFile as e:
            msg = f"No object named {filename!r} in {bucket.value}"
            raise NotFoundError(msg) from e
        except PyMongoError as e:
            msg = f"GridFS read from {bucket.value} failed: {e!s}"
            raise StorageError(msg) from e
        return self._download(grid_out)

    def _download(self, grid_out: AsyncIOMotorGridOut) -> BlobDownload:
        blob = StoredBlob(
            id=str(grid_out._id),  # noqa: SLF001
            filename=grid_out.filename,
            size_bytes=grid_out.length,
            metadata=dict(grid_out.metadata or {}),
            uploaded_at=grid_out.upload_date,
        )
        return BlobDownload(blob=blob, chunks=self._iter_chunks(grid_out))

    async def _iter_chunks(self, grid_out: AsyncIOMotorGridOut) -> AsyncIterator[bytes]:
        try:
            while chunk := await grid_out.readchunk():
                yield chunk
        except PyMongoError as e:
            msg = f"GridFS read of {grid_out._id} interrupted: {e!s}"  # noqa: SLF001
            raise StorageError(msg) from e

    async def find_by_id(self, bucket: Bucket, blob_id: str) -> StoredBlob | None:
        if not ObjectId.is_valid(blob_id):
            return None
        return await self._find_one(bucket, {"_id": ObjectId(blob_id)})

    async def find_one_by_metadata(
        self,
        bucket: Bucket,
        key: str,
        value: Any,  # noqa: ANN401
    ) -> StoredBlob | None:
        return await self._find_one(bucket, {f"metadata.{key}": value})

    async def _find_one(self, bucket: Bucket, query: dict[str, Any]) -> StoredBlob | None:
        try:
            doc = await self._files(bucket).find_one(query, sort=[("uploadDate", 1)])
        except PyMongoError as e:
            msg = f"GridFS lookup in {bucket.value} failed: {e!s}"
            raise StorageError(msg) from e
        if not doc:
            return None
        return StoredBlob(
            id=str(doc["_id"]),
            filename=doc["filename"],
            size_bytes=doc.get("length", 0),
            metadata=dict(doc.get("metadata") or {}),
            uploaded_at=doc.get("uploadDate"),
        )

    async def update_metadata(
        self,
        bucket: Bucket,
        blob_id: str,
        patch: dict[str, Any],
    ) -> bool:
        if not ObjectId.is_valid(blob_id):
            return False
        if not patch:
            return await self.find_by_id(bucket, blob_id) is not None
        try:
            result = await self._files(bucket).update_one(
                {"_id": ObjectId(blob_id)},
                {"$set": {f"metadata.{key}": value for key, value in patch.items()}},
            )
        except PyMongoError as e:
            msg = f"GridFS metadata update in {bucket.value} failed: {e!s}"
            raise StorageError(msg) from e
        return result.matched_count > 0

"""fsspec adapter for the blob store port.

Layout under ``base_url``::

    <bucket>/<id>.<ext>              committed object bytes
    <bucket>/_meta/<id>.json         object record (filename, length, metadata)
    <bucket>/_partial/<id>           upload in progress

An object is committed when its record exists. The record is written after
the bytes have been moved out of ``_partial``, so readers never observe a
partially written object.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import fsspec
import structlog
from bson import ObjectId

from application.ports.blob_store import BlobDownload, BlobStore, StoredBlob
from domain.exceptions import NotFoundError, StorageError
from domain.value_objects.object_ref import is_object_id, split_filename

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

    from domain.value_objects.bucket import Bucket

logger = structlog.get_logger()

_META_DIR = "_meta"
_PARTIAL_DIR = "_partial"


class FsspecBlobStore(BlobStore):
    def __init__(
        self,
        base_url: str,
        *,
        storage_options: dict | None = None,
        chunk_size: int = 1024 * 1024,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.storage_options = storage_options or {}
        self.chunk_size = chunk_size
        self.fs, self.root = fsspec.core.url_to_fs(self.base_url, **self.storage_options)
        self.root = self.root.rstrip("/")
        # Serialises directory setup and record read-modify-write within this process
        self._record_lock = threading.Lock()
        self._ready_buckets: set[Bucket] = set()

    def _path(self, bucket: Bucket, *parts: str) -> str:
        return "/".join([self.root, bucket.value, *parts])

    def _record_path(self, bucket: Bucket, blob_id: str) -> str:
        return self._path(bucket, _META_DIR, f"{blob_id}.json")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put_stream(
        self,
        bucket: Bucket,
        chunks: AsyncIterable[bytes],
        *,
        extension: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> StoredBlob:
        blob_id = str(ObjectId())
        filename = f"{blob_id}.{extension}" if extension else blob_id
        partial = self._path(bucket, _PARTIAL_DIR, blob_id)

        h = hashlib.sha256()
        size = 0
        out = None
        try:
            await asyncio.to_thread(self._ensure_dirs, bucket)
            out = await asyncio.to_thread(self.fs.open, partial, "wb")
            async for chunk in chunks:
                await asyncio.to_thread(out.write, chunk)
                h.update(chunk)
                size += len(chunk)
            await asyncio.to_thread(out.close)

            await asyncio.to_thread(self.fs.mv, partial, self._path(bucket, filename))

            blob = StoredBlob(
                id=blob_id,
                filename=filename,
                size_bytes=size,
                metadata=dict(metadata or {}),
                uploaded_at=datetime.now(UTC),
            )
            await asyncio.to_thread(self._write_record, bucket, blob, h.hexdigest())
        except BaseException as exc:
            await asyncio.to_thread(self._discard, out, partial, bucket, filename)
            if isinstance(exc, OSError):
                msg = f"Write to {bucket.value} failed: {exc!s}"
                raise StorageError(msg) from exc
            raise

        return blob

    def _ensure_dirs(self, bucket: Bucket) -> None:
        with self._record_lock:
            if bucket in self._ready_buckets:
                return
            self.fs.makedirs(self._path(bucket, _META_DIR), exist_ok=True)
            self.fs.makedirs(self._path(bucket, _PARTIAL_DIR), exist_ok=True)
            self._ready_buckets.add(bucket)

    def _discard(self, out: Any, partial: str, bucket: Bucket, filename: str) -> None:  # noqa: ANN401
        try:
            if out is not None and not out.closed:
                out.close()
            for path in (partial, self._path(bucket, filename)):
                if self.fs.exists(path):
                    self.fs.rm(path)
        except OSError:
            logger.warning("fsspec_partial_cleanup_failed", path=partial, exc_info=True)
        else:
            logger.info("fsspec_upload_aborted", bucket=bucket.value, path=partial)

    def _write_record(self, bucket: Bucket, blob: StoredBlob, sha256: str) -> None:
        record = {
            "id": blob.id,
            "filename": blob.filename,
            "length": blob.size_bytes,
            "sha256": sha256,
            "upload_date": blob.uploaded_at.isoformat() if blob.uploaded_at else None,
            "metadata": blob.metadata,
        }
        with self.fs.open(self._record_path(bucket, blob.id), "w") as f:
            json.dump(record, f)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _read_record(self, bucket: Bucket, blob_id: str) -> dict[str, Any] | None:
        try:
            with self.fs.open(self._record_path(bucket, blob_id), "r") as f:
                return json.load(f)
        except FileNotFoundError:
            return None

    @staticmethod
    def _to_blob(record: dict[str, Any]) -> StoredBlob:
        upload_date = record.get("upload_date")
        return StoredBlob(
            id=record["id"],
            filename=record["filename"],
            size_bytes=record.get("length", 0),
            metadata=dict(record.get("metadata") or {}),
            uploaded_at=datetime.fromisoformat(upload_date) if upload_date else None,
        )

    async def find_by_id(self, bucket: Bucket, blob_id: str) -> StoredBlob | None:
        if not is_object_id(blob_id):
            return None
        try:
            record = await asyncio.to_thread(self._read_record, bucket, blob_id)
        except OSError as e:
            msg = f"Lookup in {bucket.value} failed: {e!s}"
            raise StorageError(msg) from e
        return self._to_blob(record) if record else None

    async def find_one_by_metadata(
        self,
        bucket: Bucket,
        key: str,
        value: Any,  # noqa: ANN401
    ) -> StoredBlob | None:
        # Full scan of the records; fine for development volumes.
        try:
            records = await asyncio.to_thread(self._scan_records, bucket)
        except OSError as e:
            msg = f"Scan of {bucket.value} failed: {e!s}"
            raise StorageError(msg) from e
        matches = [
            self._to_blob(record)
            for record in records
            if (record.get("metadata") or {}).get(key) == value
        ]
        if not matches:
            return None
        return min(matches, key=lambda blob: blob.uploaded_at or datetime.min.replace(tzinfo=UTC))

    def _scan_records(self, bucket: Bucket) -> list[dict[str, Any]]:
        meta_dir = self._path(bucket, _META_DIR)
        if not self.fs.exists(meta_dir):
            return []
        records = []
        for path in self.fs.ls(meta_dir, detail=False):
            if not path.endswith(".json"):
                continue
            with self.fs.open(path, "r") as f:
                records.append(json.load(f))
        return records

    async def open_download_by_id(self, bucket: Bucket, blob_id: str) -> BlobDownload:
        blob = await self.find_by_id(bucket, blob_id)
        if blob is None:
            msg = f"No object with id {blob_id!r} in {bucket.value}"
            raise NotFoundError(msg)
        return await self._open(bucket, blob)

    async def open_download_by_name(self, bucket: Bucket, filename: str) -> BlobDownload:
        # Stored names are always <id>.<ext>, so the id is recoverable from the name.
        stem, _ = split_filename(filename)
        blob = await self.find_by_id(bucket, stem)
        if blob is None or blob.filename != filename:
            msg = f"No object named {filename!r} in {bucket.value}"
            raise NotFoundError(msg)
        return await self._open(bucket, blob)

    async def _open(self, bucket: Bucket, blob: StoredBlob) -> BlobDownload:
        path = self._path(bucket, blob.filename)
        try:
            exists = await asyncio.to_thread(self.fs.exists, path)
        except OSError as e:
            msg = f"Read from {bucket.value} failed: {e!s}"
            raise StorageError(msg) from e
        if not exists:
            msg = f"Object {blob.id} in {bucket.value} has no data"
            raise NotFoundError(msg)
        return BlobDownload(blob=blob, chunks=self._iter_chunks(path, blob))

    async def _iter_chunks(self, path: str, blob: StoredBlob) -> AsyncIterator[bytes]:
        # The handle only exists while the chunks are being consumed.
        try:
            handle = await asyncio.to_thread(self.fs.open, path, "rb")
        except OSError as e:
            msg = f"Read of {blob.id} failed: {e!s}"
            raise StorageError(msg) from e
        try:
            while chunk := await asyncio.to_thread(handle.read, self.chunk_size):
                yield chunk
        except OSError as e:
            msg = f"Read of {blob.id} interrupted: {e!s}"
            raise StorageError(msg) from e
        finally:
            await asyncio.to_thread(handle.close)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def update_metadata(
        self,
        bucket: Bucket,
        blob_id: str,
        patch: dict[str, Any],
    ) -> bool:
        if not is_object_id(blob_id):
            return False
        try:
            return await asyncio.to_thread(self._patch_record, bucket, blob_id, patch)
        except OSError as e:
            msg = f"Metadata update in {bucket.value} failed: {e!s}"
            raise StorageError(msg) from e

    def _patch_record(self, bucket: Bucket, blob_id: str, patch: dict[str, Any]) -> bool:
        with self._record_lock:
            record = self._read_record(bucket, blob_id)
            if record is None:
                return False
            record["metadata"] = {**(record.get("metadata") or {}), **patch}
            with self.fs.open(self._record_path(bucket, blob_id), "w") as f:
                json.dump(record, f)
        return True

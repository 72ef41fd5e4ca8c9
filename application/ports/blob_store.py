from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator
    from datetime import datetime

    from domain.value_objects.bucket import Bucket


@dataclass(frozen=True)
class StoredBlob:
    id: str
    filename: str
    size_bytes: int
    metadata: dict[str, Any] = field(default_factory=dict)
    uploaded_at: datetime | None = None

    @property
    def content_type(self) -> str | None:
        return self.metadata.get("content_type")


@dataclass(frozen=True)
class BlobDownload:
    """A committed blob together with a lazy, single-pass iterator over its bytes."""

    blob: StoredBlob
    chunks: AsyncIterator[bytes]


class BlobStore(Protocol):
    async def put_stream(
        self,
        bucket: Bucket,
        chunks: AsyncIterable[bytes],
        *,
        extension: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> StoredBlob:
        """Write chunks to a new object and return it once fully committed.

        The store assigns the identifier and names the object ``<id>.<extension>``.
        Nothing becomes visible to readers if writing fails or is cancelled.

        Raises:
            StorageError: On any I/O failure.

        """
        ...

    async def open_download_by_id(self, bucket: Bucket, blob_id: str) -> BlobDownload:
        """Raise NotFoundError if no committed object has this id."""
        ...

    async def open_download_by_name(self, bucket: Bucket, filename: str) -> BlobDownload:
        """Raise NotFoundError if no committed object has this filename."""
        ...

    async def find_by_id(self, bucket: Bucket, blob_id: str) -> StoredBlob | None: ...

    async def find_one_by_metadata(
        self,
        bucket: Bucket,
        key: str,
        value: Any,  # noqa: ANN401
    ) -> StoredBlob | None:
        """Return the oldest object whose metadata has ``key == value``."""
        ...

    async def update_metadata(
        self,
        bucket: Bucket,
        blob_id: str,
        patch: dict[str, Any],
    ) -> bool:
        """Merge patch into an object's metadata. Return False if the object is absent."""
        ...

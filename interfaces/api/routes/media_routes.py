"""Routes streaming stored image bytes.

Bytes are pulled from the blob store chunk by chunk as the client reads
them; no payload is buffered whole.
"""

import structlog
from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from application.ports.blob_store import BlobDownload
from application.use_cases.photo_use_cases import StreamPhotoUseCase
from application.use_cases.thumbnail_use_cases import StreamThumbnailUseCase
from domain.value_objects.mime_type import MimeType
from interfaces.api.middleware import unwrap_result
from interfaces.dependencies import ContainerDep

logger = structlog.get_logger()

router = APIRouter(prefix="/media", tags=["media"])


def _streaming_response(download: BlobDownload, default_type: str) -> StreamingResponse:
    return StreamingResponse(
        download.chunks,
        media_type=download.blob.content_type or default_type,
        headers={"Content-Length": str(download.blob.size_bytes)},
    )


@router.get("/thumbs/{filename}")
async def stream_thumbnail(filename: str, container: ContainerDep) -> StreamingResponse:
    """Stream thumbnail bytes by stored filename or id."""
    use_case = container[StreamThumbnailUseCase]
    download = unwrap_result(await use_case.execute(filename))
    return _streaming_response(download, MimeType.JPEG.value)


@router.get("/photos/{filename}")
async def stream_photo(filename: str, container: ContainerDep) -> StreamingResponse:
    """Stream original photo bytes by stored filename or id."""
    use_case = container[StreamPhotoUseCase]
    download = unwrap_result(await use_case.execute(filename))
    logger.debug("photo_stream_started", photo_id=download.blob.id)
    return _streaming_response(download, "application/octet-stream")


@router.get("/{filename}")
async def stream_photo_by_filename(filename: str, container: ContainerDep) -> StreamingResponse:
    """Stream original photo bytes; same as ``/media/photos/{filename}``."""
    return await stream_photo(filename, container)

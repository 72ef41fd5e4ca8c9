from typing import Annotated, NoReturn

import structlog
from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from application.dtos.photo_dtos import (
    PhotoResponse,
    PhotoUploadForm,
    UploadPhotoRequest,
    UploadPhotoResponse,
)
from application.dtos.thumbnail_dtos import ThumbnailResponse
from application.use_cases.photo_use_cases import GetPhotoUseCase, IngestPhotoUseCase
from application.use_cases.thumbnail_use_cases import (
    GetThumbnailStatusUseCase,
    GetThumbnailUseCase,
)
from domain.value_objects.thumbnail_state import ThumbnailState
from interfaces.api.middleware import handle_use_case_errors, unwrap_result
from interfaces.dependencies import ContainerDep

logger = structlog.get_logger()

router = APIRouter(prefix="/photos", tags=["photos"])

_STATUS_CODES = {
    ThumbnailState.READY: status.HTTP_200_OK,
    ThumbnailState.PENDING: status.HTTP_202_ACCEPTED,
    ThumbnailState.ABSENT: status.HTTP_404_NOT_FOUND,
}


async def _reject_upload(photo: UploadFile | None, detail: str) -> NoReturn:
    if photo is not None:
        await photo.close()
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post("", status_code=status.HTTP_200_OK)
@handle_use_case_errors
async def upload_photo(
    container: ContainerDep,
    photo: Annotated[UploadFile | None, File()] = None,
    data: Annotated[str | None, Form()] = None,
) -> UploadPhotoResponse:
    """Store a photo and queue its thumbnail.

    The multipart body carries the image in ``photo`` and a JSON document
    ``{"ownerRef": ...}`` in ``data``.

    Returns:
        200 OK: Photo stored; the thumbnail is produced asynchronously
        400 Bad Request: Missing file, invalid data or unsupported file type
        500 Internal Server Error: Blob store failure

    """
    if photo is None:
        await _reject_upload(photo, "Request body must include a photo file")
    if data is None:
        await _reject_upload(photo, "Request body must include a data field")

    try:
        form = PhotoUploadForm.model_validate_json(data)
    except PydanticValidationError as e:
        logger.info("photo_upload_rejected", errors=e.error_count())
        await _reject_upload(photo, "Request body is not a valid photo object with ownerRef")

    use_case = container[IngestPhotoUseCase]
    return await use_case.execute(
        upload=photo,
        request=UploadPhotoRequest(
            owner_ref=form.owner_ref,
            content_type=photo.content_type,
            filename=photo.filename,
            caption=form.caption,
        ),
    )


@router.get("/thumbs/{thumbnail_id}", status_code=status.HTTP_200_OK)
@handle_use_case_errors
async def get_thumbnail(thumbnail_id: str, container: ContainerDep) -> ThumbnailResponse:
    """Retrieve a produced thumbnail. A thumbnail still being produced is a 404."""
    use_case = container[GetThumbnailUseCase]
    return await use_case.execute(thumbnail_id)


@router.get("/{photo_id}", status_code=status.HTTP_200_OK)
@handle_use_case_errors
async def get_photo(photo_id: str, container: ContainerDep) -> PhotoResponse:
    """Retrieve metadata of a stored photo."""
    use_case = container[GetPhotoUseCase]
    return await use_case.execute(photo_id)


@router.get("/{photo_id}/thumbnail")
async def get_thumbnail_status(photo_id: str, container: ContainerDep) -> JSONResponse:
    """Report whether a photo's thumbnail is ready.

    Returns:
        200 OK: Thumbnail ready, body includes it
        202 Accepted: Photo exists, thumbnail not produced yet; poll again later
        404 Not Found: No such photo

    """
    use_case = container[GetThumbnailStatusUseCase]
    thumbnail_status = unwrap_result(await use_case.execute(photo_id))
    return JSONResponse(
        status_code=_STATUS_CODES[thumbnail_status.state],
        content=thumbnail_status.model_dump(mode="json", by_alias=True),
    )

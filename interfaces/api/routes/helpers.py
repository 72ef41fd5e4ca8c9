from fastapi import HTTPException, status

from application.dtos.errors import AppError

# Storage details may name hosts or paths, so clients get a fixed message.
_STORAGE_DETAIL = "Storage is unavailable. Try again later."

_STATUS_BY_CATEGORY = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "storage": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _map_app_error_to_http_exception(error: AppError) -> HTTPException:
    """Map application layer errors to appropriate HTTP exceptions."""
    status_code = _STATUS_BY_CATEGORY.get(error.category)
    if status_code is None:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
    detail = _STORAGE_DETAIL if error.category == "storage" else error.message
    return HTTPException(status_code=status_code, detail=detail)

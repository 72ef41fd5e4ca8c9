from pydantic import Field

from application.dtos.photo_dtos import CamelModel
from domain.value_objects.thumbnail_state import ThumbnailState


class ThumbnailResponse(CamelModel):
    """Response DTO representing a produced thumbnail."""

    id: str = Field(..., description="Identifier assigned by the blob store")
    url: str = Field(..., description="URL streaming the thumbnail bytes")
    original_ref: str | None = Field(None, description="Identifier of the source photo")


class ThumbnailStatusResponse(CamelModel):
    """Tri-state view of a photo's thumbnail."""

    photo_id: str = Field(..., description="Identifier of the source photo")
    state: ThumbnailState
    thumbnail: ThumbnailResponse | None = None

    @property
    def is_ready(self) -> bool:
        return self.state == ThumbnailState.READY

    @property
    def is_pending(self) -> bool:
        return self.state == ThumbnailState.PENDING

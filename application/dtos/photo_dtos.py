from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from domain.value_objects.dimensions import Dimensions


class CamelModel(BaseModel):
    """Base DTO serialised with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PhotoUploadForm(CamelModel):
    """JSON document carried in the ``data`` field of a photo upload."""

    owner_ref: str = Field(..., description="Identifier of the business owning the photo")
    caption: str | None = Field(None, description="Optional caption")


class UploadPhotoRequest(BaseModel):
    """Request DTO for ingesting a photo."""

    owner_ref: str = Field(..., description="Identifier of the business owning the photo")
    content_type: str | None = Field(None, description="MIME type declared by the upload")
    filename: str | None = Field(None, description="Original filename of the upload")
    caption: str | None = Field(None, description="Optional caption")


class PhotoLinks(CamelModel):
    photo: str = Field(..., description="Link to the photo metadata")
    business: str = Field(..., description="Link to the owning business")


class UploadPhotoResponse(CamelModel):
    """Response DTO returned once the original photo is stored."""

    id: str = Field(..., description="Identifier assigned by the blob store")
    links: PhotoLinks


class PhotoResponse(CamelModel):
    """Response DTO representing a stored original photo."""

    id: str = Field(..., description="Identifier assigned by the blob store")
    url: str = Field(..., description="URL streaming the photo bytes")
    content_type: str = Field(..., description="Stored MIME type")
    owner_ref: str | None = Field(None, description="Identifier of the owning business")
    caption: str | None = Field(None, description="Optional caption")
    size: int | None = Field(None, description="Size of the photo in bytes")
    dimensions: Dimensions | None = Field(
        None,
        description="Pixel size, recorded once the thumbnail has been produced",
    )
    derived_attributes: dict[str, Any] = Field(
        default_factory=dict,
        description="Attributes written by the thumbnail producer",
    )

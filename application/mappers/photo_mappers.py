from application.dtos.photo_dtos import PhotoResponse
from application.dtos.thumbnail_dtos import ThumbnailResponse
from application.ports.blob_store import StoredBlob
from domain.value_objects.dimensions import Dimensions

ORIGINALS_MEDIA_PATH = "/media/photos"
THUMBNAILS_MEDIA_PATH = "/media/thumbs"

# Metadata keys written at upload time; anything else was added by the thumbnail producer.
_UPLOAD_METADATA_KEYS = frozenset(
    {"content_type", "owner_ref", "original_filename", "caption", "size", "dimensions"},
)


class PhotoMapper:
    @staticmethod
    def to_photo_response(blob: StoredBlob) -> PhotoResponse:
        """Map a stored original to a PhotoResponse DTO.

        The storage path never leaves this layer; callers only see the media URL.
        """
        metadata = blob.metadata
        dimensions = metadata.get("dimensions")
        return PhotoResponse(
            id=blob.id,
            url=f"{ORIGINALS_MEDIA_PATH}/{blob.filename}",
            content_type=blob.content_type,
            owner_ref=metadata.get("owner_ref"),
            caption=metadata.get("caption"),
            size=metadata.get("size", blob.size_bytes),
            dimensions=Dimensions(**dimensions) if dimensions else None,
            derived_attributes={
                key: value
                for key, value in metadata.items()
                if key not in _UPLOAD_METADATA_KEYS
            },
        )

    @staticmethod
    def to_thumbnail_response(blob: StoredBlob) -> ThumbnailResponse:
        return ThumbnailResponse(
            id=blob.id,
            url=f"{THUMBNAILS_MEDIA_PATH}/{blob.filename}",
            original_ref=blob.metadata.get("original_ref"),
        )

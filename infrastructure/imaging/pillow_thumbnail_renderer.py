from __future__ import annotations

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from application.ports.thumbnail_renderer import RenderedThumbnail, ThumbnailRenderer
from domain.exceptions import ValidationError
from domain.value_objects.dimensions import Dimensions
from domain.value_objects.mime_type import MimeType


class PillowThumbnailRenderer(ThumbnailRenderer):
    """Render JPEG thumbnails bounded by a square box, keeping the aspect ratio."""

    def __init__(self, max_size: int = 100, *, quality: int = 85) -> None:
        self.max_size = max_size
        self.quality = quality

    def render(self, data: bytes) -> RenderedThumbnail:
        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                source = Dimensions(width=img.width, height=img.height)
                out = img.convert("RGB")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            msg = f"Not a decodable image: {e!s}"
            raise ValidationError(msg) from e

        out.thumbnail((self.max_size, self.max_size))
        buffer = BytesIO()
        out.save(buffer, format="JPEG", quality=self.quality)

        return RenderedThumbnail(
            data=buffer.getvalue(),
            content_type=MimeType.JPEG.value,
            source_dimensions=source,
        )

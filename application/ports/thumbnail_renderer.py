from dataclasses import dataclass
from typing import Protocol

from domain.value_objects.dimensions import Dimensions


@dataclass(frozen=True)
class RenderedThumbnail:
    data: bytes
    content_type: str
    source_dimensions: Dimensions


class ThumbnailRenderer(Protocol):
    def render(self, data: bytes) -> RenderedThumbnail:
        """Produce a thumbnail from encoded image bytes.

        Raises:
            ValidationError: If the bytes cannot be decoded as an image.

        """
        ...

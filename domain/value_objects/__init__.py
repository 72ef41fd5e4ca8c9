from .bucket import Bucket
from .dimensions import Dimensions
from .mime_type import MimeType
from .thumbnail_state import ThumbnailState

__all__ = [
    "Bucket",
    "Dimensions",
    "MimeType",
    "ThumbnailState",
]

from enum import Enum


class ThumbnailState(str, Enum):
    """Enumerate the possible states of a photo's thumbnail."""

    READY = "READY"
    PENDING = "PENDING"
    ABSENT = "ABSENT"

from enum import Enum


class Bucket(str, Enum):
    """Isolated blob store namespaces."""

    ORIGINALS = "photos"
    DERIVED = "thumbs"

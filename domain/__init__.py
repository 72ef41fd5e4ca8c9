"""Domain layer exports."""

from domain.exceptions import (
    DomainError,
    InfrastructureError,
    NotFoundError,
    QueueError,
    StorageError,
    ValidationError,
)
from domain.value_objects import Bucket, Dimensions, MimeType, ThumbnailState

__all__ = [
    "Bucket",
    "Dimensions",
    "DomainError",
    "InfrastructureError",
    "MimeType",
    "NotFoundError",
    "QueueError",
    "StorageError",
    "ThumbnailState",
    "ValidationError",
]

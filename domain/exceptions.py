"""Domain exceptions for business rule violations."""


class DomainError(Exception):
    """Base exception for domain layer."""


class ValidationError(DomainError):
    """Raised when input validation fails."""


class NotFoundError(DomainError):
    """Raised when a stored object does not exist or its identifier is malformed."""


class InfrastructureError(DomainError):
    """Raised when infrastructure operations fail (DB, network, etc.)."""


class StorageError(InfrastructureError):
    """Raised when the blob store is unavailable or an I/O operation fails."""


class QueueError(InfrastructureError):
    """Raised when a job cannot be handed to the job queue."""

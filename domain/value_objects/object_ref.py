import re

from domain.exceptions import NotFoundError, ValidationError

_OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def is_object_id(value: object) -> bool:
    """Check whether value has the 24 hex character identifier format."""
    return isinstance(value, str) and bool(_OBJECT_ID_PATTERN.match(value))


def parse_owner_ref(value: object) -> str:
    """Validate a reference to the owning business.

    Raises:
        ValidationError: If the reference is missing or malformed.

    """
    if not is_object_id(value):
        msg = f"ownerRef must be a 24 character hex identifier, got {value!r}"
        raise ValidationError(msg)
    return value.lower()


def parse_blob_id(value: object) -> str:
    """Validate a stored object identifier.

    Identifiers are opaque to callers, so a malformed one is reported the
    same way as an unknown one.

    Raises:
        NotFoundError: If the identifier is malformed.

    """
    if not is_object_id(value):
        msg = f"No object with id {value!r}"
        raise NotFoundError(msg)
    return value.lower()


def split_filename(filename: str) -> tuple[str, str]:
    """Split a stored filename into ``(stem, extension)``; extension may be empty."""
    stem, dot, extension = filename.rpartition(".")
    if not dot:
        return filename, ""
    return stem, extension

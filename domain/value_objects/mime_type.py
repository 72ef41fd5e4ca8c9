from enum import Enum

from domain.exceptions import ValidationError


class MimeType(str, Enum):
    """Represent supported MIME types for uploaded photos."""

    JPEG = "image/jpeg"
    PNG = "image/png"

    @property
    def extension(self) -> str:
        """File extension used for stored filenames and media URLs."""
        return _EXTENSIONS[self]

    @classmethod
    def parse(cls, value: str | None) -> "MimeType":
        """Return the matching member or raise ValidationError for anything else."""
        try:
            return cls(value)
        except ValueError:
            msg = f"Unsupported content type: {value!r}"
            raise ValidationError(msg) from None


_EXTENSIONS = {
    MimeType.JPEG: "jpg",
    MimeType.PNG: "png",
}

from dataclasses import dataclass
from typing import Literal

ErrorCategory = Literal["validation", "not_found", "storage"]


@dataclass(frozen=True)
class AppError:
    """Failure value carried by use case results.

    ``storage`` failures may succeed on retry; the other categories never do.
    """

    category: ErrorCategory
    message: str

    @property
    def retryable(self) -> bool:
        return self.category == "storage"

    def __str__(self) -> str:
        return self.message

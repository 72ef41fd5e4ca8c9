from typing import Protocol


class StagedUpload(Protocol):
    """A multipart file part already spooled by the web framework.

    ``fastapi.UploadFile`` satisfies this protocol.
    """

    filename: str | None
    content_type: str | None

    async def read(self, size: int = -1) -> bytes: ...

    async def close(self) -> None: ...

"""Shared test fixtures and configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from infrastructure.blob_stores.fsspec_blob_store import FsspecBlobStore
from tests.mocks import make_image_bytes

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def owner_ref() -> str:
    """Return a well-formed business identifier."""
    return "507f191e810c19729de860ea"


@pytest.fixture
def blob_store(tmp_path: Path) -> FsspecBlobStore:
    """Create a blob store rooted in a per-test directory."""
    return FsspecBlobStore((tmp_path / "blobs").as_uri(), chunk_size=64 * 1024)


@pytest.fixture
def jpeg_bytes() -> bytes:
    """Encode a small solid-colour JPEG."""
    return make_image_bytes("JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    """Encode a small solid-colour PNG."""
    return make_image_bytes("PNG", size=(300, 200))

"""FastAPI dependency injection integration with Lagom."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from lagom import Container

from infrastructure.di.container import create_container


@lru_cache
def get_container() -> Container:
    """Get the DI container instance.

    Cached so store and queue clients are shared by every request.
    """
    return create_container()


ContainerDep = Annotated[Container, Depends(get_container)]

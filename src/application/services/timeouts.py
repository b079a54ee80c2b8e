"""
Bounded waits around adapter calls.

Every storage and metadata call made by the engines goes through one of
these helpers so a hung backend surfaces as a typed timeout instead of a
stuck request.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from src.infrastructure.exceptions import (DatabaseTimeoutError,
                                           StorageTimeoutError)

T = TypeVar("T")


async def storage_call(awaitable: Awaitable[T], operation: str, timeout: float) -> T:
    """Await a storage adapter call, raising StorageTimeoutError past ``timeout``."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as e:
        raise StorageTimeoutError(operation, timeout) from e


async def metadata_call(awaitable: Awaitable[T], operation: str, timeout: float) -> T:
    """Await a metadata store call, raising DatabaseTimeoutError past ``timeout``."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as e:
        raise DatabaseTimeoutError(operation, timeout) from e

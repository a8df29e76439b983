"""Shared utilities for container operations."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar
from urllib.parse import quote

from ...models.errors import OperationTimeout

T = TypeVar("T")


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: Optional[float],
    operation: str,
    error_factory: Optional[Callable[[], Exception]] = None,
) -> T:
    """
    Await ``awaitable``, bounded by ``timeout`` seconds when one is given.

    Args:
        awaitable: Coroutine to run
        timeout: Deadline in seconds, None waits forever
        operation: Name used in the default timeout error
        error_factory: Builds the exception raised on timeout

    Returns:
        Result of the awaitable
    """
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        if error_factory is not None:
            raise error_factory() from None
        raise OperationTimeout(operation, timeout) from None


def quote_id(identifier: str) -> str:
    """Escape an id or name for use as a path segment."""
    return quote(identifier, safe="")

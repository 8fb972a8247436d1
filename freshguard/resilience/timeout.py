"""Timeout wrapping for asynchronous operations."""

import asyncio
from typing import Awaitable, TypeVar

from freshguard.monitoring.domain.exceptions import OperationTimeoutError

T = TypeVar("T")


async def run_with_timeout(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """
    Await ``awaitable`` for at most ``timeout`` seconds.

    On expiry the pending operation is cancelled and its late result, if any,
    is discarded. Backends decide whether cancellation actually stops the
    underlying work.

    Raises:
        OperationTimeoutError: carrying the operation name and the limit
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except OperationTimeoutError:
        # Raised by a nested, tighter timeout; keep its operation name.
        raise
    except asyncio.TimeoutError as e:
        raise OperationTimeoutError(operation, timeout) from e

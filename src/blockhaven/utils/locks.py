"""Concurrency control for shared engine state.

Provides named asyncio locks so read-modify-write sequences on shared records
(the active rate lock) never interleave across tasks.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: resource name -> asyncio.Lock
_resource_locks: dict[str, asyncio.Lock] = {}
_registry_lock = asyncio.Lock()


async def get_resource_lock(name: str) -> asyncio.Lock:
    """Get or create a lock for a named resource.

    Args:
        name: Resource name (e.g. "rate_lock")

    Returns:
        asyncio.Lock for the resource
    """
    async with _registry_lock:
        if name not in _resource_locks:
            _resource_locks[name] = asyncio.Lock()
        return _resource_locks[name]


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


@asynccontextmanager
async def resource_lock(
    name: str,
    timeout: Optional[float] = 10.0,
    operation: str = "update",
):
    """Hold exclusive access to a named resource.

    Args:
        name: Resource name
        timeout: Maximum time to wait for lock (None = wait forever)
        operation: Description for logging

    Example:
        async with resource_lock("rate_lock", operation="capture"):
            # Atomic read-modify-write here
            pass
    """
    lock = await get_resource_lock(name)
    acquired = False

    try:
        if timeout:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()
        acquired = True
    except asyncio.TimeoutError:
        logger.warning(f"Lock timeout for {name} after {timeout}s: {operation}")
        raise LockTimeoutError(f"Could not acquire lock {name} within {timeout}s")

    logger.debug(f"Lock acquired for {name}: {operation}")
    try:
        yield
    finally:
        if acquired:
            lock.release()
            logger.debug(f"Lock released for {name}: {operation}")


def clear_resource_locks() -> None:
    """Clear all resource locks (useful for testing)."""
    _resource_locks.clear()

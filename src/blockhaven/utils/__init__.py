"""Utility modules for BlockHaven."""

from blockhaven.utils.locks import LockTimeoutError, get_resource_lock, resource_lock

__all__ = ["LockTimeoutError", "get_resource_lock", "resource_lock"]

"""Shared concurrency primitives for the ingestion and retrieval pipeline.

Two patterns are exposed:

1. **with_timeout** -- wraps every external call (storage download,
   embedding request, completion request, database I/O) in
   ``asyncio.wait_for`` and converts a timeout into the retryable
   :class:`~initiative_rag.utils.errors.ProviderTimeoutError`.

2. **KeyedLock** -- per-key mutual exclusion.  The index writer holds the
   lock for an initiative id across its delete-then-insert sequence so two
   concurrent reindex calls for the same initiative never interleave.
   Calls for different initiatives proceed independently.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, TypeVar

import structlog

from initiative_rag.utils.errors import ProviderTimeoutError
from initiative_rag.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def with_timeout(
    awaitable: Awaitable[_T],
    seconds: float | None,
    provider_name: str | None = None,
    operation: str = "external call",
) -> _T:
    """Await *awaitable*, raising :class:`ProviderTimeoutError` after *seconds*.

    Parameters
    ----------
    awaitable:
        The coroutine or future to await.
    seconds:
        Timeout in seconds.  ``None`` or a non-positive value disables the
        timeout.
    provider_name:
        Collaborator name attached to the raised error.
    operation:
        Short description used in the error message and log event.

    Returns
    -------
    _T
        Whatever *awaitable* returns.
    """
    if seconds is None or seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        _logger.warning(
            "external_call_timeout",
            operation=operation,
            provider=provider_name,
            timeout_seconds=seconds,
        )
        raise ProviderTimeoutError(
            message=f"{operation} timed out after {seconds:g}s",
            provider_name=provider_name,
        ) from exc


class KeyedLock:
    """A family of :class:`asyncio.Lock` objects addressed by string key.

    Locks are created on first use and dropped once no task holds or waits
    on them, so the registry only grows with the number of keys in flight.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for *key* for the duration of the ``async with`` block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

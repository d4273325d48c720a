"""Helpers for fire-and-forget coroutines."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)

_pending: set[asyncio.Task[Any]] = set()


def fire_and_forget(coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task[Any] | None:
    """Schedule ``coro`` without awaiting it; failures are logged, never raised.

    Without a running loop the coroutine is run to completion in place.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        try:
            asyncio.run(coro)
        except Exception:
            logger.warning("Background task failed: %s", description, exc_info=True)
        return None

    task = loop.create_task(coro, name=description)
    _pending.add(task)
    task.add_done_callback(lambda done: _finish(done, description))
    return task


def _finish(task: asyncio.Task[Any], description: str) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Background task failed: %s (%s)", description, exc)


async def drain_pending() -> None:
    """Wait for every scheduled background task; used on shutdown and in tests."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)

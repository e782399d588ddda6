"""Cooperative cancellation shared by every network call of a run.

A run owns exactly one ``CancelToken``. ``abort()`` and the turn cap both trip
it; extraction and search race each remote call against it so an in-flight
request is dropped as soon as the run is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from .exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """Per-run cancellation signal backed by an ``asyncio.Event``."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        """Trip the token. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        logger.debug(f"Cancel token tripped: {reason}")

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"Operation cancelled: {self.reason}")

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token trips first.

        Raises:
            OperationCancelledError: If the token is (or becomes) cancelled;
                the pending work is cancelled before raising.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        try:
            await work
        except (asyncio.CancelledError, Exception):
            pass
        raise OperationCancelledError(f"Operation cancelled: {self.reason}")


async def guarded(awaitable: Awaitable[T], cancel: Optional[CancelToken]) -> T:
    """Await ``awaitable`` under ``cancel`` when one is given."""
    if cancel is None:
        return await awaitable
    return await cancel.guard(awaitable)

"""
Cooperative cancellation and suspension-point helpers for the task loop.

The loop suspends only at named points (model call, browser action, timer).
Each point checks the cancellation token before and after awaiting, so a
cancelled task stops at the next point and discards any late result.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from browser_pilot.exceptions import TaskCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Flag shared between the caller and the loop. Never interrupts an await by itself."""

    def __init__(self):
        self._cancelled = False
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Task cancelled") -> None:
        if not self._cancelled:
            logger.info(f"Cancellation requested: {reason}")
        self._cancelled = True
        self._reason = self._reason or reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str:
        return self._reason or "Task cancelled"

    def raise_if_cancelled(self, point: str = "") -> None:
        if self._cancelled:
            raise TaskCancelled(f"{self.reason} (at {point})" if point else self.reason)


async def suspension_point(token: Optional[CancellationToken], point: str, awaitable: Awaitable[T]) -> T:
    """Await ``awaitable`` as a named suspension point, honouring cancellation on both sides."""
    if token is not None and token.cancelled:
        # Close un-awaited coroutines so they do not warn
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancelled(point)
    result = await awaitable
    if token is not None:
        token.raise_if_cancelled(point)
    return result


async def cancellable_sleep(token: Optional[CancellationToken], seconds: float, point: str = "timer") -> None:
    await suspension_point(token, point, asyncio.sleep(max(0.0, seconds)))

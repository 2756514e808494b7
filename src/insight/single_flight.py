from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class FlightState(StrEnum):
    EMPTY = "empty"
    IN_PROGRESS = "in_progress"
    READY = "ready"


class SingleFlight(Generic[T]):
    """
    A cell that is empty, in progress or ready.

    Callers arriving while a creation is running await the same task instead of
    starting their own. A failed creation leaves the cell empty again.
    """

    def __init__(self) -> None:
        self._task: asyncio.Future[T] | None = None

    @property
    def state(self) -> FlightState:
        if self._task is None:
            return FlightState.EMPTY
        if self._task.done():
            return FlightState.READY
        return FlightState.IN_PROGRESS

    def peek(self) -> T | None:
        """Return the ready value without waiting, or None."""
        task = self._task
        if task is None or not task.done() or task.cancelled() or task.exception():
            return None
        return task.result()

    def seed(self, value: T) -> None:
        """Put an already known value into the cell."""
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        future.set_result(value)
        self._task = future

    async def get(self, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._task
        if task is None:
            task = asyncio.ensure_future(factory())
            self._task = task
        try:
            # shield: one cancelled caller must not cancel the shared creation
            return await asyncio.shield(task)
        except BaseException:
            if task.done() and self._task is task:
                self._task = None
            raise

    def invalidate(self, expected: T | None = None) -> bool:
        """
        Empty the cell. With ``expected`` the cell is only emptied while it still
        holds that value, so a fresh creation started by another caller survives.
        """
        if expected is not None and self.peek() != expected:
            return False
        self._task = None
        return True

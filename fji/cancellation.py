"""Cooperative cancellation tokens for superseded searches."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from fji.errors import RequestCancelled

T = TypeVar("T")


class CancellationToken:
    """Handle identifying one dispatched search.

    A token stays active until it is cancelled or its source issues a newer
    one. Code that mutates shared state checks ``is_active`` first.

    Example:
        tokens = TokenSource()
        first = tokens.issue()
        second = tokens.issue()
        assert not first.is_active and second.is_active
    """

    def __init__(self, source: "TokenSource", serial: int) -> None:
        self._source = source
        self.serial = serial
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def is_active(self) -> bool:
        """True while this is the newest token and it has not been cancelled."""
        return not self.is_cancelled and self._source.current is self

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        """Wait until cancellation is requested."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise RequestCancelled(f"request #{self.serial} was cancelled")

    async def guard(self, aw: Awaitable[T]) -> T:
        """Await ``aw`` unless the token is cancelled first.

        On cancellation the underlying task is cancelled and RequestCancelled
        is raised. If both finish in the same loop iteration the result wins;
        callers still check ``is_active`` before using it.
        """
        task = asyncio.ensure_future(aw)
        if self.is_cancelled:
            task.cancel()
            raise RequestCancelled(f"request #{self.serial} was cancelled")
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()
        task.cancel()
        raise RequestCancelled(f"request #{self.serial} was cancelled")

    async def sleep(self, delay: float) -> None:
        await self.guard(asyncio.sleep(delay))


class TokenSource:
    """Issues monotonically numbered tokens; issuing one cancels its predecessor."""

    def __init__(self) -> None:
        self._serial = 0
        self.current: CancellationToken | None = None

    def issue(self) -> CancellationToken:
        self.cancel()
        self._serial += 1
        self.current = CancellationToken(self, self._serial)
        return self.current

    def cancel(self) -> None:
        if self.current is not None:
            self.current.cancel()

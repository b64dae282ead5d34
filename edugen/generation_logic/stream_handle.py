"""Append-only, single-consumer output channel with a one-shot terminal state."""

import asyncio
import logging
from collections.abc import AsyncIterator
from enum import Enum
from typing import Generic
from typing import TypeVar

__all__ = ["StreamHandle", "StreamState"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()


class StreamState(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"
    FAILED = "failed"


class StreamHandle(Generic[T]):
    """Producer-side handle plus async iterator for the single consumer.

    The producer calls ``append`` any number of times followed by exactly one
    of ``complete`` or ``fail``. Once a terminal call has been applied every
    further call is ignored, so two code paths racing to close the same
    stream are harmless.

    With ``keep_history=False`` the handle behaves as a snapshot stream: only
    the latest value is retained, and values the consumer has not read yet
    are replaced by newer ones.
    """

    def __init__(self, name: str, keep_history: bool = True):
        self.name = name
        self.keep_history = keep_history
        self.state = StreamState.OPEN
        self.error: BaseException | None = None
        self.values: list[T] = []
        self.appended = 0
        self._latest: T | None = None
        self._queue: asyncio.Queue = asyncio.Queue()

    @property
    def closed(self) -> bool:
        return self.state is not StreamState.OPEN

    @property
    def latest(self) -> T | None:
        return self._latest

    def append(self, value: T) -> None:
        if self.closed:
            logger.debug("Ignoring append on %s stream (already %s)", self.name, self.state.value)
            return
        self.appended += 1
        self._latest = value
        if self.keep_history:
            self.values.append(value)
        else:
            while not self._queue.empty():
                self._queue.get_nowait()
        self._queue.put_nowait(value)

    def complete(self) -> None:
        if self.closed:
            logger.debug("Ignoring complete on %s stream (already %s)", self.name, self.state.value)
            return
        self.state = StreamState.COMPLETED
        self._queue.put_nowait(_END)

    def fail(self, error: BaseException) -> None:
        if self.closed:
            logger.debug("Ignoring fail on %s stream (already %s)", self.name, self.state.value)
            return
        self.state = StreamState.FAILED
        self.error = error
        self._queue.put_nowait(_END)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[T]:
        while True:
            item = await self._queue.get()
            if item is _END:
                break
            yield item
        if self.state is StreamState.FAILED and self.error is not None:
            raise self.error

    def __repr__(self) -> str:
        return f"StreamHandle(name={self.name!r}, state={self.state.value}, appended={self.appended})"

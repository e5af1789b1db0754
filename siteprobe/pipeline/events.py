"""Progress events and the channel the scheduler publishes them on."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Any, AsyncIterator, Literal, Union

from pydantic import BaseModel, Field

from .models import FailureRecord, ProbeResult

logger = logging.getLogger(__name__)


class CurrentEvent(BaseModel):
    """A probe is about to start."""

    type: Literal["current"] = "current"
    current_url: str
    current_index: int
    total_urls: int


class CompletedEvent(BaseModel):
    type: Literal["completed"] = "completed"
    index: int
    result: ProbeResult


class FailedEvent(BaseModel):
    """An item ended in a FailureRecord.

    Each index gets at most one completed or failed event. If a batch fails
    after some of its items already reported, only the rest get a failed
    event; the snapshot still holds the batch failure for every item.
    """

    type: Literal["failed"] = "failed"
    index: int
    result: FailureRecord


class DoneEvent(BaseModel):
    """Terminal event of a run; ``statistics`` is a RunStatistics dump."""

    type: Literal["done"] = "done"
    run_id: str
    cancelled: bool = False
    statistics: dict[str, Any] = {}


ProgressEvent = Annotated[
    Union[CurrentEvent, CompletedEvent, FailedEvent, DoneEvent],
    Field(discriminator="type"),
]


class ProgressChannel:
    """Unbounded queue of progress events with an end-of-stream marker.

    The scheduler only ever pushes; readers iterate with ``async for`` until
    :meth:`close` has been called and the backlog is drained.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: ProgressEvent) -> None:
        if self._closed:
            raise RuntimeError("progress channel is closed")
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    def drain(self) -> list[ProgressEvent]:
        """Return every event currently queued without waiting."""
        events: list[ProgressEvent] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is None:
                continue
            events.append(item)
        return events

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is None:
                break
            yield item


def emit_event(channel: ProgressChannel | None, event: ProgressEvent) -> None:
    """Publish a progress event if a channel is attached."""
    if channel is not None:
        logger.debug("progress event emitted", extra={"event": event.type})
        channel.publish(event)

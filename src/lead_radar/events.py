# events.py
"""Streaming progress channel for lead runs.

Events are logged, kept in order and pushed to an asyncio queue that
``stream()`` drains as server-sent event frames. The ``complete`` event
is terminal: nothing can be emitted after it.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, List, Optional

from .logging_utils import get_logger
from .models import EventType, ProgressEvent, RunSummary

_LOG_LEVELS = {
    EventType.INFO: logging.INFO,
    EventType.SUCCESS: logging.INFO,
    EventType.WARNING: logging.WARNING,
    EventType.ERROR: logging.ERROR,
    EventType.COMPLETE: logging.INFO,
}


class ChannelClosedError(RuntimeError):
    """Raised when emitting after the terminal ``complete`` event."""

    pass


class ProgressChannel:
    """Ordered progress events for one run.

    Attributes:
        events: Every event emitted so far.
    """

    def __init__(self, sink: Optional[Callable[[ProgressEvent], None]] = None):
        """Initialize the channel.

        Args:
            sink: Optional callback invoked with each event, e.g. to print
                SSE frames as they are produced.
        """
        self.logger = get_logger(__name__)
        self.events: List[ProgressEvent] = []
        self._sink = sink
        self._queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(
        self, event_type: EventType, message: str, data: Optional[Any] = None
    ) -> ProgressEvent:
        """Emit an event.

        Raises:
            ChannelClosedError: If the run already completed.
        """
        if self._closed:
            raise ChannelClosedError(f"Channel closed, dropped event: {message}")

        event = ProgressEvent(type=event_type, message=message, data=data)
        self.events.append(event)
        self.logger.log(
            _LOG_LEVELS[event_type],
            message,
            extra={"event_type": event_type.value},
        )

        if self._sink is not None:
            self._sink(event)
        self._queue.put_nowait(event)

        if event_type == EventType.COMPLETE:
            self._closed = True
        return event

    def info(self, message: str, data: Optional[Any] = None) -> ProgressEvent:
        return self.emit(EventType.INFO, message, data)

    def success(self, message: str, data: Optional[Any] = None) -> ProgressEvent:
        return self.emit(EventType.SUCCESS, message, data)

    def warning(self, message: str, data: Optional[Any] = None) -> ProgressEvent:
        return self.emit(EventType.WARNING, message, data)

    def error(self, message: str, data: Optional[Any] = None) -> ProgressEvent:
        return self.emit(EventType.ERROR, message, data)

    def complete(self, summary: RunSummary, message: str = "Résumé") -> ProgressEvent:
        """Emit the terminal event carrying the run tally."""
        return self.emit(EventType.COMPLETE, message, summary.model_dump())

    def of_type(self, event_type: EventType) -> List[ProgressEvent]:
        return [event for event in self.events if event.type == event_type]

    async def stream(self) -> AsyncIterator[str]:
        """Yield SSE frames until the ``complete`` event has been sent."""
        while True:
            event = await self._queue.get()
            yield event.to_sse()
            if event.type == EventType.COMPLETE:
                return

import asyncio
from abc import ABC, abstractmethod

from image_relay.logging.logger import Log
from image_relay.upload.models import ProgressEvent


class ProgressSink(ABC):
    """Receives progress events from the orchestrator. Must not block."""

    @abstractmethod
    def emit(self, event: ProgressEvent) -> None:
        raise NotImplementedError


class NullProgressSink(ProgressSink):
    def emit(self, event: ProgressEvent) -> None:
        return None


class LoggingProgressSink(ProgressSink):
    """Writes each event to the application log, tagged with the upload's filename."""

    def __init__(self, label: str) -> None:
        self._label = label

    def emit(self, event: ProgressEvent) -> None:
        Log.info(
            f"[{self._label}] {event.service}: {event.status.value} ({event.percentage}%)"
        )


class QueueProgressSink(ProgressSink):
    """Puts events on an asyncio queue for a separate consumer.

    When the queue is full the oldest event is dropped; progress is advisory.
    """

    def __init__(self, queue: "asyncio.Queue[ProgressEvent] | None" = None) -> None:
        self.queue: asyncio.Queue[ProgressEvent] = queue if queue is not None else asyncio.Queue()

    def emit(self, event: ProgressEvent) -> None:
        if self.queue.full():
            self.queue.get_nowait()
        self.queue.put_nowait(event)


class FanOutProgressSink(ProgressSink):
    def __init__(self, *sinks: ProgressSink) -> None:
        self._sinks = sinks

    def emit(self, event: ProgressEvent) -> None:
        for sink in self._sinks:
            sink.emit(event)

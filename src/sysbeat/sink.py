"""Event sinks: where the sampler delivers events."""

import json
from queue import Queue
from typing import Protocol, TextIO

from sysbeat.errors import SinkError
from sysbeat.models import Event


class EventSink(Protocol):
    """
    Accepts one event per call.

    ``send`` raises SinkError when the event could not be delivered. It runs
    inline in the sampling loop, so a send that blocks stalls sampling.
    """

    def send(self, event: Event) -> None: ...


class QueueSink:
    """
    Puts events on a thread-safe Queue.

    Blocks while a bounded queue is full. There is no timeout: a consumer that
    stops draining the queue stalls the sampler until it resumes.
    """

    def __init__(self, queue: "Queue[Event]") -> None:
        self._queue = queue

    @property
    def queue(self) -> "Queue[Event]":
        return self._queue

    def send(self, event: Event) -> None:
        self._queue.put(event)


class JsonLinesSink:
    """Writes each event as one JSON document per line and flushes."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def send(self, event: Event) -> None:
        try:
            self._stream.write(json.dumps(event.to_dict()) + "\n")
            self._stream.flush()
        except (OSError, TypeError, ValueError) as e:
            raise SinkError(f"Failed to write {type(event).__name__}: {e}") from e


class NullSink:
    """Drops every event. Used when publishing is disabled."""

    def __init__(self) -> None:
        self.dropped = 0

    def send(self, event: Event) -> None:
        self.dropped += 1

"""Tests for event sinks."""

import io
import json
import threading
from datetime import datetime, timezone
from queue import Queue

import pytest

from conftest import make_process
from sysbeat.errors import SinkError
from sysbeat.models import ProcEvent
from sysbeat.sink import JsonLinesSink, NullSink, QueueSink


def make_event(pid: int = 1) -> ProcEvent:
    return ProcEvent(
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        process=make_process(pid=pid),
        cpu_user_percent=1.5,
        rss_percent=0.25,
    )


def test_queue_sink_puts_events():
    queue: Queue = Queue()
    sink = QueueSink(queue)

    sink.send(make_event(1))
    sink.send(make_event(2))

    assert sink.queue is queue
    assert queue.get_nowait().process.pid == 1
    assert queue.get_nowait().process.pid == 2


def test_queue_sink_blocks_when_full():
    """Test a full bounded queue blocks the sender until drained."""
    queue: Queue = Queue(maxsize=1)
    sink = QueueSink(queue)
    sink.send(make_event(1))

    done = threading.Event()

    def send_second():
        sink.send(make_event(2))
        done.set()

    sender = threading.Thread(target=send_second, daemon=True)
    sender.start()

    assert not done.wait(timeout=0.2)
    queue.get_nowait()
    assert done.wait(timeout=2.0)
    sender.join(timeout=1.0)


def test_json_lines_sink_writes_one_line_per_event():
    stream = io.StringIO()
    sink = JsonLinesSink(stream)

    sink.send(make_event(1))
    sink.send(make_event(2))

    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["type"] == "proc"
    assert first["proc"]["pid"] == 1
    assert first["proc"]["cpu"]["user_p"] == 1.5


def test_json_lines_sink_wraps_write_errors():
    stream = io.StringIO()
    stream.close()
    sink = JsonLinesSink(stream)

    with pytest.raises(SinkError):
        sink.send(make_event())


def test_null_sink_counts_drops():
    sink = NullSink()
    sink.send(make_event())
    sink.send(make_event())
    assert sink.dropped == 2

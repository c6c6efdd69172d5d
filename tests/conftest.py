"""Shared fakes and fixtures for the sysbeat test suite."""

import pytest

from sysbeat.errors import ProcessGone, ProviderError, SinkError
from sysbeat.models import CpuTimes, MemStat, ProcessSnapshot, SystemLoad


def make_cpu(user: int = 0, idle: int = 0, system: int = 0) -> CpuTimes:
    return CpuTimes(
        user=user, nice=0, system=system, idle=idle, iowait=0, irq=0, softirq=0, steal=0
    )


def make_process(
    pid: int = 100,
    name: str = "worker",
    cpu_user: int = 0,
    cpu_system: int = 0,
    capture_time: int = 0,
    mem_rss: int = 1_000_000,
    create_time: float = 1.0,
) -> ProcessSnapshot:
    return ProcessSnapshot(
        pid=pid,
        ppid=1,
        name=name,
        state="sleeping",
        cpu_user=cpu_user,
        cpu_system=cpu_system,
        mem_size=2 * mem_rss,
        mem_rss=mem_rss,
        mem_share=0,
        capture_time=capture_time,
        create_time=create_time,
    )


class FakeSystemSource:
    """Returns queued CpuTimes in order; repeats the last one when exhausted."""

    def __init__(self, cpu_times: list[CpuTimes] | None = None, cores: int = 4) -> None:
        self.cpu_times_queue = list(cpu_times or [make_cpu(user=0, idle=0)])
        self.cores = cores
        self.fail = False

    def load(self) -> SystemLoad:
        if self.fail:
            raise ProviderError("load average: boom")
        return SystemLoad(load1=0.5, load5=0.25, load15=0.1, procs_total=3)

    def cpu_times(self) -> CpuTimes:
        if len(self.cpu_times_queue) > 1:
            return self.cpu_times_queue.pop(0)
        return self.cpu_times_queue[0]

    def cpu_count(self) -> int:
        return self.cores


class FakeMemorySource:
    def __init__(self, total: int = 10_000_000, used: int = 4_000_000) -> None:
        self.total = total
        self.used = used
        self.fail = False

    def memory(self) -> MemStat:
        if self.fail:
            raise ProviderError("memory: boom")
        free = self.total - self.used
        return MemStat(
            total=self.total, used=self.used, free=free, actual_used=self.used, actual_free=free
        )

    def swap(self) -> MemStat:
        if self.fail:
            raise ProviderError("swap: boom")
        return MemStat(total=0, used=0, free=0, actual_used=0, actual_free=0)


class FakeProcessSource:
    """
    Serves scripted process tables.

    Each call to pids() advances to the next table; the last one repeats.
    Pids listed in ``vanished`` raise ProcessGone on fetch.
    """

    def __init__(self, tables: list[list[ProcessSnapshot]]) -> None:
        self.tables = tables
        self.current: dict[int, ProcessSnapshot] = {}
        self.vanished: set[int] = set()
        self.fail = False

    def pids(self) -> list[int]:
        if self.fail:
            raise ProviderError("pid list: boom")
        table = self.tables.pop(0) if len(self.tables) > 1 else self.tables[0]
        self.current = {p.pid: p for p in table}
        return list(self.current)

    def process(self, pid: int) -> ProcessSnapshot:
        if pid in self.vanished:
            raise ProcessGone(pid, "exited")
        return self.current[pid]


class ListSink:
    def __init__(self) -> None:
        self.events = []

    def send(self, event) -> None:
        self.events.append(event)


class BrokenSink:
    def send(self, event) -> None:
        raise SinkError("downstream closed")


@pytest.fixture
def sink() -> ListSink:
    return ListSink()

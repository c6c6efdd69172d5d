"""Data sources queried by the sampler, with psutil-backed implementations."""

import time
from typing import Protocol

import psutil

from sysbeat.errors import ProcessGone, ProcessUnavailable, ProviderError
from sysbeat.models import CpuTimes, MemStat, ProcessSnapshot, SystemLoad


class SystemStatsSource(Protocol):
    """Load averages and system-wide CPU counters."""

    def load(self) -> SystemLoad: ...

    def cpu_times(self) -> CpuTimes: ...

    def cpu_count(self) -> int: ...


class MemoryStatsSource(Protocol):
    """Physical memory and swap totals."""

    def memory(self) -> MemStat: ...

    def swap(self) -> MemStat: ...


class ProcessListSource(Protocol):
    """Process enumeration and per-process snapshots."""

    def pids(self) -> list[int]: ...

    def process(self, pid: int) -> ProcessSnapshot: ...


def _ms(seconds: float) -> int:
    return int(round(seconds * 1000))


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class PsutilSystemSource:
    """SystemStatsSource reading from psutil."""

    def load(self) -> SystemLoad:
        """
        Current load averages and process counts.

        Processes that vanish while being counted are ignored.
        """
        try:
            load1, load5, load15 = psutil.getloadavg()
        except (OSError, psutil.Error) as e:
            raise ProviderError(f"load average: {e}") from e

        counts = {"total": 0, "running": 0, "sleeping": 0, "stopped": 0, "zombie": 0}
        for proc in psutil.process_iter(attrs=["status"]):
            status = proc.info.get("status")
            counts["total"] += 1
            if status == psutil.STATUS_RUNNING:
                counts["running"] += 1
            elif status in (psutil.STATUS_SLEEPING, psutil.STATUS_DISK_SLEEP, psutil.STATUS_IDLE):
                counts["sleeping"] += 1
            elif status in (psutil.STATUS_STOPPED, psutil.STATUS_TRACING_STOP):
                counts["stopped"] += 1
            elif status == psutil.STATUS_ZOMBIE:
                counts["zombie"] += 1

        return SystemLoad(
            load1=load1,
            load5=load5,
            load15=load15,
            procs_total=counts["total"],
            procs_running=counts["running"],
            procs_sleeping=counts["sleeping"],
            procs_stopped=counts["stopped"],
            procs_zombie=counts["zombie"],
        )

    def cpu_times(self) -> CpuTimes:
        """Cumulative CPU counters; categories the platform lacks read as 0."""
        try:
            times = psutil.cpu_times()
        except (OSError, psutil.Error) as e:
            raise ProviderError(f"cpu times: {e}") from e

        return CpuTimes(
            user=_ms(times.user),
            nice=_ms(getattr(times, "nice", 0.0)),
            system=_ms(times.system),
            idle=_ms(times.idle),
            iowait=_ms(getattr(times, "iowait", 0.0)),
            irq=_ms(getattr(times, "irq", 0.0)),
            softirq=_ms(getattr(times, "softirq", 0.0)),
            steal=_ms(getattr(times, "steal", 0.0)),
        )

    def cpu_count(self) -> int:
        """Number of logical CPUs, at least 1."""
        return psutil.cpu_count(logical=True) or 1


class PsutilMemorySource:
    """MemoryStatsSource reading from psutil."""

    def memory(self) -> MemStat:
        """Physical memory; "actual" figures account for reclaimable cache."""
        try:
            mem = psutil.virtual_memory()
        except (OSError, psutil.Error) as e:
            raise ProviderError(f"memory: {e}") from e

        return MemStat(
            total=mem.total,
            used=mem.used,
            free=mem.free,
            actual_used=mem.total - mem.available,
            actual_free=mem.available,
        )

    def swap(self) -> MemStat:
        try:
            swap = psutil.swap_memory()
        except (OSError, psutil.Error) as e:
            raise ProviderError(f"swap: {e}") from e

        return MemStat(
            total=swap.total,
            used=swap.used,
            free=swap.free,
            actual_used=swap.used,
            actual_free=swap.free,
        )


class PsutilProcessSource:
    """ProcessListSource reading from psutil."""

    def pids(self) -> list[int]:
        try:
            return psutil.pids()
        except (OSError, psutil.Error) as e:
            raise ProviderError(f"pid list: {e}") from e

    def process(self, pid: int) -> ProcessSnapshot:
        """
        Snapshot a single process.

        Uses the oneshot() context manager so all attributes come from one read.

        Raises:
            ProcessGone: The process exited (or is a zombie) before it could be read.
            ProcessUnavailable: Access to the process was denied.
        """
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                cpu = proc.cpu_times()
                mem = proc.memory_info()
                snapshot = ProcessSnapshot(
                    pid=pid,
                    ppid=proc.ppid(),
                    name=proc.name() or "",
                    state=proc.status() or "?",
                    cpu_user=_ms(cpu.user),
                    cpu_system=_ms(cpu.system),
                    mem_size=mem.vms,
                    mem_rss=mem.rss,
                    mem_share=getattr(mem, "shared", 0),
                    capture_time=_now_ms(),
                    create_time=proc.create_time(),
                )
        except (psutil.NoSuchProcess, psutil.ZombieProcess) as e:
            # ZombieProcess subclasses NoSuchProcess; both mean the process is gone
            raise ProcessGone(pid, str(e)) from e
        except psutil.AccessDenied as e:
            raise ProcessUnavailable(pid, "access denied") from e

        return snapshot

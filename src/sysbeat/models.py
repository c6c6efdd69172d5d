"""Data models for sysbeat."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass(slots=True, frozen=True)
class CpuTimes:
    """Cumulative system-wide CPU counters, in milliseconds since boot."""

    user: int
    nice: int
    system: int
    idle: int
    iowait: int
    irq: int
    softirq: int
    steal: int

    def total(self) -> int:
        """Sum of all eight counters."""
        return (
            self.user
            + self.nice
            + self.system
            + self.idle
            + self.iowait
            + self.irq
            + self.softirq
            + self.steal
        )


@dataclass(slots=True, frozen=True)
class MemStat:
    """Memory or swap totals in bytes."""

    total: int
    used: int
    free: int
    actual_used: int
    actual_free: int


@dataclass(slots=True, frozen=True)
class SystemLoad:
    """Load averages plus process counts by state."""

    load1: float
    load5: float
    load15: float
    procs_total: int = 0
    procs_running: int = 0
    procs_sleeping: int = 0
    procs_stopped: int = 0
    procs_zombie: int = 0


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable snapshot of a process state."""

    pid: int
    ppid: int
    name: str
    state: str  # 'running', 'sleeping', 'zombie', etc.
    cpu_user: int  # Cumulative milliseconds
    cpu_system: int
    mem_size: int  # Bytes
    mem_rss: int
    mem_share: int
    capture_time: int  # Wall clock, milliseconds since epoch
    create_time: float = 0.0  # Seconds since epoch, 0.0 when unknown


@dataclass(slots=True, frozen=True)
class SystemEvent:
    """System-wide metrics for one tick."""

    timestamp: datetime
    load: SystemLoad
    cpu: CpuTimes
    cpu_user_percent: float
    mem: MemStat
    mem_used_percent: float
    swap: MemStat
    swap_used_percent: float

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the structure handed to serializers."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "type": "system",
            "load": asdict(self.load),
            "cpu": {**asdict(self.cpu), "user_p": self.cpu_user_percent},
            "mem": {**asdict(self.mem), "used_p": self.mem_used_percent},
            "swap": {**asdict(self.swap), "used_p": self.swap_used_percent},
        }


@dataclass(slots=True, frozen=True)
class ProcEvent:
    """Metrics for one matched process for one tick."""

    timestamp: datetime
    process: ProcessSnapshot
    cpu_user_percent: float
    rss_percent: float

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the structure handed to serializers."""
        proc = self.process
        return {
            "timestamp": self.timestamp.isoformat(),
            "type": "proc",
            "proc": {
                "pid": proc.pid,
                "ppid": proc.ppid,
                "name": proc.name,
                "state": proc.state,
                "mem": {
                    "size": proc.mem_size,
                    "rss": proc.mem_rss,
                    "rss_p": self.rss_percent,
                    "share": proc.mem_share,
                },
                "cpu": {
                    "user": proc.cpu_user,
                    "system": proc.cpu_system,
                    "total": proc.cpu_user + proc.cpu_system,
                    "start_time": proc.create_time,
                    "user_p": self.cpu_user_percent,
                },
            },
        }


Event = SystemEvent | ProcEvent

"""Stateful percentage derivation from consecutive snapshots."""

import logging
from collections.abc import Iterable
from enum import Enum

import psutil

from sysbeat.models import CpuTimes, ProcessSnapshot
from sysbeat.rounding import round_half_up

logger = logging.getLogger(__name__)


class CpuPercentMode(Enum):
    """How per-process CPU usage is expressed."""

    SINGLE_CORE = "single_core"  # 100 == one core fully busy
    ALL_CORES = "all_cores"  # Single-core figure times the logical CPU count


class SystemTracker:
    """Holds the previous system-wide CPU snapshot."""

    def __init__(self) -> None:
        self._previous: CpuTimes | None = None

    @property
    def previous(self) -> CpuTimes | None:
        """The current baseline, or None before the first call."""
        return self._previous

    def cpu_percent(self, current: CpuTimes) -> float:
        """
        Share of CPU time spent in user mode since the previous call.

        The first call only stores the baseline and returns 0.0. A zero or
        negative delta over all counters also yields 0.0.
        """
        previous = self._previous
        self._previous = current

        if previous is None:
            return 0.0

        delta_all = current.total() - previous.total()
        delta_user = max(current.user - previous.user, 0)
        if delta_all <= 0:
            return 0.0

        return round_half_up(100 * delta_user / delta_all)

    @staticmethod
    def used_percent(total: int, used: int) -> float:
        """Used share of a memory or swap total; 0.0 when the total is 0."""
        if total == 0:
            return 0.0
        return round_half_up(100 * used / total)


class ProcessTracker:
    """
    Holds the most recent snapshot of every observed process, keyed by pid.

    Every observation overwrites the baseline, whether or not the caller
    reports the process. A baseline whose create_time differs from the new
    snapshot belongs to an earlier process that reused the pid and is
    replaced without producing a delta.
    """

    def __init__(
        self,
        mode: CpuPercentMode = CpuPercentMode.SINGLE_CORE,
        cpu_count: int | None = None,
    ) -> None:
        """
        Initialize the ProcessTracker.

        Args:
            mode: Per-process CPU formula. Default SINGLE_CORE.
            cpu_count: Logical CPU count for ALL_CORES. Detected when None.
        """
        self._mode = mode
        if cpu_count is None and mode is CpuPercentMode.ALL_CORES:
            cpu_count = psutil.cpu_count(logical=True)
        self._cpu_count = cpu_count or 1
        self._procs: dict[int, ProcessSnapshot] = {}

    @property
    def mode(self) -> CpuPercentMode:
        """The per-process CPU formula in use."""
        return self._mode

    def __len__(self) -> int:
        return len(self._procs)

    def __contains__(self, pid: object) -> bool:
        return pid in self._procs

    def get(self, pid: int) -> ProcessSnapshot | None:
        """Return the baseline stored for ``pid``, if any."""
        return self._procs.get(pid)

    def seed(self, snapshots: Iterable[ProcessSnapshot]) -> None:
        """Store initial baselines without computing anything."""
        for snapshot in snapshots:
            self._procs[snapshot.pid] = snapshot

    def observe(self, snapshot: ProcessSnapshot) -> None:
        """Replace the baseline for a process that is not being reported."""
        self._procs[snapshot.pid] = snapshot

    def cpu_percent(self, current: ProcessSnapshot) -> float:
        """
        CPU usage of a process since its previous observation.

        Returns 0.0 for a newly observed process (no false initial spike)
        and when no wall time elapsed between the two snapshots. Values above
        100 are expected for multi-threaded processes and are not clamped.
        """
        previous = self._procs.get(current.pid)
        self._procs[current.pid] = current

        if previous is None or previous.create_time != current.create_time:
            return 0.0

        delta_cpu = (current.cpu_user - previous.cpu_user) + (
            current.cpu_system - previous.cpu_system
        )
        delta_wall = current.capture_time - previous.capture_time
        if delta_wall <= 0:
            return 0.0

        percent = 100 * max(delta_cpu, 0) / delta_wall
        if self._mode is CpuPercentMode.ALL_CORES:
            percent *= self._cpu_count

        return round_half_up(percent)

    def rss_percent(self, snapshot: ProcessSnapshot, total_memory: int | None) -> float:
        """
        Share of physical memory resident for a process.

        A missing or zero total logs a warning and returns 0.0.
        """
        if not total_memory:
            logger.warning(
                "Total physical memory unavailable, reporting rss_p=0 for pid %d",
                snapshot.pid,
            )
            return 0.0
        return round_half_up(snapshot.mem_rss / total_memory * 100)

    def evict(self, live_pids: Iterable[int]) -> int:
        """
        Drop baselines for pids not in ``live_pids``.

        Returns:
            Number of entries removed.
        """
        live = set(live_pids)
        stale = [pid for pid in self._procs if pid not in live]
        for pid in stale:
            del self._procs[pid]
        return len(stale)

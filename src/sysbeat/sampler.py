"""Periodic sampling loop for sysbeat."""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timezone

from sysbeat.errors import ConfigError, ProcessUnavailable, ProviderError, SinkError
from sysbeat.matcher import ProcessMatcher
from sysbeat.models import Event, ProcEvent, ProcessSnapshot, SystemEvent
from sysbeat.sink import EventSink
from sysbeat.sources import (
    MemoryStatsSource,
    ProcessListSource,
    PsutilMemorySource,
    PsutilProcessSource,
    PsutilSystemSource,
    SystemStatsSource,
)
from sysbeat.trackers import CpuPercentMode, ProcessTracker, SystemTracker

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Sampler:
    """
    Samples system and process metrics every ``period`` seconds and sends events to a sink.

    ``run()`` blocks the calling thread; ``start()`` runs the same loop on a
    daemon thread. ``stop()`` and ``request_stop()`` may be called from any
    thread or from a signal handler. Each iteration waits ``period`` and then samples, so the
    effective interval is ``period`` plus the time spent sampling and sending.
    Events are sent inline: a sink that blocks stalls the loop.
    """

    def __init__(
        self,
        sink: EventSink,
        period: float = 1.0,
        patterns: Iterable[str] | None = None,
        *,
        system_source: SystemStatsSource | None = None,
        memory_source: MemoryStatsSource | None = None,
        process_source: ProcessListSource | None = None,
        cpu_mode: CpuPercentMode = CpuPercentMode.SINGLE_CORE,
        evict_stale: bool = True,
    ) -> None:
        """
        Initialize the Sampler.

        Args:
            sink: Receives every system and proc event.
            period: Seconds to wait between iterations. Default 1.0s.
            patterns: Process name patterns to report. Default matches all.
            system_source: Load and CPU counters. Defaults to psutil.
            memory_source: Memory and swap totals. Defaults to psutil.
            process_source: Process enumeration. Defaults to psutil.
            cpu_mode: Per-process CPU formula.
            evict_stale: Forget processes that no longer appear in the pid list.

        Raises:
            ConfigError: If the period is not positive or a pattern is invalid.
        """
        if period is None:
            period = 1.0
        if period <= 0:
            raise ConfigError(f"period must be positive, got {period!r}")

        self._sink = sink
        self._period = float(period)
        self._matcher = ProcessMatcher(patterns)
        self._system_source = system_source or PsutilSystemSource()
        self._memory_source = memory_source or PsutilMemorySource()
        self._process_source = process_source or PsutilProcessSource()
        self._evict_stale = evict_stale

        cpu_count = None
        if cpu_mode is CpuPercentMode.ALL_CORES:
            cpu_count = self._system_source.cpu_count()
        self._system_tracker = SystemTracker()
        self._process_tracker = ProcessTracker(mode=cpu_mode, cpu_count=cpu_count)

        self._stop_event = threading.Event()
        self._stop_requested = False
        self._thread: threading.Thread | None = None
        self._loop_thread: threading.Thread | None = None
        self._running = False

        logger.debug("Follow processes %s", self._matcher.patterns)
        logger.debug("Period %ss", self._period)

    @property
    def period(self) -> float:
        """Seconds waited between iterations."""
        return self._period

    @property
    def matcher(self) -> ProcessMatcher:
        return self._matcher

    @property
    def system_tracker(self) -> SystemTracker:
        return self._system_tracker

    @property
    def process_tracker(self) -> ProcessTracker:
        return self._process_tracker

    @property
    def is_running(self) -> bool:
        """Check if the sampling loop is running."""
        if self._running:
            return True
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sampling loop on a daemon thread."""
        if self.is_running:
            return

        self._stop_requested = False
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            daemon=True,
            name="Sampler",
        )
        self._thread.start()

    def request_stop(self) -> None:
        """
        Ask the sampling loop to stop without waiting for it.

        On the thread running the loop, typically a signal handler interrupting
        ``run()`` on the main thread, the Event's internal lock may already be
        held by that same thread. Only the plain flag is set there, and the
        loop sees it once the current wait or iteration ends.
        """
        self._stop_requested = True
        if threading.current_thread() is not self._loop_thread:
            self._stop_event.set()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Ask the sampling loop to stop. Idempotent.

        Args:
            timeout: How long to wait for a thread started by start() (seconds).
        """
        self.request_stop()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            self._thread = None

    def join(self, timeout: float | None = None) -> None:
        """Wait for a loop started by start() to finish."""
        thread = self._thread
        if thread is None:
            return
        if timeout is not None:
            thread.join(timeout=timeout)
            return
        # Joined in slices so signal handlers on the waiting thread get to run
        while thread.is_alive():
            thread.join(timeout=0.5)

    def run(self) -> None:
        """Seed the process baselines, then sample until stop() is called."""
        self._loop_thread = threading.current_thread()
        self._running = True
        logger.info("Sampler started, period %ss", self._period)
        try:
            self._seed_processes()
            while not self._stop_requested:
                if self._stop_event.wait(timeout=self._period) or self._stop_requested:
                    break
                self.tick()
        finally:
            self._running = False
            self._loop_thread = None
            logger.info("Sampler stopped")

    def tick(self) -> None:
        """
        Run one sampling iteration: one system event, then one event per matched process.

        No exception escapes; a bad sample is logged and the loop goes on.
        """
        try:
            self._export_system_stats()
        except Exception:
            logger.exception("Unexpected error while sampling system stats")

        try:
            self._export_proc_stats()
        except Exception:
            logger.exception("Unexpected error while sampling processes")

    def _seed_processes(self) -> None:
        """Store a baseline for every current process without sending events."""
        try:
            pids = self._process_source.pids()
        except ProviderError as e:
            logger.warning("Getting the list of pids: %s", e)
            return

        logger.debug("Seeding %d pids", len(pids))
        self._process_tracker.seed(self._fetch_processes(pids))

    def _fetch_processes(self, pids: Iterable[int]) -> Iterable[ProcessSnapshot]:
        for pid in pids:
            try:
                yield self._process_source.process(pid)
            except ProcessUnavailable as e:
                # Exited between listing and fetch, or not readable
                logger.debug("Skip process %d: %s", pid, e)

    def _export_system_stats(self) -> None:
        try:
            load = self._system_source.load()
            cpu = self._system_source.cpu_times()
            cpu_percent = self._system_tracker.cpu_percent(cpu)
            mem = self._memory_source.memory()
            swap = self._memory_source.swap()
        except ProviderError as e:
            logger.warning("Getting system statistics: %s", e)
            return

        self._send(
            SystemEvent(
                timestamp=_utcnow(),
                load=load,
                cpu=cpu,
                cpu_user_percent=cpu_percent,
                mem=mem,
                mem_used_percent=SystemTracker.used_percent(mem.total, mem.used),
                swap=swap,
                swap_used_percent=SystemTracker.used_percent(swap.total, swap.used),
            )
        )

    def _export_proc_stats(self) -> None:
        try:
            pids = self._process_source.pids()
        except ProviderError as e:
            logger.warning("Getting the list of pids: %s", e)
            return

        total_memory = self._total_memory()
        tracker = self._process_tracker

        for snapshot in self._fetch_processes(pids):
            if not self._matcher.matches(snapshot.name):
                # Keep the baseline current so a later match only sees the recent delta
                tracker.observe(snapshot)
                continue

            self._send(
                ProcEvent(
                    timestamp=_utcnow(),
                    process=snapshot,
                    cpu_user_percent=tracker.cpu_percent(snapshot),
                    rss_percent=tracker.rss_percent(snapshot, total_memory),
                )
            )

        if self._evict_stale:
            evicted = tracker.evict(pids)
            if evicted:
                logger.debug("Evicted %d exited processes", evicted)

    def _total_memory(self) -> int | None:
        try:
            return self._memory_source.memory().total
        except ProviderError as e:
            logger.warning("Getting memory details: %s", e)
            return None

    def _send(self, event: Event) -> None:
        try:
            self._sink.send(event)
        except SinkError as e:
            logger.warning("Dropping %s: %s", type(event).__name__, e)

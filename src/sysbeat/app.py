"""sysbeat - Textual view of the event stream."""

from collections.abc import Iterable
from enum import Enum
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Static

from sysbeat.models import Event, ProcEvent, SystemEvent
from sysbeat.sampler import Sampler
from sysbeat.sink import QueueSink
from sysbeat.trackers import CpuPercentMode


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def _bar(percent: float, color: str) -> str:
    bar_len = min(max(int(percent / 5), 0), 20)
    return f"[{color}]█[/{color}]" * bar_len + "[dim]░[/dim]" * (20 - bar_len)


class HeaderStats(Static):
    """Header widget showing the latest system event."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._event: SystemEvent | None = None

    @property
    def event(self) -> SystemEvent | None:
        """The system event currently displayed."""
        return self._event

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def update_stats(self, event: SystemEvent) -> None:
        """Show a new system event."""
        self._event = event
        try:
            cpu_info = self.query_one("#cpu-info", Static)
            mem_info = self.query_one("#mem-info", Static)
        except NoMatches:
            return  # Not mounted yet
        cpu_info.update(self._get_cpu_info())
        mem_info.update(self._get_mem_info())

    def _get_cpu_info(self) -> str:
        """Get CPU info display."""
        event = self._event
        if event is None:
            return "Waiting for first sample..."
        load = event.load
        user = event.cpu_user_percent
        return (
            f"CPU \\[{_bar(user, 'green')}] {user:6.2f}% user\n"
            f"Load average: {load.load1:.2f} {load.load5:.2f} {load.load15:.2f}\n"
            f"Tasks: {load.procs_total}, {load.procs_running} running, "
            f"{load.procs_zombie} zombie"
        )

    def _get_mem_info(self) -> str:
        """Get memory info display."""
        event = self._event
        if event is None:
            return ""
        mem, swap = event.mem, event.swap
        return (
            f"Mem\\[{_bar(event.mem_used_percent, 'cyan')}] "
            f"{mem.used / 1024**3:.1f}G/{mem.total / 1024**3:.1f}G\n"
            f"Swp\\[{_bar(event.swap_used_percent, 'yellow')}] "
            f"{swap.used / 1024**3:.1f}G/{swap.total / 1024**3:.1f}G"
        )


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._sort_key: SortKey = SortKey.CPU

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("PPID", key="ppid", width=8)
        table.add_column("S", key="state", width=10)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("MEM%", key="mem", width=8)
        table.add_column("RES", key="rss", width=8)
        table.add_column("Name", key="name")

    def update_processes(self, events: Iterable[ProcEvent]) -> None:
        """
        Replace the table contents with one tick's proc events.

        Rows are cleared and re-added in sort order.
        """
        table = self.query_one("#process-table", DataTable)
        rows = sorted(events, key=self._sort_value, reverse=self._sort_key is not SortKey.PID)

        table.clear()
        for event in rows:
            proc = event.process
            table.add_row(
                str(proc.pid),
                str(proc.ppid),
                proc.state,
                f"{event.cpu_user_percent:6.2f}",
                f"{event.rss_percent:6.2f}",
                format_bytes(proc.mem_rss),
                proc.name[:40],
                key=str(proc.pid),
            )

    def _sort_value(self, event: ProcEvent) -> float:
        if self._sort_key is SortKey.CPU:
            return event.cpu_user_percent
        if self._sort_key is SortKey.MEM:
            return event.rss_percent
        return event.process.pid


class SysbeatApp(App):
    """Terminal view fed by a Sampler through a QueueSink."""

    TITLE = "sysbeat"
    SUB_TITLE = "System and process sampler"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #mem-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        period: float = 1.0,
        patterns: list[str] | None = None,
        cpu_mode: CpuPercentMode = CpuPercentMode.SINGLE_CORE,
        sampler: Sampler | None = None,
        update_queue: "Queue[Event] | None" = None,
    ) -> None:
        """
        Initialize the SysbeatApp.

        Args:
            period: Sampling period in seconds when the app builds its own Sampler.
            patterns: Process name patterns when the app builds its own Sampler.
            cpu_mode: Per-process CPU formula when the app builds its own Sampler.
            sampler: A ready Sampler. Must send to ``update_queue``.
            update_queue: Queue the sampler's events arrive on.
        """
        super().__init__()
        self._update_queue: Queue[Event] = update_queue if update_queue is not None else Queue()
        self._sampler = sampler or Sampler(
            QueueSink(self._update_queue),
            period=period,
            patterns=patterns,
            cpu_mode=cpu_mode,
        )
        # Proc events of the tick in progress, keyed by pid
        self._pending: dict[int, ProcEvent] = {}
        self._last_tick: list[ProcEvent] = []

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the sampler when the app is mounted."""
        self._sampler.start()
        self.set_interval(0.5, self._check_for_updates)

    def on_unmount(self) -> None:
        """Stop the sampler when the app goes away."""
        self._sampler.stop(timeout=1.0)

    def _check_for_updates(self) -> None:
        """Drain the queue and refresh the widgets."""
        while True:
            try:
                event = self._update_queue.get_nowait()
            except Empty:
                break
            self.handle_event(event)

    def handle_event(self, event: Event) -> None:
        """
        Apply one event to the view.

        A system event opens a new tick, so the proc events gathered since
        the previous one replace the table contents, even when there are none.
        """
        if isinstance(event, SystemEvent):
            self._last_tick = list(self._pending.values())
            self._pending = {}
            self.query_one(ProcessTable).update_processes(self._last_tick)
            self.query_one("#header-stats", HeaderStats).update_stats(event)
        elif isinstance(event, ProcEvent):
            self._pending[event.process.pid] = event

    def action_sort(self) -> None:
        """Cycle through sort keys and re-sort the last tick."""
        process_table = self.query_one(ProcessTable)
        new_sort_key = process_table.cycle_sort()
        process_table.update_processes(self._last_tick)
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Stop the sampler and exit."""
        self._sampler.stop()
        self.exit()

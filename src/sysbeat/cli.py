"""
Command-line entry point for sysbeat.

Loads the configuration, builds a Sampler with the requested sink and waits
for it until SIGINT or SIGTERM.
"""

import argparse
import logging
import platform
import signal
import sys
from importlib.metadata import PackageNotFoundError, version
from queue import Queue

from sysbeat.config import SamplerConfig, load_config, parse_cpu_mode
from sysbeat.errors import ConfigError
from sysbeat.sampler import Sampler
from sysbeat.sink import EventSink, JsonLinesSink, NullSink, QueueSink

NAME = "sysbeat"

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s"

logger = logging.getLogger(__name__)


def get_version() -> str:
    try:
        return version(NAME)
    except PackageNotFoundError:
        return "unknown"


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr so stdout stays free for events."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=NAME,
        description="Sample system and process CPU/memory usage and emit events.",
    )
    parser.add_argument("-c", "--config", help="Path to a TOML configuration file.")
    parser.add_argument("--period", type=float, help="Seconds between samples (default 1).")
    parser.add_argument(
        "--proc",
        action="append",
        dest="procs",
        metavar="PATTERN",
        help="Report processes whose name matches PATTERN. Repeatable; overrides the config.",
    )
    parser.add_argument(
        "--cpu-mode",
        choices=["single_core", "all_cores"],
        help="Per-process CPU percentage relative to one core or scaled by the CPU count.",
    )
    parser.add_argument(
        "-N",
        dest="publish_disabled",
        action="store_true",
        help="Disable actual publishing for testing.",
    )
    parser.add_argument(
        "--test-config",
        action="store_true",
        help="Load and validate the configuration, then exit.",
    )
    parser.add_argument("--tui", action="store_true", help="Show events in a terminal UI.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--version", action="store_true", help="Print version and exit.")
    return parser


def resolve_config(args: argparse.Namespace) -> SamplerConfig:
    """
    Merge the configuration file and command-line overrides.

    Raises:
        ConfigError: If the file or any override is invalid.
    """
    config = load_config(args.config) if args.config else SamplerConfig()
    if args.period is not None:
        config.period = args.period
    if args.procs:
        config.patterns = args.procs
    if args.cpu_mode:
        config.cpu_mode = parse_cpu_mode(args.cpu_mode)
    config.validate()
    return config


def make_sink(publish_disabled: bool) -> EventSink:
    if publish_disabled:
        return NullSink()
    return JsonLinesSink(sys.stdout)


def run_tui(config: SamplerConfig) -> None:
    # Imported here so the headless path does not load textual
    from sysbeat.app import SysbeatApp

    update_queue: Queue = Queue(maxsize=config.queue_size)
    sampler = Sampler(
        QueueSink(update_queue),
        period=config.period,
        patterns=config.patterns,
        cpu_mode=config.cpu_mode,
        evict_stale=config.evict_stale,
    )
    SysbeatApp(sampler=sampler, update_queue=update_queue).run()


def main(argv: list[str] | None = None) -> int:
    """
    Run sysbeat.

    Returns:
        Process exit status: 0 on a clean shutdown, 1 on configuration errors.
    """
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"{NAME} version {get_version()} ({platform.machine()})")
        return 0

    setup_logging(args.verbose)

    try:
        config = resolve_config(args)
    except ConfigError as e:
        logger.critical("%s", e)
        return 1

    if args.test_config:
        logger.info("Configuration OK")
        return 0

    if args.tui:
        run_tui(config)
        return 0

    try:
        sampler = Sampler(
            make_sink(args.publish_disabled),
            period=config.period,
            patterns=config.patterns,
            cpu_mode=config.cpu_mode,
            evict_stale=config.evict_stale,
        )
    except ConfigError as e:
        logger.critical("%s", e)
        return 1

    def handle_signal(signum, frame):
        logger.info("Signal %s received, stopping", signal.strsignal(signum))
        sampler.request_stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    logger.info("Starting %s", NAME)
    # The loop runs on its own thread; the main thread only waits, so a signal
    # never interrupts it while it holds the loop's stop lock
    sampler.start()
    sampler.join()
    logger.debug("Cleanup")
    return 0


if __name__ == "__main__":
    sys.exit(main())

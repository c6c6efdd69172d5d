"""Exception types raised by sysbeat."""


class SysbeatError(Exception):
    """Base class for all sysbeat errors."""


class ConfigError(SysbeatError):
    """Invalid or unreadable configuration. Fatal at startup."""


class ProviderError(SysbeatError):
    """An operating system query for system, memory or swap stats failed."""


class ProcessUnavailable(SysbeatError):
    """A single process could not be read (e.g. access denied)."""

    def __init__(self, pid: int, reason: str = "") -> None:
        message = f"process {pid} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.pid = pid


class ProcessGone(ProcessUnavailable):
    """The process exited between listing and fetching it."""


class SinkError(SysbeatError):
    """The event sink failed to accept an event."""

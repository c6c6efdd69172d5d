"""Process name filtering."""

import re
from collections.abc import Iterable

from sysbeat.errors import ConfigError

MATCH_ALL = ".*"


class ProcessMatcher:
    """
    Decide which processes get reported, by name.

    A name is reported when at least one pattern matches it anywhere
    (``re.search``). Patterns are tried in order and the first hit wins, so
    ordering only affects how quickly a match is found.
    """

    def __init__(self, patterns: Iterable[str] | None = None) -> None:
        """
        Compile the configured patterns.

        Args:
            patterns: Regular expressions. None or empty means match everything.

        Raises:
            ConfigError: If a pattern is not a valid regular expression.
        """
        pattern_list = list(patterns or ()) or [MATCH_ALL]
        self._patterns: list[re.Pattern[str]] = []
        for pattern in pattern_list:
            try:
                self._patterns.append(re.compile(pattern))
            except (re.error, TypeError) as e:
                raise ConfigError(f"Invalid process pattern {pattern!r}: {e}") from e

    @property
    def patterns(self) -> list[str]:
        """The configured pattern strings, in order."""
        return [p.pattern for p in self._patterns]

    def matches(self, name: str) -> bool:
        """Return True if ``name`` matches any configured pattern."""
        return any(p.search(name) for p in self._patterns)

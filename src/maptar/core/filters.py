"""Regex include/exclude filters for source paths and archive paths."""

import re
from dataclasses import dataclass

from ..exceptions import UsageError


@dataclass(frozen=True)
class PathMatcher:
    """A compiled regex and whether paths should match it (include) or not (exclude)."""

    regex: re.Pattern
    want: bool

    @classmethod
    def compile(cls, pattern: str, want: bool):
        try:
            return cls(re.compile(pattern), want)
        except re.error as e:
            raise UsageError(f'invalid regexp {pattern!r}: {e}') from None

    def matches(self, path: str) -> bool:
        """True if the path satisfies this matcher."""
        return (self.regex.search(path) is not None) == self.want


class MatcherSet:
    """Ordered list of matchers. A path passes only if it satisfies every matcher."""

    def __init__(self):
        self._matchers = []

    def include(self, pattern: str):
        """Select only paths matching ``pattern``."""
        self._matchers.append(PathMatcher.compile(pattern, want=True))

    def exclude(self, pattern: str):
        """Reject paths matching ``pattern``."""
        self._matchers.append(PathMatcher.compile(pattern, want=False))

    def reset(self):
        self._matchers.clear()

    def rejects(self, path: str) -> bool:
        return not all(m.matches(path) for m in self._matchers)

    def __len__(self):
        return len(self._matchers)

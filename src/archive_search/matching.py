"""Wildcard file-name matching."""

from __future__ import annotations

import re
from dataclasses import dataclass

from archive_search.errors import ErrorKind, SearchError

CATCH_ALL_PATTERN = "*"


@dataclass(slots=True, frozen=True)
class WildcardMatcher:
    """Compiled, anchored, case-insensitive wildcard expression."""

    pattern: str
    regex: re.Pattern[str]

    def matches(self, name: str) -> bool:
        """Match against the base name of ``name`` only."""
        return self.regex.fullmatch(base_name(name)) is not None


def compile_wildcard(pattern: str) -> WildcardMatcher:
    """Compile ``*`` / ``?`` wildcards; every other character is literal."""
    if not pattern or not pattern.strip():
        raise SearchError(ErrorKind.INVALID_PATTERN, "Search pattern cannot be empty.")
    parts: list[str] = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    regex = re.compile("".join(parts), re.IGNORECASE | re.DOTALL)
    return WildcardMatcher(pattern=pattern, regex=regex)


def base_name(path: str) -> str:
    """Return the final component of a ``/`` or ``\\`` separated path."""
    cut = max(path.rfind("/"), path.rfind("\\"))
    return path[cut + 1 :] if cut >= 0 else path

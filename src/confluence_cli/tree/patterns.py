"""Glob-style title filters used to exclude pages from a copy."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

_WILDCARDS = {"*": ".*", "?": "."}


@dataclass(slots=True, frozen=True)
class ExclusionPattern:
    """A compiled, case-insensitive matcher over whole page titles."""

    source: str
    regex: re.Pattern

    def matches(self, title: str) -> bool:
        return self.regex.fullmatch(title) is not None


def compile_pattern(pattern: str) -> ExclusionPattern:
    """Compile ``pattern`` where ``*`` and ``?`` are wildcards and all else is literal.

    Never fails: every non-wildcard character is escaped before compilation.
    """

    parts = [_WILDCARDS.get(char) or re.escape(char) for char in pattern]
    regex = re.compile("".join(parts), re.IGNORECASE | re.DOTALL)
    return ExclusionPattern(source=pattern, regex=regex)


PatternLike = Union[str, ExclusionPattern]


def compile_patterns(patterns: Optional[Iterable[PatternLike]]) -> list[ExclusionPattern]:
    if not patterns:
        return []
    return [
        pattern if isinstance(pattern, ExclusionPattern) else compile_pattern(pattern)
        for pattern in patterns
    ]


def matches(title: str, patterns: Optional[Sequence[PatternLike]]) -> bool:
    """Return True if ``title`` satisfies at least one pattern."""

    return any(pattern.matches(title) for pattern in compile_patterns(patterns))


def parse_patterns(raw: Optional[str]) -> list[str]:
    """Split a comma-separated ``--exclude`` value into trimmed patterns."""

    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]

"""Options and reports for page-tree replication."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from confluence_cli.confluence.models import PageContent, PageRef, PageTreeNode
from confluence_cli.tree.patterns import PatternLike

DEFAULT_MAX_DEPTH = 10
DEFAULT_DELAY_MS = 100
DEFAULT_COPY_SUFFIX = " (Copy)"

ProgressSink = Callable[[str], None]


@dataclass(slots=True)
class ReplicationOptions:
    """Policy inputs for a copy or a dry-run preview."""

    max_depth: int = DEFAULT_MAX_DEPTH
    exclude_patterns: Sequence[PatternLike] = ()
    delay_ms: int = DEFAULT_DELAY_MS
    copy_suffix: str = DEFAULT_COPY_SUFFIX
    on_progress: Optional[ProgressSink] = None
    quiet: bool = False
    # Only consulted by callers when choosing an exit status.
    fail_on_error: bool = False

    def effective_title(self, source_title: str, new_title: Optional[str]) -> str:
        if new_title:
            return new_title
        return f"{source_title}{self.copy_suffix}"


@dataclass(slots=True, frozen=True)
class ReplicationFailure:
    """A source page that could not be copied."""

    source_page_id: str
    title: str
    error_message: str
    status_code: Optional[int] = None


@dataclass(slots=True, frozen=True)
class SkippedPage:
    """A source page whose subtree was left out of the copy."""

    source_page_id: str
    title: str
    reason: str


@dataclass(slots=True)
class ReplicationResult:
    """Report produced after a copy operation."""

    root_page: PageRef
    copied_pages: list[PageRef] = field(default_factory=list)
    failures: list[ReplicationFailure] = field(default_factory=list)
    skipped: list[SkippedPage] = field(default_factory=list)
    total_copied: int = 0

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


@dataclass(slots=True)
class PreviewResult:
    """Read-only plan produced by a dry-run."""

    source_page: PageContent
    planned_title: str
    pages: list[PageRef]
    tree: list[PageTreeNode]

    @property
    def total_pages(self) -> int:
        """Pages a live run would create, root included."""

        return len(self.pages) + 1

"""Recursive page-tree copy between two locations of a content repository."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from confluence_cli.confluence.errors import ConfluenceError
from confluence_cli.confluence.models import PageRef
from confluence_cli.confluence.repository import ContentRepository
from confluence_cli.tree.builder import build_tree
from confluence_cli.tree.discovery import discover
from confluence_cli.tree.patterns import ExclusionPattern, compile_patterns

from .models import (
    PreviewResult,
    ReplicationFailure,
    ReplicationOptions,
    ReplicationResult,
    SkippedPage,
)

logger = logging.getLogger(__name__)


class ReplicationEngine:
    """Copy a page and its descendants under a new parent.

    Pages are created one at a time in listing order with a pause between
    siblings. A page that fails is recorded and its subtree abandoned; the
    rest of the traversal carries on. Only a failure to create the root copy
    aborts the whole operation.
    """

    def __init__(
        self,
        repository: ContentRepository,
        *,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.repository = repository
        self._sleep = sleep or time.sleep

    # ------------------------------------------------------------------
    # Live copy
    # ------------------------------------------------------------------
    def copy_tree(
        self,
        source_root_id: str,
        target_parent_id: str,
        new_title: Optional[str] = None,
        options: Optional[ReplicationOptions] = None,
    ) -> ReplicationResult:
        options = options or ReplicationOptions()
        patterns = compile_patterns(options.exclude_patterns)

        source = self.repository.get_page_content(source_root_id)
        space_key = self.repository.get_page_space(source_root_id)
        title = options.effective_title(source.title, new_title)

        self._emit(options, f"Creating root page {title!r} under {target_parent_id}")
        root_copy = self.repository.create_child_page(title, space_key, target_parent_id, source.body)
        logger.info("Created root copy %s (%s) from %s", root_copy.id, title, source_root_id)

        result = ReplicationResult(root_page=root_copy, copied_pages=[root_copy])
        self._copy_children(
            source_root_id,
            source.title,
            root_copy.id,
            space_key,
            depth=0,
            options=options,
            patterns=patterns,
            result=result,
        )
        result.total_copied = len(result.copied_pages)

        logger.info(
            "Copy of %s finished: %d copied, %d skipped, %d failed",
            source_root_id,
            result.total_copied,
            len(result.skipped),
            len(result.failures),
        )
        return result

    def _copy_children(
        self,
        source_id: str,
        source_title: str,
        target_id: str,
        space_key: str,
        *,
        depth: int,
        options: ReplicationOptions,
        patterns: list[ExclusionPattern],
        result: ReplicationResult,
    ) -> None:
        if depth >= options.max_depth:
            return

        try:
            children = self.repository.list_children(source_id)
        except ConfluenceError as exc:
            logger.warning("Unable to list children of %s: %s", source_id, exc)
            self._emit(options, f"Skipping children of {source_id}: {exc}")
            result.skipped.append(
                SkippedPage(
                    source_page_id=source_id,
                    title=source_title,
                    reason=f"children unavailable: {exc}",
                )
            )
            return

        last_index = len(children) - 1
        for index, child in enumerate(children):
            if any(pattern.matches(child.title) for pattern in patterns):
                logger.debug("Excluding %r (%s)", child.title, child.id)
                self._emit(options, f"Skipping excluded page {child.title!r}")
                result.skipped.append(
                    SkippedPage(source_page_id=child.id, title=child.title, reason="excluded")
                )
                continue

            copy = self._copy_page(child, target_id, space_key, options=options, result=result)
            if copy is None:
                continue

            self._copy_children(
                child.id,
                child.title,
                copy.id,
                space_key,
                depth=depth + 1,
                options=options,
                patterns=patterns,
                result=result,
            )
            if index < last_index and options.delay_ms > 0:
                self._sleep(options.delay_ms / 1000)

    def _copy_page(
        self,
        source: PageRef,
        target_parent_id: str,
        space_key: str,
        *,
        options: ReplicationOptions,
        result: ReplicationResult,
    ) -> Optional[PageRef]:
        try:
            content = self.repository.get_page_content(source.id)
            copy = self.repository.create_child_page(
                content.title, space_key, target_parent_id, content.body
            )
        except ConfluenceError as exc:
            logger.warning("Failed to copy %r (%s): %s", source.title, source.id, exc)
            self._emit(options, f"Failed to copy {source.title!r}: {exc}")
            result.failures.append(
                ReplicationFailure(
                    source_page_id=source.id,
                    title=source.title,
                    error_message=str(exc),
                    status_code=exc.status_code,
                )
            )
            return None

        logger.debug("Copied %s -> %s under %s", source.id, copy.id, target_parent_id)
        self._emit(options, f"Copied {content.title!r}")
        result.copied_pages.append(copy)
        return copy

    # ------------------------------------------------------------------
    # Dry-run
    # ------------------------------------------------------------------
    def preview(
        self,
        source_root_id: str,
        new_title: Optional[str] = None,
        options: Optional[ReplicationOptions] = None,
    ) -> PreviewResult:
        """Plan a copy without issuing any write calls."""

        options = options or ReplicationOptions()
        source = self.repository.get_page_content(source_root_id)
        title = options.effective_title(source.title, new_title)

        self._emit(options, f"Discovering descendants of {source.title!r}")
        pages = discover(
            self.repository,
            source_root_id,
            options.max_depth,
            exclude=options.exclude_patterns,
        )
        return PreviewResult(
            source_page=source,
            planned_title=title,
            pages=pages,
            tree=build_tree(pages, source_root_id),
        )

    @staticmethod
    def _emit(options: ReplicationOptions, message: str) -> None:
        if options.quiet or options.on_progress is None:
            return
        options.on_progress(message)

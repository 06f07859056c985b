"""Read-only discovery of a page's descendants."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from confluence_cli.confluence.errors import ConfluenceError
from confluence_cli.confluence.models import PageRef
from confluence_cli.confluence.repository import ContentRepository

from .patterns import PatternLike, compile_patterns

logger = logging.getLogger(__name__)


def discover(
    repository: ContentRepository,
    root_id: str,
    max_depth: int,
    exclude: Optional[Iterable[PatternLike]] = None,
) -> list[PageRef]:
    """Collect every descendant of ``root_id`` down to ``max_depth`` levels.

    ``max_depth`` counts levels below the root, so ``1`` yields only direct
    children and ``0`` yields nothing. Pages matching ``exclude`` are dropped
    together with their subtrees. A node whose children cannot be listed is
    treated as a leaf.
    """

    compiled = compile_patterns(exclude)
    pages: list[PageRef] = []

    def _walk(page_id: str, depth: int) -> None:
        if depth >= max_depth:
            return
        try:
            children = repository.list_children(page_id)
        except ConfluenceError as exc:
            logger.warning("Unable to list children of page %s, omitting its subtree: %s", page_id, exc)
            return

        for child in children:
            if any(pattern.matches(child.title) for pattern in compiled):
                logger.debug("Excluding %r (%s) from discovery", child.title, child.id)
                continue
            if child.parent_id != page_id:
                child = PageRef(
                    id=child.id,
                    title=child.title,
                    space_key=child.space_key,
                    parent_id=page_id,
                )
            pages.append(child)
            _walk(child.id, depth + 1)

    _walk(root_id, 0)
    return pages

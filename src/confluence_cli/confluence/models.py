"""Typed models for Confluence content interactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(slots=True, frozen=True)
class PageBody:
    """Page content in its stored representation, treated as an opaque blob."""

    storage: str
    representation: str = "storage"


@dataclass(slots=True, frozen=True)
class PageRef:
    """Minimal Confluence page description used for traversal."""

    id: str
    title: str
    space_key: str
    parent_id: Optional[str]


@dataclass(slots=True, frozen=True)
class PageContent(PageRef):
    """Full Confluence page payload."""

    body: PageBody
    version: int = 0

    def ref(self) -> PageRef:
        return PageRef(
            id=self.id,
            title=self.title,
            space_key=self.space_key,
            parent_id=self.parent_id,
        )


@dataclass(slots=True, frozen=True)
class PageTreeNode(PageRef):
    """Page reference with nested children, used for previews."""

    children: list["PageTreeNode"] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class PageInfo:
    """Descriptive page metadata shown by the ``info`` command."""

    id: str
    title: str
    type: str
    status: str
    space_key: str
    space_name: str
    web_ui: str = ""


@dataclass(slots=True, frozen=True)
class SearchResult:
    id: str
    title: str
    type: str
    excerpt: str = ""


@dataclass(slots=True, frozen=True)
class SpaceSummary:
    key: str
    name: str
    type: str

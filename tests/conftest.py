"""Shared fixtures: an in-memory content repository."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import pytest

from confluence_cli.confluence.errors import ConfluenceError, PageNotFoundError
from confluence_cli.confluence.models import PageBody, PageContent, PageRef
from confluence_cli.confluence.repository import ContentRepository


@dataclass
class CreateCall:
    title: str
    space_key: str
    parent_id: str
    content: PageBody
    page_id: str


@dataclass
class StoredPage:
    id: str
    title: str
    space_key: str
    parent_id: Optional[str]
    body: PageBody
    version: int = 1
    children: list[str] = field(default_factory=list)


class FakeRepository(ContentRepository):
    """Dictionary-backed repository with per-page failure injection."""

    def __init__(self, space_key: str = "DOCS") -> None:
        self.space_key = space_key
        self.pages: dict[str, StoredPage] = {}
        self.created: list[CreateCall] = []
        self.list_calls: list[str] = []
        self.read_calls: list[str] = []
        self.create_errors: dict[str, ConfluenceError] = {}
        self.list_errors: dict[str, ConfluenceError] = {}
        self.read_errors: dict[str, ConfluenceError] = {}
        self._next_id = 1000

    def add(self, page_id: str, title: str, parent_id: Optional[str] = None, body: str = "") -> str:
        self.pages[page_id] = StoredPage(
            id=page_id,
            title=title,
            space_key=self.space_key,
            parent_id=parent_id,
            body=PageBody(storage=body or f"<p>{title}</p>"),
        )
        if parent_id is not None:
            self.pages[parent_id].children.append(page_id)
        return page_id

    def _get(self, page_id: str) -> StoredPage:
        try:
            return self.pages[page_id]
        except KeyError:
            raise PageNotFoundError(f"Page {page_id} not found", status_code=404) from None

    def get_page_content(self, page_id: str) -> PageContent:
        self.read_calls.append(page_id)
        if page_id in self.read_errors:
            raise self.read_errors[page_id]
        page = self._get(page_id)
        return PageContent(
            id=page.id,
            title=page.title,
            space_key=page.space_key,
            parent_id=page.parent_id,
            body=page.body,
            version=page.version,
        )

    def get_page_space(self, page_id: str) -> str:
        return self._get(page_id).space_key

    def list_children(self, page_id: str) -> list[PageRef]:
        self.list_calls.append(page_id)
        if page_id in self.list_errors:
            raise self.list_errors[page_id]
        page = self._get(page_id)
        return [
            PageRef(
                id=child.id,
                title=child.title,
                space_key=child.space_key,
                parent_id=page_id,
            )
            for child in (self.pages[child_id] for child_id in page.children)
        ]

    def create_child_page(
        self,
        title: str,
        space_key: str,
        parent_id: str,
        content: PageBody,
    ) -> PageRef:
        if title in self.create_errors:
            raise self.create_errors[title]
        self._get(parent_id)
        self._next_id += 1
        page_id = str(self._next_id)
        self.pages[page_id] = StoredPage(
            id=page_id,
            title=title,
            space_key=space_key,
            parent_id=parent_id,
            body=content,
        )
        self.pages[parent_id].children.append(page_id)
        self.created.append(
            CreateCall(
                title=title,
                space_key=space_key,
                parent_id=parent_id,
                content=content,
                page_id=page_id,
            )
        )
        return PageRef(id=page_id, title=title, space_key=space_key, parent_id=parent_id)


class ReadOnlyRepository(FakeRepository):
    """Repository whose write path always blows up."""

    def create_child_page(self, title, space_key, parent_id, content):  # noqa: D401
        raise AssertionError("create_child_page must not be called")


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def sample_tree(repository: FakeRepository) -> FakeRepository:
    """Source tree ``Docs -> [Guide -> [Install, Upgrade], Reference]`` plus a target parent.

    The target parent lives outside the source tree.
    """

    repository.add("1", "Docs")
    repository.add("2", "Guide", "1")
    repository.add("3", "Install", "2")
    repository.add("4", "Upgrade", "2")
    repository.add("5", "Reference", "1")
    repository.add("900", "Archive")
    return repository

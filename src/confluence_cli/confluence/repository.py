"""Abstract content repository consumed by the tree and replication layers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import PageBody, PageContent, PageRef


class ContentRepository(ABC):
    """Read and create operations on a hierarchical page store."""

    @abstractmethod
    def get_page_content(self, page_id: str) -> PageContent:
        """
        Fetch a page together with its body and version.

        Raises:
            PageNotFoundError: If the page does not exist.
            UnauthorizedError: If the caller cannot read the page.
        """

    @abstractmethod
    def get_page_space(self, page_id: str) -> str:
        """Return the key of the space that contains ``page_id``."""

    @abstractmethod
    def list_children(self, page_id: str) -> list[PageRef]:
        """
        List the direct children of a page in listing order.

        A leaf page yields an empty list.
        """

    @abstractmethod
    def create_child_page(
        self,
        title: str,
        space_key: str,
        parent_id: str,
        content: PageBody,
    ) -> PageRef:
        """
        Create a page under ``parent_id``.

        No retry is attempted here.

        Raises:
            ConflictError: If the title is already taken.
            UnauthorizedError: If the caller cannot create pages in the space.
            RateLimitedError: If the remote throttles the request.
        """

"""HTTP client wrapper for interacting with the Confluence REST API."""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional
from urllib.parse import urljoin

import httpx

from .errors import ConfluenceError, PageNotFoundError, UnknownError, error_from_response
from .models import PageBody, PageContent, PageInfo, PageRef, SearchResult, SpaceSummary
from .repository import ContentRepository

logger = logging.getLogger(__name__)

DEFAULT_EXPAND_FIELDS = ("body.storage", "version", "ancestors", "space")
CHILD_PAGE_LIMIT = 200
SPACE_PAGE_LIMIT = 100
READ_REPRESENTATIONS = ("storage", "view")

_NUMERIC_ID_RE = re.compile(r"^\d+$")
_PAGE_ID_PARAM_RE = re.compile(r"[?&]pageId=(\d+)")
_DISPLAY_URL_RE = re.compile(r"/display/([^/]+)/(.+)")


@dataclass(slots=True)
class ConfluenceAuth:
    """Authentication payload used by the Confluence client."""

    api_token: str
    email: Optional[str] = None
    auth_type: str = "basic"


def extract_page_id(value: str) -> str:
    """Return a page id from a raw id or a ``viewpage.action?pageId=`` URL.

    Display URLs (``/display/SPACE/Title``) would need a title lookup and are
    rejected. Anything else is passed through unchanged.
    """

    value = value.strip()
    if _NUMERIC_ID_RE.match(value):
        return value

    match = _PAGE_ID_PARAM_RE.search(value)
    if match:
        return match.group(1)

    if value.startswith(("http://", "https://")) and _DISPLAY_URL_RE.search(value):
        raise ConfluenceError(
            "Display URLs are not supported. Use a page id or a viewpage URL with a pageId parameter."
        )
    return value


def api_root_for(base_url: str) -> str:
    base = base_url.rstrip("/")
    if base.endswith("/wiki"):
        return base + "/rest/api/"
    return urljoin(base + "/", "wiki/rest/api/")


class ConfluenceClient(ContentRepository):
    """Thin wrapper above the Confluence REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        auth: ConfluenceAuth,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        client_auth: Optional[tuple[str, str]] = None
        if auth.auth_type == "bearer":
            headers["Authorization"] = f"Bearer {auth.api_token}"
        else:
            client_auth = (auth.email or "", auth.api_token)

        self._client = httpx.Client(
            base_url=api_root_for(base_url),
            timeout=timeout,
            auth=client_auth,
            headers=headers,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ConfluenceClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401 - standard context manager signature
        self.close()

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------
    def _request(self, method: str, url: str, **kwargs) -> dict:
        logger.debug("%s %s", method, url)
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise UnknownError(f"{method} {url} timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise UnknownError(f"{method} {url} failed: {exc}") from exc

        if response.is_error:
            raise error_from_response(response)
        try:
            data = response.json()
        except ValueError as exc:
            raise UnknownError(
                f"{method} {url} returned a non-JSON response",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise UnknownError(
                f"{method} {url} returned an unexpected payload",
                status_code=response.status_code,
            )
        return data

    def _iter_paginated(self, url: str, *, params: Optional[dict] = None) -> Iterator[dict]:
        next_url = url
        next_params = params
        while next_url:
            data = self._request("GET", next_url, params=next_params)
            with _parsing("listing"):
                results = data.get("results", [])
                next_link = data.get("_links", {}).get("next")
            for result in results:
                yield result
            if not next_link:
                break
            # The next link is relative to the context path, not the API root.
            next_url = _strip_api_prefix(next_link)
            next_params = None

    # ------------------------------------------------------------------
    # Parsers
    # ------------------------------------------------------------------
    @staticmethod
    def _to_page_ref(data: dict, *, parent_id: Optional[str] = None) -> PageRef:
        with _parsing("page"):
            space_key = data.get("space", {}).get("key")
            return PageRef(
                id=str(data["id"]),
                title=data["title"],
                space_key=space_key or "",
                parent_id=parent_id,
            )

    @staticmethod
    def _to_page_content(data: dict) -> PageContent:
        with _parsing("page"):
            ancestors = data.get("ancestors", [])
            parent_id = str(ancestors[-1]["id"]) if ancestors else None
            body = data.get("body", {}).get("storage", {})
            space_key = data.get("space", {}).get("key", "")
            version_number = data.get("version", {}).get("number", 0)
            return PageContent(
                id=str(data["id"]),
                title=data["title"],
                space_key=space_key,
                parent_id=parent_id,
                version=version_number,
                body=PageBody(
                    storage=body.get("value", ""),
                    representation=body.get("representation", "storage"),
                ),
            )

    @staticmethod
    def _to_page_info(data: dict) -> PageInfo:
        with _parsing("page"):
            space = data.get("space", {})
            return PageInfo(
                id=str(data["id"]),
                title=data["title"],
                type=data.get("type", "page"),
                status=data.get("status", "current"),
                space_key=space.get("key", ""),
                space_name=space.get("name", ""),
                web_ui=data.get("_links", {}).get("webui", ""),
            )

    # ------------------------------------------------------------------
    # ContentRepository API
    # ------------------------------------------------------------------
    def get_page_content(self, page_id: str) -> PageContent:
        data = self._request(
            "GET",
            f"content/{page_id}",
            params={"expand": ",".join(DEFAULT_EXPAND_FIELDS)},
        )
        return self._to_page_content(data)

    def get_page_space(self, page_id: str) -> str:
        data = self._request("GET", f"content/{page_id}", params={"expand": "space"})
        with _parsing("page"):
            space_key = data.get("space", {}).get("key")
        if not space_key:
            raise UnknownError(f"Page {page_id} did not report its space")
        return space_key

    def list_children(self, page_id: str) -> list[PageRef]:
        children: list[PageRef] = []
        for child in self._iter_paginated(
            f"content/{page_id}/child/page",
            params={"limit": CHILD_PAGE_LIMIT, "expand": "space"},
        ):
            children.append(self._to_page_ref(child, parent_id=str(page_id)))
        return children

    def create_child_page(
        self,
        title: str,
        space_key: str,
        parent_id: str,
        content: PageBody,
    ) -> PageRef:
        payload: dict[str, object] = {
            "type": "page",
            "title": title,
            "space": {"key": space_key},
            "ancestors": [{"id": str(parent_id)}],
            "body": {
                content.representation: {
                    "value": content.storage,
                    "representation": content.representation,
                }
            },
        }
        data = self._request("POST", "content", json=payload)
        created = self._to_page_ref(data, parent_id=str(parent_id))
        logger.debug("Created page %s (%s) under %s", created.id, title, parent_id)
        return created

    # ------------------------------------------------------------------
    # Extras used by the CLI
    # ------------------------------------------------------------------
    def get_page_info(self, page_id: str) -> PageInfo:
        data = self._request("GET", f"content/{page_id}", params={"expand": "space"})
        return self._to_page_info(data)

    def read_page(self, page_id: str, *, representation: str = "storage") -> str:
        """Return the raw page body in ``storage`` or rendered ``view`` form."""

        if representation not in READ_REPRESENTATIONS:
            raise ValueError(f"Unsupported representation {representation!r}")
        data = self._request("GET", f"content/{page_id}", params={"expand": f"body.{representation}"})
        with _parsing("page body"):
            return data.get("body", {}).get(representation, {}).get("value", "")

    def find_page_by_title(self, title: str, *, space_key: Optional[str] = None) -> PageInfo:
        cql = f"type = page AND title = {_cql_string(title)}"
        if space_key:
            cql += f" AND space = {_cql_string(space_key)}"
        data = self._request(
            "GET",
            "content/search",
            params={"cql": cql, "limit": 1, "expand": "space"},
        )
        with _parsing("search result"):
            results = data.get("results", [])
        if not results:
            where = f" in space {space_key}" if space_key else ""
            raise PageNotFoundError(f"No page titled {title!r} found{where}", status_code=404)
        return self._to_page_info(results[0])

    def search(self, query: str, *, limit: int = 10) -> list[SearchResult]:
        data = self._request(
            "GET",
            "search",
            params={"cql": f"text ~ {_cql_string(query)}", "limit": limit},
        )
        results: list[SearchResult] = []
        with _parsing("search result"):
            for result in data.get("results", []):
                content = result.get("content") or result
                if not content.get("id"):
                    continue
                results.append(
                    SearchResult(
                        id=str(content["id"]),
                        title=content.get("title") or "Untitled",
                        type=content.get("type") or "Unknown",
                        excerpt=result.get("excerpt") or content.get("excerpt") or "",
                    )
                )
        return results

    def get_spaces(self) -> list[SpaceSummary]:
        spaces: list[SpaceSummary] = []
        for space in self._iter_paginated("space", params={"limit": SPACE_PAGE_LIMIT}):
            with _parsing("space"):
                spaces.append(
                    SpaceSummary(
                        key=space["key"],
                        name=space.get("name", ""),
                        type=space.get("type", ""),
                    )
                )
        return spaces


@contextmanager
def _parsing(what: str) -> Iterator[None]:
    try:
        yield
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise UnknownError(f"Malformed {what} payload: {exc!r}") from exc


def _cql_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _strip_api_prefix(link: str) -> str:
    marker = "/rest/api/"
    index = link.find(marker)
    if index == -1:
        return link
    return link[index + len(marker):]


def create_client(
    *,
    base_url: str,
    api_token: str,
    email: Optional[str] = None,
    auth_type: str = "basic",
) -> ConfluenceClient:
    auth = ConfluenceAuth(api_token=api_token, email=email, auth_type=auth_type)
    return ConfluenceClient(base_url=base_url, auth=auth)

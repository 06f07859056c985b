"""CLI tests for the page tree, lookup and authoring commands."""

import logging
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from confluence_cli import config as config_module
from confluence_cli import cli as cli_module
from confluence_cli.cli import PACKAGE_LOGGER, app
from confluence_cli.confluence.errors import PageNotFoundError, UnauthorizedError
from confluence_cli.confluence.models import PageInfo, SearchResult, SpaceSummary

from .conftest import FakeRepository, ReadOnlyRepository

CREDENTIALS = ["--base-url", "https://example.atlassian.net", "--api-token", "secret"]


class FakeClient(FakeRepository):
    closed = False

    def __init__(self, space_key="DOCS"):
        super().__init__(space_key)
        self.search_calls = []

    def close(self):
        self.closed = True

    def get_page_info(self, page_id):
        page = self._get(page_id)
        return PageInfo(
            id=page.id,
            title=page.title,
            type="page",
            status="current",
            space_key=page.space_key,
            space_name="Documentation",
            web_ui=f"/spaces/{page.space_key}/pages/{page.id}",
        )

    def read_page(self, page_id, *, representation="storage"):
        body = self._get(page_id).body.storage
        return body if representation == "storage" else f"<div>{body}</div>"

    def find_page_by_title(self, title, *, space_key=None):
        for page in self.pages.values():
            if page.title == title and space_key in (None, page.space_key):
                return self.get_page_info(page.id)
        raise PageNotFoundError(f"No page titled {title!r} found", status_code=404)

    def search(self, query, *, limit=10):
        self.search_calls.append((query, limit))
        matches = [page for page in self.pages.values() if query.lower() in page.title.lower()]
        return [
            SearchResult(id=page.id, title=page.title, type="page", excerpt=page.body.storage)
            for page in matches[:limit]
        ]

    def get_spaces(self):
        return [
            SpaceSummary(key="DOCS", name="Documentation", type="global"),
            SpaceSummary(key="~alice", name="Alice", type="personal"),
        ]


class ReadOnlyClient(ReadOnlyRepository, FakeClient):
    pass


def _populate(client):
    client.add("1", "Docs")
    client.add("2", "Guide", "1")
    client.add("3", "Draft notes", "2")
    client.add("4", "Reference", "1")
    client.add("900", "Archive")
    return client


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    for name in ("CONFLUENCE_BASE_URL", "CONFLUENCE_DOMAIN", "CONFLUENCE_HOST", "CONFLUENCE_API_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATHS", (tmp_path / "missing.toml",))


@pytest.fixture(autouse=True)
def detach_log_handler():
    yield
    if cli_module._log_handler is not None:
        logging.getLogger(PACKAGE_LOGGER).removeHandler(cli_module._log_handler)
        cli_module._log_handler = None


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def client():
    return _populate(FakeClient())


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("confluence_cli.replication.engine.time.sleep") as mock_sleep:
        yield mock_sleep


def _invoke(runner, client, args):
    with patch("confluence_cli.cli.create_client", return_value=client):
        return runner.invoke(app, args)


class TestCopyTreeCommand:
    def test_copies_tree_and_prints_summary(self, runner, client):
        result = _invoke(runner, client, ["copy-tree", "1", "900", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert [call.title for call in client.created] == ["Docs (Copy)", "Guide", "Draft notes", "Reference"]
        assert "Copied 'Guide'" in result.output
        assert "Confluence Copy Summary" in result.output
        assert client.closed is True

    def test_new_title_and_exclusions(self, runner, client):
        result = _invoke(
            runner,
            client,
            ["copy-tree", "1", "900", "Docs 2024", "--exclude", "draft*, ref*", *CREDENTIALS],
        )

        assert result.exit_code == 0, result.output
        assert [call.title for call in client.created] == ["Docs 2024", "Guide"]

    def test_copy_suffix_and_max_depth(self, runner, client):
        result = _invoke(
            runner,
            client,
            ["copy-tree", "1", "900", "--copy-suffix", " v2", "--max-depth", "1", *CREDENTIALS],
        )

        assert result.exit_code == 0, result.output
        assert [call.title for call in client.created] == ["Docs v2", "Guide", "Reference"]

    def test_quiet_hides_progress(self, runner, client):
        result = _invoke(runner, client, ["copy-tree", "1", "900", "--quiet", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "Copied 'Guide'" not in result.output

    def test_delay_is_applied_between_siblings(self, runner, client, no_sleep):
        result = _invoke(runner, client, ["copy-tree", "1", "900", "--delay-ms", "500", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        no_sleep.assert_called_once_with(0.5)

    def test_dry_run_makes_no_writes(self, runner):
        client = _populate(ReadOnlyClient())

        result = _invoke(runner, client, ["copy-tree", "1", "900", "--dry-run", "--exclude", "draft*", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "would create 3 page(s)" in result.output
        assert "Guide" in result.output

    def test_partial_failure_exits_zero_by_default(self, runner, client):
        client.create_errors["Guide"] = UnauthorizedError("denied", status_code=403)

        result = _invoke(runner, client, ["copy-tree", "1", "900", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "Failed Pages" in result.output

    def test_fail_on_error_exits_non_zero(self, runner, client):
        client.create_errors["Guide"] = UnauthorizedError("denied", status_code=403)

        result = _invoke(runner, client, ["copy-tree", "1", "900", "--fail-on-error", *CREDENTIALS])

        assert result.exit_code == 1

    def test_failure_list_is_truncated(self, runner):
        client = FakeClient()
        client.add("1", "Docs")
        for index in range(12):
            client.add(f"c{index}", f"Child {index}", "1")
            client.create_errors[f"Child {index}"] = UnauthorizedError("denied", status_code=403)
        client.add("900", "Archive")

        result = _invoke(runner, client, ["copy-tree", "1", "900", "--quiet", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "... and 2 more" in result.output

    def test_missing_target_parent_is_fatal(self, runner, client):
        result = _invoke(runner, client, ["copy-tree", "1", "404", *CREDENTIALS])

        assert result.exit_code == 1
        assert "Error" in result.output
        assert client.created == []

    def test_missing_credentials_exit_with_error(self, runner, client):
        result = _invoke(runner, client, ["copy-tree", "1", "900"])

        assert result.exit_code == 1
        assert "Missing Confluence credentials" in result.output

    def test_viewpage_urls_are_accepted(self, runner, client):
        url = "https://example.atlassian.net/wiki/pages/viewpage.action?pageId=1"

        result = _invoke(runner, client, ["copy-tree", url, "900", "--quiet", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert client.created[0].title == "Docs (Copy)"


class TestInfoCommand:
    def test_shows_page_details(self, runner, client):
        result = _invoke(runner, client, ["info", "1", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "Docs" in result.output
        assert "Documentation" in result.output


class TestTreeCommand:
    def test_renders_descendants(self, runner, client):
        result = _invoke(runner, client, ["tree", "1", "--exclude", "draft*", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "Guide" in result.output
        assert "Draft notes" not in result.output
        assert "2 descendant page(s)" in result.output


class TestSearchCommand:
    def test_lists_matching_pages(self, runner, client):
        result = _invoke(runner, client, ["search", "guide", "--limit", "5", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "Guide" in result.output
        assert "Reference" not in result.output
        assert client.search_calls == [("guide", 5)]
        assert client.closed is True

    def test_reports_empty_results(self, runner, client):
        result = _invoke(runner, client, ["search", "nothing-matches", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "No results found." in result.output


class TestSpacesCommand:
    def test_lists_spaces(self, runner, client):
        result = _invoke(runner, client, ["spaces", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "DOCS" in result.output
        assert "~alice" in result.output
        assert "2 space(s)" in result.output


class TestFindCommand:
    def test_finds_page_by_title(self, runner, client):
        result = _invoke(runner, client, ["find", "Reference", "--space", "DOCS", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "Reference (4)" in result.output
        assert "/spaces/DOCS/pages/4" in result.output

    def test_unknown_title_is_an_error(self, runner, client):
        result = _invoke(runner, client, ["find", "Missing", *CREDENTIALS])

        assert result.exit_code == 1
        assert "No page titled 'Missing' found" in result.output


class TestReadCommand:
    def test_prints_storage_body(self, runner, client):
        result = _invoke(runner, client, ["read", "2", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "<p>Guide</p>" in result.output

    def test_html_format_reads_rendered_view(self, runner, client):
        result = _invoke(runner, client, ["read", "2", "--format", "html", *CREDENTIALS])

        assert result.exit_code == 0, result.output
        assert "<div><p>Guide</p></div>" in result.output

    def test_rejects_unknown_format(self, runner, client):
        result = _invoke(runner, client, ["read", "2", "--format", "markdown", *CREDENTIALS])

        assert result.exit_code == 1
        assert "Unsupported format" in result.output


class TestCreateChildCommand:
    def test_creates_page_from_inline_content(self, runner, client):
        result = _invoke(
            runner,
            client,
            ["create-child", "Release notes", "1", "--content", "<p>New</p>", *CREDENTIALS],
        )

        assert result.exit_code == 0, result.output
        assert len(client.created) == 1
        call = client.created[0]
        assert (call.title, call.space_key, call.parent_id) == ("Release notes", "DOCS", "1")
        assert call.content.storage == "<p>New</p>"
        assert call.content.representation == "storage"
        assert "Created" in result.output

    def test_creates_page_from_file(self, runner, client, tmp_path):
        source = tmp_path / "page.txt"
        source.write_text("h1. Hello", encoding="utf-8")

        result = _invoke(
            runner,
            client,
            [
                "create-child",
                "Wiki page",
                "2",
                "--file",
                str(source),
                "--representation",
                "wiki",
                *CREDENTIALS,
            ],
        )

        assert result.exit_code == 0, result.output
        call = client.created[0]
        assert call.parent_id == "2"
        assert call.content.storage == "h1. Hello"
        assert call.content.representation == "wiki"

    def test_requires_a_body(self, runner, client):
        result = _invoke(runner, client, ["create-child", "Empty", "1", *CREDENTIALS])

        assert result.exit_code == 1
        assert "--file or --content" in result.output
        assert client.created == []

    def test_missing_parent_is_an_error(self, runner, client):
        result = _invoke(runner, client, ["create-child", "Orphan", "404", "--content", "x", *CREDENTIALS])

        assert result.exit_code == 1
        assert "Page 404 not found" in result.output
        assert client.created == []

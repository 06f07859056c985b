"""Command-line interface for copying and inspecting Confluence page trees."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .config import ConfigError, ConfluenceConfig, ensure_config
from .confluence.client import ConfluenceClient, create_client, extract_page_id
from .confluence.errors import ConfluenceError
from .confluence.models import PageBody, PageTreeNode
from .replication.engine import ReplicationEngine
from .replication.models import PreviewResult, ReplicationOptions, ReplicationResult
from .tree.builder import build_tree, count_nodes
from .tree.discovery import discover
from .tree.patterns import parse_patterns

app = typer.Typer(help="Copy and inspect Confluence page trees from the command line.")
console = Console()
error_console = Console(stderr=True)

MAX_REPORTED_FAILURES = 10
PACKAGE_LOGGER = "confluence_cli"
READ_FORMATS = {"storage": "storage", "html": "view"}
CREATE_REPRESENTATIONS = ("storage", "wiki")

_log_handler: Optional[logging.Handler] = None


def _configure_logging(verbosity: int) -> None:
    global _log_handler

    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    # Configure the package logger only, leaving the root logger and httpx alone.
    app_logger = logging.getLogger(PACKAGE_LOGGER)
    app_logger.setLevel(level)

    if _log_handler is not None:
        app_logger.removeHandler(_log_handler)
    _log_handler = logging.StreamHandler(sys.stderr)
    _log_handler.setLevel(level)
    _log_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)8s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    app_logger.addHandler(_log_handler)


def _build_client(config: ConfluenceConfig) -> ConfluenceClient:
    credentials = config.credentials
    return create_client(
        base_url=str(credentials.base_url),
        api_token=credentials.api_token,
        email=credentials.email,
        auth_type=credentials.auth_type or "basic",
    )


def _resolve_config(
    ctx: typer.Context,
    *,
    base_url: Optional[str],
    email: Optional[str],
    api_token: Optional[str],
) -> ConfluenceConfig:
    config_path: Optional[Path] = ctx.obj.get("config_path")
    try:
        return ensure_config(
            base_url=base_url,
            email=email,
            api_token=api_token,
            config_path=config_path,
        )
    except ConfigError as exc:
        _fail(str(exc))


def _fail(message: str) -> NoReturn:
    error_console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(code=1)


def _add_branches(branch: Tree, nodes: list[PageTreeNode]) -> None:
    for node in nodes:
        child = branch.add(f"{escape(node.title)} [dim]({node.id})[/dim]")
        _add_branches(child, node.children)


def _print_preview(preview: PreviewResult) -> None:
    tree = Tree(f"[bold]{escape(preview.planned_title)}[/bold] [dim](new root)[/dim]")
    _add_branches(tree, preview.tree)
    console.print(tree)
    console.print(
        f"Dry run: would create [bold]{preview.total_pages}[/bold] page(s) "
        f"from {escape(preview.source_page.title)} ({preview.source_page.id}). No changes were made."
    )


def _print_result(result: ReplicationResult) -> None:
    table = Table(title="Confluence Copy Summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("New root", f"{escape(result.root_page.title)} ({result.root_page.id})")
    table.add_row("Copied pages", str(result.total_copied))
    table.add_row("Skipped pages", str(len(result.skipped)))
    table.add_row("Failed pages", str(len(result.failures)))
    console.print(table)

    if not result.failures:
        return

    failures = Table(title="Failed Pages")
    failures.add_column("Page ID")
    failures.add_column("Title")
    failures.add_column("Status", justify="right")
    failures.add_column("Error")
    for failure in result.failures[:MAX_REPORTED_FAILURES]:
        failures.add_row(
            failure.source_page_id,
            escape(failure.title),
            str(failure.status_code) if failure.status_code is not None else "-",
            escape(failure.error_message),
        )
    console.print(failures)
    remaining = len(result.failures) - MAX_REPORTED_FAILURES
    if remaining > 0:
        console.print(f"... and {remaining} more")


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a configuration TOML file",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase log verbosity (-v for info, -vv for debug)",
    ),
) -> None:
    _configure_logging(verbose)
    ctx.obj = {"config_path": config_path}


@app.command("copy-tree")
def copy_tree(
    ctx: typer.Context,
    source_page: str = typer.Argument(..., help="Source page ID or URL"),
    target_parent: str = typer.Argument(..., help="Target parent page ID or URL"),
    new_title: Optional[str] = typer.Argument(None, help="Title for the copied root page"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=0, help="Levels below the root to copy [default: 10]"),
    exclude: Optional[str] = typer.Option(
        None,
        "--exclude",
        help="Comma-separated title patterns to skip (supports * and ?)",
    ),
    delay_ms: Optional[int] = typer.Option(None, "--delay-ms", min=0, help="Delay between sibling creations [default: 100]"),
    copy_suffix: Optional[str] = typer.Option(
        None,
        "--copy-suffix",
        help="Suffix appended to the root title when no new title is given [default: ' (Copy)']",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview the copy without creating pages"),
    fail_on_error: bool = typer.Option(
        False,
        "--fail-on-error",
        help="Exit with a non-zero status if any page failed to copy",
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress progress output"),
    base_url: Optional[str] = typer.Option(None, help="Base URL of the Confluence instance"),
    email: Optional[str] = typer.Option(None, help="Account email used for authentication"),
    api_token: Optional[str] = typer.Option(None, help="Confluence API token"),
) -> None:
    """Copy a page and all of its descendants under a new parent."""

    config = _resolve_config(ctx, base_url=base_url, email=email, api_token=api_token)
    defaults = config.copy_defaults
    options = ReplicationOptions(
        max_depth=defaults.max_depth if max_depth is None else max_depth,
        exclude_patterns=[*defaults.exclude, *parse_patterns(exclude)],
        delay_ms=defaults.delay_ms if delay_ms is None else delay_ms,
        copy_suffix=defaults.copy_suffix if copy_suffix is None else copy_suffix,
        on_progress=lambda message: console.print(escape(message)),
        quiet=quiet,
        fail_on_error=fail_on_error,
    )

    client = _build_client(config)
    try:
        source_id = extract_page_id(source_page)
        target_id = extract_page_id(target_parent)
        engine = ReplicationEngine(client)
        if dry_run:
            _print_preview(engine.preview(source_id, new_title, options))
            return
        result = engine.copy_tree(source_id, target_id, new_title, options)
    except ConfluenceError as exc:
        _fail(str(exc))
    finally:
        client.close()

    _print_result(result)
    if result.has_failures and options.fail_on_error:
        raise typer.Exit(code=1)


@app.command()
def info(
    ctx: typer.Context,
    page: str = typer.Argument(..., help="Page ID or URL"),
    base_url: Optional[str] = typer.Option(None, help="Base URL of the Confluence instance"),
    email: Optional[str] = typer.Option(None, help="Account email used for authentication"),
    api_token: Optional[str] = typer.Option(None, help="Confluence API token"),
) -> None:
    """Show information about a Confluence page."""

    config = _resolve_config(ctx, base_url=base_url, email=email, api_token=api_token)
    client = _build_client(config)
    try:
        details = client.get_page_info(extract_page_id(page))
    except ConfluenceError as exc:
        _fail(str(exc))
    finally:
        client.close()

    table = Table(title="Page Information", show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Title", escape(details.title))
    table.add_row("ID", details.id)
    table.add_row("Type", details.type)
    table.add_row("Status", details.status)
    table.add_row("Space", f"{escape(details.space_name)} ({details.space_key})")
    if details.web_ui:
        table.add_row("URL", escape(details.web_ui))
    console.print(table)


@app.command()
def tree(
    ctx: typer.Context,
    page: str = typer.Argument(..., help="Root page ID or URL"),
    max_depth: int = typer.Option(3, "--max-depth", min=0, help="Levels below the root to show"),
    exclude: Optional[str] = typer.Option(
        None,
        "--exclude",
        help="Comma-separated title patterns to hide (supports * and ?)",
    ),
    base_url: Optional[str] = typer.Option(None, help="Base URL of the Confluence instance"),
    email: Optional[str] = typer.Option(None, help="Account email used for authentication"),
    api_token: Optional[str] = typer.Option(None, help="Confluence API token"),
) -> None:
    """Display the descendants of a page as a tree."""

    config = _resolve_config(ctx, base_url=base_url, email=email, api_token=api_token)
    client = _build_client(config)
    try:
        root_id = extract_page_id(page)
        root = client.get_page_content(root_id)
        pages = discover(client, root_id, max_depth, exclude=parse_patterns(exclude))
    except ConfluenceError as exc:
        _fail(str(exc))
    finally:
        client.close()

    nodes = build_tree(pages, root_id)
    view = Tree(f"[bold]{escape(root.title)}[/bold] [dim]({root.id})[/dim]")
    _add_branches(view, nodes)
    console.print(view)
    console.print(f"{count_nodes(nodes)} descendant page(s)")


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Text to search for"),
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Maximum number of results"),
    base_url: Optional[str] = typer.Option(None, help="Base URL of the Confluence instance"),
    email: Optional[str] = typer.Option(None, help="Account email used for authentication"),
    api_token: Optional[str] = typer.Option(None, help="Confluence API token"),
) -> None:
    """Search Confluence content by text."""

    config = _resolve_config(ctx, base_url=base_url, email=email, api_token=api_token)
    client = _build_client(config)
    try:
        results = client.search(query, limit=limit)
    except ConfluenceError as exc:
        _fail(str(exc))
    finally:
        client.close()

    if not results:
        console.print("No results found.")
        return

    table = Table(title=f"Search results for '{escape(query)}'")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Type")
    table.add_column("Excerpt")
    for item in results:
        table.add_row(item.id, escape(item.title), item.type, escape(item.excerpt))
    console.print(table)


@app.command()
def spaces(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(None, help="Base URL of the Confluence instance"),
    email: Optional[str] = typer.Option(None, help="Account email used for authentication"),
    api_token: Optional[str] = typer.Option(None, help="Confluence API token"),
) -> None:
    """List the spaces visible to the current account."""

    config = _resolve_config(ctx, base_url=base_url, email=email, api_token=api_token)
    client = _build_client(config)
    try:
        found = client.get_spaces()
    except ConfluenceError as exc:
        _fail(str(exc))
    finally:
        client.close()

    table = Table(title="Confluence Spaces")
    table.add_column("Key")
    table.add_column("Name")
    table.add_column("Type")
    for space in found:
        table.add_row(space.key, escape(space.name), space.type)
    console.print(table)
    console.print(f"{len(found)} space(s)")


@app.command()
def find(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Exact page title"),
    space: Optional[str] = typer.Option(None, "--space", "-s", help="Restrict the lookup to a space key"),
    base_url: Optional[str] = typer.Option(None, help="Base URL of the Confluence instance"),
    email: Optional[str] = typer.Option(None, help="Account email used for authentication"),
    api_token: Optional[str] = typer.Option(None, help="Confluence API token"),
) -> None:
    """Find a page by its exact title."""

    config = _resolve_config(ctx, base_url=base_url, email=email, api_token=api_token)
    client = _build_client(config)
    try:
        details = client.find_page_by_title(title, space_key=space)
    except ConfluenceError as exc:
        _fail(str(exc))
    finally:
        client.close()

    console.print(f"[bold]{escape(details.title)}[/bold] ({details.id})")
    console.print(f"Space: {escape(details.space_name)} ({details.space_key})")
    if details.web_ui:
        console.print(f"URL: {escape(details.web_ui)}")


@app.command()
def read(
    ctx: typer.Context,
    page: str = typer.Argument(..., help="Page ID or URL"),
    output_format: str = typer.Option("storage", "--format", "-f", help="Body format: storage or html"),
    base_url: Optional[str] = typer.Option(None, help="Base URL of the Confluence instance"),
    email: Optional[str] = typer.Option(None, help="Account email used for authentication"),
    api_token: Optional[str] = typer.Option(None, help="Confluence API token"),
) -> None:
    """Print the body of a page."""

    representation = READ_FORMATS.get(output_format.lower())
    if representation is None:
        _fail(f"Unsupported format {output_format!r}. Choose from: {', '.join(READ_FORMATS)}")

    config = _resolve_config(ctx, base_url=base_url, email=email, api_token=api_token)
    client = _build_client(config)
    try:
        body = client.read_page(extract_page_id(page), representation=representation)
    except ConfluenceError as exc:
        _fail(str(exc))
    finally:
        client.close()

    # Page bodies are markup; print them verbatim.
    console.print(body, markup=False, highlight=False)


@app.command("create-child")
def create_child(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Title of the new page"),
    parent: str = typer.Argument(..., help="Parent page ID or URL"),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Read the page body from a file",
    ),
    content: Optional[str] = typer.Option(None, "--content", help="Page body given inline"),
    representation: str = typer.Option(
        "storage",
        "--representation",
        help="Body representation: storage or wiki",
    ),
    base_url: Optional[str] = typer.Option(None, help="Base URL of the Confluence instance"),
    email: Optional[str] = typer.Option(None, help="Account email used for authentication"),
    api_token: Optional[str] = typer.Option(None, help="Confluence API token"),
) -> None:
    """Create a page under an existing parent."""

    if file is not None and content is not None:
        _fail("Use either --file or --content, not both.")
    if file is None and content is None:
        _fail("Provide the page body with --file or --content.")
    if representation not in CREATE_REPRESENTATIONS:
        _fail(f"Unsupported representation {representation!r}. Choose from: {', '.join(CREATE_REPRESENTATIONS)}")
    body = file.read_text(encoding="utf-8") if file is not None else content

    config = _resolve_config(ctx, base_url=base_url, email=email, api_token=api_token)
    client = _build_client(config)
    try:
        parent_id = extract_page_id(parent)
        space_key = client.get_page_space(parent_id)
        created = client.create_child_page(
            title,
            space_key,
            parent_id,
            PageBody(storage=body, representation=representation),
        )
    except ConfluenceError as exc:
        _fail(str(exc))
    finally:
        client.close()

    console.print(
        f"[green]Created[/green] {escape(created.title)} ({created.id}) in space {space_key} under {parent_id}"
    )


def run() -> None:
    """Entry point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()

"""Command line interface for paperscan."""

from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from paperscan.config import Settings, SettingsStore
from paperscan.errors import PaperscanError
from paperscan.ingest.pipeline import ScanIngestor
from paperscan.models import ack_task_id
from paperscan.pages.combiner import PageCombiner
from paperscan.pages.store import PageStore
from paperscan.remote.client import PaperlessClient


console = Console()
app = typer.Typer(help="paperscan - manage scanned pages and upload them to Paperless-ngx")
config_app = typer.Typer(help="Show and edit settings")
app.add_typer(config_app, name="config")

CONFIG_OPTION = typer.Option(None, "--config", help="Settings file (config/config.json by default)")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load_store(config: Path | None) -> SettingsStore:
    return SettingsStore(config)


def _fail(message: str) -> None:
    console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=1)


@app.command()
def pages(
    config: Path = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """List scanned pages, oldest first."""
    _setup_logging(verbose)
    store = PageStore(_load_store(config))
    found = store.list_pages()
    if not found:
        console.print("[yellow]No scanned pages.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#")
    table.add_column("File")
    table.add_column("Size")
    table.add_column("Scanned")

    for number, page in enumerate(found, start=1):
        table.add_row(
            str(number),
            page.filename,
            page.size_label,
            page.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    config: Path = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Delete all scanned pages."""
    _setup_logging(verbose)
    store = PageStore(_load_store(config))
    if not yes:
        typer.confirm(f"Delete all scanned pages in {store.directory}?", abort=True)
    result = store.clear_all_pages()
    if not result.success:
        _fail(f"Clearing failed: {result.error}")
    console.print(f"Deleted {result.deleted_count} pages.")


@app.command()
def delete(
    names: List[str] = typer.Argument(..., help="Page filenames to delete"),
    config: Path = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Delete specific pages."""
    _setup_logging(verbose)
    result = PageStore(_load_store(config)).delete_pages(names)
    if not result.success:
        _fail(f"Deleting failed: {result.error}")
    console.print(f"Deleted {result.deleted_count} of {len(names)} pages.")


@app.command()
def combine(
    names: List[str] = typer.Argument(..., help="Page filenames in document order"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output filename"),
    config: Path = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Combine pages into one PDF in the output directory."""
    _setup_logging(verbose)
    combiner = PageCombiner(_load_store(config))
    try:
        path = combiner.combine(names, output)
    except PaperscanError as exc:
        _fail(str(exc))
    console.print(f"Combined document: [bold]{path}[/bold]")


@app.command()
def upload(
    path: Path = typer.Argument(..., help="PDF file to upload"),
    config: Path = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Upload a document to Paperless-ngx."""
    _setup_logging(verbose)
    client = PaperlessClient(_load_store(config))
    try:
        ack = client.upload(path)
    except PaperscanError as exc:
        _fail(str(exc))
    task_id = ack_task_id(ack)
    console.print(
        f"Uploaded {path.name}" + (f" (task {task_id})" if task_id else "") + ", queued for processing."
    )


@app.command()
def ingest(
    names: List[str] = typer.Argument(..., help="Page filenames in document order"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Combined filename"),
    keep: bool = typer.Option(False, "--keep", help="Keep page files after upload"),
    config: Path = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Combine pages, upload the result and delete the pages."""
    _setup_logging(verbose)
    store = _load_store(config)
    ingestor = ScanIngestor(PageStore(store), PageCombiner(store), PaperlessClient(store))
    try:
        result = ingestor.ingest(names, output_filename=output, delete_after=not keep)
    except PaperscanError as exc:
        _fail(str(exc))
    task_id = ack_task_id(result.ack)
    console.print(
        f"Uploaded {result.output_path.name}"
        + (f" (task {task_id})" if task_id else "")
        + f", removed {result.deleted_count} files."
    )


@app.command("test-connection")
def test_connection(
    config: Path = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Check settings and connectivity to Paperless-ngx."""
    _setup_logging(verbose)
    result = PaperlessClient(_load_store(config)).test_connection()
    if not result.success:
        _fail(f"Connection failed: {result.error}")
    console.print(f"[green]Connected.[/green] Documents: {result.document_count or 0}")


@config_app.command("show")
def config_show(config: Path = CONFIG_OPTION) -> None:
    """Print the current settings."""
    store = _load_store(config)
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in store.get().to_dict().items():
        if key == "paperless_api_token" and value:
            value = "****"
        elif isinstance(value, list):
            value = ", ".join(value)
        table.add_row(key, str(value))
    console.print(f"Settings file: {store.path}")
    console.print(table)


@config_app.command("validate")
def config_validate(config: Path = CONFIG_OPTION) -> None:
    """Validate the current settings."""
    errors = _load_store(config).validate()
    if errors:
        for error in errors:
            console.print(f"[red]- {error}[/red]")
        raise typer.Exit(code=1)
    console.print("[green]Settings are valid.[/green]")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name"),
    value: str = typer.Argument(..., help="New value; lists are comma separated"),
    config: Path = CONFIG_OPTION,
) -> None:
    """Change one setting and save it."""
    if key not in {f.name for f in fields(Settings)}:
        raise typer.BadParameter(f"Unknown setting: {key}")
    store = _load_store(config)
    try:
        store.update(**{key: value})
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid value for {key}: {exc}") from exc
    console.print(f"Saved {key} to {store.path}")


@config_app.command("reset")
def config_reset(config: Path = CONFIG_OPTION) -> None:
    """Restore default settings."""
    store = _load_store(config)
    store.reset()
    console.print(f"Settings reset in {store.path}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    config: Path = CONFIG_OPTION,
) -> None:
    """Start the web API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from paperscan.web.app import app as web_app, configure

    store = _load_store(config)
    configure(store)
    console.print(f"Starting web API on http://{host}:{port} (settings: {store.path})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
